"""
OpsBeat Database Package

Ops store with hosted Supabase, PostgreSQL and SQLite backends.
"""

from opsbeat.db.database import (
    PostgresStore,
    SQLiteStore,
    Store,
    StoreProtocol,
    SupabaseStore,
    get_store,
)
from opsbeat.db.schema import SCHEMA_POSTGRES, SCHEMA_SQLITE

__all__ = [
    "PostgresStore",
    "SQLiteStore",
    "Store",
    "StoreProtocol",
    "SupabaseStore",
    "get_store",
    "SCHEMA_POSTGRES",
    "SCHEMA_SQLITE",
]
