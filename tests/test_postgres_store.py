"""
Tests for the direct PostgreSQL store, with the driver and pool mocked.
"""

from unittest.mock import MagicMock

import psycopg
import pytest
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from opsbeat.db import database
from opsbeat.db.database import PostgresStore
from opsbeat.errors import StorageError

DB_URL = "postgresql://ops@db.internal:5432/ops"


@pytest.fixture
def conn() -> MagicMock:
    return MagicMock()


@pytest.fixture
def pool_cls(monkeypatch: pytest.MonkeyPatch, conn: MagicMock) -> MagicMock:
    pool = MagicMock()
    pool.connection.return_value.__enter__.return_value = conn
    factory = MagicMock(return_value=pool)
    monkeypatch.setattr(database, "ConnectionPool", factory)
    return factory


@pytest.fixture
def pg_store(pool_cls: MagicMock) -> PostgresStore:
    return PostgresStore(DB_URL, pool_size=3)


def _last_query(conn: MagicMock):
    sql, params = conn.execute.call_args.args
    return sql, params


def test_pool_is_opened_with_dict_rows(pg_store, pool_cls):
    pool_cls.assert_called_once()
    kwargs = pool_cls.call_args.kwargs
    assert kwargs["conninfo"] == DB_URL
    assert kwargs["max_size"] == 3
    assert kwargs["kwargs"] == {"row_factory": dict_row}


def test_queries_use_psycopg_placeholders(pg_store, conn):
    conn.execute.return_value.fetchone.return_value = {"value": {"max_drafts_per_day": 3}}

    assert pg_store.get_policy("content_policy") == {"max_drafts_per_day": 3}

    sql, params = _last_query(conn)
    assert "%s" in sql
    assert "?" not in sql
    assert params == ("content_policy",)


def test_json_and_bool_parameters_are_adapted(pg_store, conn):
    pg_store.upsert_policy("auto_approve", {"enabled": True})
    _, params = _last_query(conn)
    assert isinstance(params[1], Jsonb)
    assert params[1].obj == {"enabled": True}

    conn.execute.return_value.fetchall.return_value = []
    assert pg_store.list_enabled_trigger_rules() == []
    _, params = _last_query(conn)
    assert params == (True,)


def test_count_steps_reads_total(pg_store, conn, now):
    conn.execute.return_value.fetchone.return_value = {"total": 4}

    assert pg_store.count_steps("send_email", "succeeded", now) == 4

    sql, params = _last_query(conn)
    assert sql.count("%s") == 3
    assert params == ("send_email", "succeeded", "2026-03-14T12:00:00.000000+00:00")


def test_driver_errors_become_storage_errors(pg_store, conn):
    conn.execute.side_effect = psycopg.OperationalError("connection refused")

    with pytest.raises(StorageError) as excinfo:
        pg_store.list_missions()

    assert excinfo.value.metadata == {"backend": "postgres"}
    assert isinstance(excinfo.value.__cause__, psycopg.OperationalError)


def test_close_closes_pool_once(pg_store, pool_cls):
    pool = pool_cls.return_value

    pg_store.close()
    pg_store.close()

    pool.close.assert_called_once()
    assert pg_store.pool is None


def test_without_pool_connects_per_transaction(monkeypatch: pytest.MonkeyPatch, conn):
    monkeypatch.setattr(database, "ConnectionPool", None)
    connect = MagicMock()
    connect.return_value.__enter__.return_value = conn
    monkeypatch.setattr(psycopg, "connect", connect)
    conn.execute.return_value.fetchall.return_value = []

    PostgresStore(DB_URL).list_proposals(limit=5)

    connect.assert_called_once_with(DB_URL, row_factory=dict_row)
    _, params = _last_query(conn)
    assert params == (5,)
