import hmac
import random
import threading
import uuid
from typing import Dict, Iterator, Optional

from fastapi import Depends, Header, Request

from opsbeat.config import Config, load_config
from opsbeat.db.database import PostgresStore, Store, get_store
from opsbeat.services.base import ServiceContext


class WebhookRejected(Exception):
    """Raised by request guards; rendered as {"error": message} with status_code."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def get_app_config() -> Config:
    """Configuration is re-read per request so deployments pick up env changes."""
    return load_config()


def require_post(request: Request) -> None:
    if request.method != "POST":
        raise WebhookRejected(405, "Method not allowed")


def require_webhook_secret(
    x_webhook_secret: Optional[str] = Header(None, alias="x-webhook-secret"),
    config: Config = Depends(get_app_config),
) -> None:
    """
    Require the shared secret if `WEBHOOK_SECRET` is set.

    With no secret configured every caller is accepted.
    """
    if not config.webhook_secret_enabled:
        return
    provided = x_webhook_secret or ""
    if not hmac.compare_digest(provided.encode("utf-8"), config.webhook_secret.encode("utf-8")):
        raise WebhookRejected(401, "Invalid secret")


def get_service_context(
    config: Config = Depends(get_app_config),
    x_request_id: Optional[str] = Header(None, alias="X-Request-ID"),
) -> ServiceContext:
    return ServiceContext(config=config, request_id=x_request_id or uuid.uuid4().hex)


# Postgres pools live for the app lifetime, keyed by connection URL
_postgres_stores: Dict[str, PostgresStore] = {}
_postgres_lock = threading.Lock()


def _shared_postgres_store(config: Config) -> PostgresStore:
    with _postgres_lock:
        store = _postgres_stores.get(config.db_url)
        if store is None:
            store = PostgresStore(config.db_url, pool_size=config.db_pool_size)
            _postgres_stores[config.db_url] = store
        return store


def close_shared_stores() -> None:
    with _postgres_lock:
        for store in _postgres_stores.values():
            store.close()
        _postgres_stores.clear()


def get_ops_store(config: Config = Depends(get_app_config)) -> Iterator[Store]:
    """
    Store client for one request.

    Hosted and SQLite clients are opened and closed per request; a direct
    Postgres store reuses the shared connection pool.
    """
    if config.is_postgres and not config.supabase_enabled:
        yield _shared_postgres_store(config)
        return

    store = get_store(config)
    try:
        yield store
    finally:
        store.close()


def get_rng() -> random.Random:
    return random.Random()
