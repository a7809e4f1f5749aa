import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure repository root is on sys.path so the in-tree package imports cleanly.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from opsbeat.config import Config, _reset_config_for_tests  # noqa: E402
from opsbeat.db.database import SQLiteStore  # noqa: E402
from opsbeat.services.base import ServiceContext  # noqa: E402

OPSBEAT_ENV_VARS = (
    "SUPABASE_URL",
    "SUPABASE_SERVICE_KEY",
    "WEBHOOK_SECRET",
    "OPSBEAT_DB_URL",
    "OPSBEAT_DB_PATH",
    "OPSBEAT_ENV",
    "OPSBEAT_TRIGGER_CONDITION",
    "OPSBEAT_PROPOSAL_MODE",
    "OPSBEAT_LOG_JSON",
    "OPSBEAT_LOG_LEVEL",
    "OPSBEAT_HTTP_TIMEOUT",
    "OPSBEAT_DB_POOL_SIZE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in OPSBEAT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    _reset_config_for_tests()
    yield
    _reset_config_for_tests()


@pytest.fixture
def now() -> datetime:
    """Midday UTC, inside the default deploy window."""
    return datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "opsbeat.sqlite"


@pytest.fixture
def store(db_path: Path) -> SQLiteStore:
    db = SQLiteStore(db_path)
    db.init_schema()
    return db


@pytest.fixture
def config(db_path: Path) -> Config:
    return Config(db_path=db_path)


@pytest.fixture
def service_context(config: Config) -> ServiceContext:
    return ServiceContext(config=config, request_id="test-request")
