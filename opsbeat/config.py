"""
OpsBeat Configuration

Pydantic-backed configuration loaded from environment variables.
The hosted store credentials and webhook secret keep their deployment names
(SUPABASE_URL, SUPABASE_SERVICE_KEY, WEBHOOK_SECRET); everything else uses the
OPSBEAT_ prefix.
"""

import os
import threading
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from opsbeat.errors import ConfigError

TRIGGER_CONDITIONS = ("probability", "threshold")
PROPOSAL_MODES = ("direct", "event")


class Config(BaseModel):
    """
    Pydantic-backed configuration loaded from environment variables.

    Key env vars:
    - SUPABASE_URL / SUPABASE_SERVICE_KEY (hosted store, preferred)
    - WEBHOOK_SECRET (optional shared secret for the heartbeat endpoint)
    - OPSBEAT_DB_URL (direct postgresql:// connection) or OPSBEAT_DB_PATH for SQLite fallback
    - OPSBEAT_ENV (default: local)
    - OPSBEAT_LOG_LEVEL (default: INFO)
    - OPSBEAT_TRIGGER_CONDITION (probability | threshold)
    - OPSBEAT_PROPOSAL_MODE (direct | event)
    """

    # Hosted store
    supabase_url: Optional[str] = Field(default=None)
    supabase_service_key: Optional[str] = Field(default=None)
    http_timeout: float = Field(default=30.0)

    # Direct database
    db_url: Optional[str] = Field(default=None)
    db_path: Path = Field(default=Path(".opsbeat.sqlite"))
    db_pool_size: int = Field(default=5)

    # Environment
    environment: str = Field(default="local")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)
    webhook_secret: Optional[str] = Field(default=None)

    # Heartbeat behaviour
    trigger_condition: str = Field(default="probability")
    proposal_mode: str = Field(default="direct")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def supabase_enabled(self) -> bool:
        """Check if the hosted store is configured."""
        return bool(self.supabase_url and self.supabase_service_key)

    @property
    def is_postgres(self) -> bool:
        """Check if using a direct PostgreSQL connection."""
        return bool(self.db_url and self.db_url.startswith("postgres"))

    @property
    def webhook_secret_enabled(self) -> bool:
        return bool(self.webhook_secret)


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def _parse_choice(value: Optional[str], choices: tuple, default: str) -> str:
    if not value:
        return default
    normalized = value.strip().lower()
    return normalized if normalized in choices else default


def _parse_number(name: str, default: str, kind=float):
    raw = os.environ.get(name, default)
    try:
        return kind(raw)
    except ValueError:
        raise ConfigError(
            f"{name} must be a number, got {raw!r}",
            metadata={"variable": name},
        ) from None


def load_config() -> Config:
    """Load OpsBeat configuration from environment."""
    return Config(
        # Hosted store
        supabase_url=os.environ.get("SUPABASE_URL") or None,
        supabase_service_key=os.environ.get("SUPABASE_SERVICE_KEY") or None,
        http_timeout=_parse_number("OPSBEAT_HTTP_TIMEOUT", "30"),

        # Direct database
        db_url=os.environ.get("OPSBEAT_DB_URL") or None,
        db_path=Path(os.environ.get("OPSBEAT_DB_PATH", ".opsbeat.sqlite")).expanduser(),
        db_pool_size=_parse_number("OPSBEAT_DB_POOL_SIZE", "5", int),

        # Environment
        environment=os.environ.get("OPSBEAT_ENV", "local"),
        log_level=os.environ.get("OPSBEAT_LOG_LEVEL", "INFO"),
        log_json=_parse_bool(os.environ.get("OPSBEAT_LOG_JSON")),
        webhook_secret=os.environ.get("WEBHOOK_SECRET") or None,

        # Heartbeat behaviour
        trigger_condition=_parse_choice(
            os.environ.get("OPSBEAT_TRIGGER_CONDITION"), TRIGGER_CONDITIONS, "probability"
        ),
        proposal_mode=_parse_choice(
            os.environ.get("OPSBEAT_PROPOSAL_MODE"), PROPOSAL_MODES, "direct"
        ),
    )


# Singleton config instance (lazy loaded)
_config: Optional[Config] = None
_config_lock = threading.Lock()


def get_config() -> Config:
    """Get or create the singleton config instance."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_config()
    return _config


def _reset_config_for_tests() -> None:
    """Reset the global config cache (tests only)."""
    global _config
    with _config_lock:
        _config = None
