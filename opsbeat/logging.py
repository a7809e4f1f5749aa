"""
OpsBeat Structured Logging

Provides structured logging with context propagation, JSON formatting,
and sensitive data redaction.
"""

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from urllib.parse import urlsplit, urlunsplit
from typing import Any, Dict, Generator, Optional


STANDARD_FIELDS = ("request_id", "rule_id", "proposal_id", "mission_id", "step_id")

_RESERVED_LOG_RECORD_ATTRS = set(
    logging.LogRecord(
        name="",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    ).__dict__.keys()
)
_RESERVED_LOG_RECORD_ATTRS.update({"asctime", "message"})


def _json_fallback(value: Any) -> str:  # pragma: no cover
    """Best-effort conversion for non-JSON-serializable values (datetime, Exception, etc.)."""
    try:
        return str(value)
    except Exception:
        return repr(value)


_REDACTED = "[REDACTED]"
_SECRET_KEY_MARKERS = (
    "token", "secret", "password", "passwd", "api_key", "apikey",
    "service_key", "private_key", "bearer", "credential", "authorization",
)


def _looks_sensitive_key(key: str) -> bool:
    """Check if a key name suggests sensitive data."""
    lower = (key or "").lower()
    return any(marker in lower for marker in _SECRET_KEY_MARKERS)


def _strip_url_credentials(value: str) -> str:
    """Remove user:pass@ from URLs (postgres/http/etc)."""
    try:
        parts = urlsplit(value)
    except ValueError:
        return value
    if not parts.scheme or not parts.netloc:
        return value
    if "@" not in parts.netloc:
        return value
    hostpart = parts.netloc.rsplit("@", 1)[-1]
    return urlunsplit((parts.scheme, hostpart, parts.path, parts.query, parts.fragment))


def _sanitize_for_logging(key: str, value: Any) -> Any:
    """Sanitize a value for safe logging (redact secrets, strip credentials)."""
    if _looks_sensitive_key(key):
        return _REDACTED
    if isinstance(value, str):
        return _strip_url_credentials(value)
    if isinstance(value, dict):
        return {k: _sanitize_for_logging(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_for_logging(key, v) for v in value]
    return value


# Context variable for log context propagation
_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("OPSBEAT_LOG_CONTEXT", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the current log context to avoid accidental mutation."""
    return dict(_LOG_CONTEXT.get() or {})


@contextmanager
def log_context(**fields: Any) -> Generator[None, None, None]:
    """Context manager for temporarily adding fields to the log context."""
    token = _LOG_CONTEXT.set({**get_log_context(), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)


class ContextFilter(logging.Filter):
    """
    Logging filter that ensures all standard context fields exist on every log record.

    Propagates contextvars-based fields onto log records and provides defaults
    for missing fields so formatters can rely on them.
    """

    def __init__(self) -> None:
        super().__init__()
        self.defaults = {field: "-" for field in STANDARD_FIELDS}

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_log_context()
        for key, value in ctx.items():
            if value is None:
                continue
            if key in _RESERVED_LOG_RECORD_ATTRS:
                continue
            if not hasattr(record, key):
                setattr(record, key, value)

        for key, default in self.defaults.items():
            if not hasattr(record, key):
                setattr(record, key, default)
        return True


class JsonFormatter(logging.Formatter):
    """JSON log formatter that includes all context fields and sanitizes sensitive data."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in STANDARD_FIELDS:
            data[field] = getattr(record, field, "-")

        # Everything passed via `extra=`
        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_RECORD_ATTRS:
                continue
            if key in data:
                continue
            data[key] = value

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        sanitized = {k: _sanitize_for_logging(k, v) for k, v in data.items()}
        return json.dumps(sanitized, default=_json_fallback)


def setup_logging(level: Optional[str] = None, json_output: bool = False) -> logging.Logger:
    """
    Configure the root logger with structured logging support.

    Args:
        level: Log level (default: INFO)
        json_output: If True, use JSON formatting; otherwise use text format

    Returns:
        The opsbeat logger instance
    """
    resolved_level = level or "INFO"

    handler = logging.StreamHandler()
    handler.addFilter(ContextFilter())

    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s "
                "req=%(request_id)s rule=%(rule_id)s proposal=%(proposal_id)s "
                "mission=%(mission_id)s step=%(step_id)s"
            )
        )

    root = logging.getLogger()
    root.handlers = []
    root.setLevel(getattr(logging, str(resolved_level).upper(), logging.INFO))
    root.addHandler(handler)

    return logging.getLogger("opsbeat")


def get_logger(name: str = "opsbeat") -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)


def log_extra(
    *,
    request_id: Optional[str] = None,
    rule_id: Optional[str] = None,
    proposal_id: Optional[str] = None,
    mission_id: Optional[str] = None,
    step_id: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """
    Build a consistent extra dict for structured logging.

    Only non-None values are included so defaults from ContextFilter still apply.

    Example:
        logger.info("stale_step_failed", extra=log_extra(step_id="abc", mission_id="def"))
    """
    payload: Dict[str, Any] = {}
    if request_id is not None:
        payload["request_id"] = request_id
    if rule_id is not None:
        payload["rule_id"] = rule_id
    if proposal_id is not None:
        payload["proposal_id"] = proposal_id
    if mission_id is not None:
        payload["mission_id"] = mission_id
    if step_id is not None:
        payload["step_id"] = step_id
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload


# Exit codes for CLI failures
EXIT_RUNTIME_ERROR = 1
EXIT_CONFIG_ERROR = 2
