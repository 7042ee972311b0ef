"""Startup-time helpers: safe config logging and fatal error handling."""

from typing import Any

from sqlalchemy.engine import Engine

from dbflow.common.errors import FatalDatabaseError
from dbflow.common.logging import logger


_SECRET_MARKERS = ("KEY", "SECRET", "PASSWORD", "TOKEN")


def _safe_value(name: str, value: Any) -> Any:
    """Return the value with simple redaction for secret-like names."""

    if value is None:
        return "<unset>"
    if any(secret in name.upper() for secret in _SECRET_MARKERS):
        return "<redacted>"
    return value


def log_startup_config(service_name: str, config: dict[str, Any]) -> None:
    """Log resolved startup config for quick troubleshooting."""

    safe = {"service": service_name}
    for key, value in config.items():
        safe[key] = _safe_value(key, value)
    logger.info("startup_config=%s", safe)


def init_or_exit(database) -> Engine:
    """Create the shared handle or terminate the process.

    Meant for the application's startup sequence: a fatal database error means
    there is no safe way to keep serving, so it is logged and turned into
    `SystemExit(1)`.
    """

    try:
        return database.get_handle()
    except FatalDatabaseError as exc:
        logger.critical("database startup failed error_type=%s error=%s", type(exc).__name__, exc)
        raise SystemExit(1) from exc
