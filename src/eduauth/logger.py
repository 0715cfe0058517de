"""
Logging setup.

JSON lines (python-json-logger) outside development, plain text in development.
Components never log through the root logger directly: they are handed a named
logger from ``get_logger`` when they are built.
"""
import logging
import sys
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from eduauth.config import Settings

SENSITIVE_KEYS = frozenset(
    {"password", "current_password", "new_password", "password_hash", "token",
     "access_token", "refresh_token", "secret", "authorization"}
)


class ServiceJsonFormatter(JsonFormatter):
    """JSON formatter that stamps every record with the service name and version."""

    def __init__(self, *args: Any, service: str, version: str, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._service = service
        self._version = version

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["service"] = self._service
        log_record["version"] = self._version
        log_record["level"] = record.levelname
        log_record["logger"] = record.name


class RedactingFilter(logging.Filter):
    """Drop ``extra`` fields whose names mark them as credentials."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key in list(record.__dict__):
            if key.lower() in SENSITIVE_KEYS:
                delattr(record, key)
        return True


def setup_logging(settings: Settings) -> logging.Logger:
    """Configure the ``eduauth`` logger tree and return its root."""
    handler = logging.StreamHandler(sys.stdout)
    if settings.is_development:
        formatter: logging.Formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ServiceJsonFormatter(
            "%(asctime)s %(message)s",
            rename_fields={"asctime": "timestamp"},
            service=settings.app_name,
            version=settings.app_version,
        )
    handler.setFormatter(formatter)
    handler.addFilter(RedactingFilter())

    root = logging.getLogger("eduauth")
    root.setLevel(logging.DEBUG if settings.debug else settings.log_level.upper())
    # Avoid duplicate handlers when the app factory runs more than once
    root.handlers = [handler]
    root.propagate = False

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a logger below the ``eduauth`` namespace."""
    if not name.startswith("eduauth"):
        name = f"eduauth.{name}"
    return logging.getLogger(name)
