"""Logging helpers for sslfactory tools.

Log lines are JSON objects so that trust decisions, including the
per-certificate details attached by the trust observer, can be collected
by machines.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from logging import Handler
from logging.config import dictConfig
from logging.handlers import SysLogHandler
from typing import Any

import msgspec

from .settings import FactoryConfig

SYSLOG_ENV = "SSLFACTORY_LOG_SYSLOG"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
    "asctime",
    "message",
    "taskName",
}


class LogLine(msgspec.Struct, omit_defaults=True):
    ts: str
    level: str
    logger: str
    message: str
    extra: dict[str, Any] | None = None
    exception: str | None = None


def _serialise_value(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, bytes):
        # Fingerprint notation.
        return ":".join(f"{b:02X}" for b in value)
    if isinstance(value, dict):
        return {str(key): _serialise_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialise_value(item) for item in value]
    return str(value)


class StructuredLogFormatter(logging.Formatter):
    """Emit one :class:`LogLine` per record, without the package prefix."""

    PREFIX = "sslfactory."

    def format(self, record: logging.LogRecord) -> str:
        extras = {
            key: _serialise_value(value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }
        line = LogLine(
            ts=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            level=record.levelname,
            logger=record.name.removeprefix(self.PREFIX),
            message=record.getMessage(),
            extra=extras or None,
            exception=self.formatException(record.exc_info) if record.exc_info else None,
        )
        return msgspec.json.encode(line).decode("utf-8")


def _build_handler() -> Handler:
    """Log to the syslog socket named by ``SSLFACTORY_LOG_SYSLOG``, else stderr."""
    address = os.environ.get(SYSLOG_ENV)
    if address and os.path.exists(address):
        handler = SysLogHandler(address=address, facility=SysLogHandler.LOG_USER)
        handler.ident = "sslfactory "
        return handler
    return logging.StreamHandler()


def configure_logging(config: FactoryConfig) -> None:
    """Route ``sslfactory`` and root logging through the JSON formatter."""
    level_name = "DEBUG" if config.debug_logging else "INFO"
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {"()": StructuredLogFormatter},
            },
            "handlers": {
                "sslfactory": {
                    "()": _build_handler,
                    "level": level_name,
                    "formatter": "structured",
                }
            },
            "root": {"level": level_name, "handlers": ["sslfactory"]},
        }
    )
    logging.getLogger("sslfactory").debug("Logging configured at level %s", level_name)
