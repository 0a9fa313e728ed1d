"""Logging setup: plain text or one JSON object per line.

Engine components log through ``get_logger(__name__)``; per-account services
use ``get_context_logger`` so every record carries the account id.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.config import get_settings

TEXT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Promoted to top-level keys in JSON output
CONTEXT_FIELDS = ("account_id", "recipient", "risk_level", "message_id")

# Chatty libraries kept at WARNING
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(
            (name, getattr(record, name)) for name in CONTEXT_FIELDS if hasattr(record, name)
        )
        if hasattr(record, "extra_data"):
            entry["extra"] = record.extra_data
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ContextLogger(logging.LoggerAdapter):
    """Adapter that merges fixed context (e.g. ``account_id``) into every record."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple[str, Dict[str, Any]]:
        kwargs["extra"] = {**kwargs.get("extra", {}), **self.extra}
        return msg, kwargs


def setup_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    Install root handlers for the process.

    Args:
        level: Level name; defaults to ``LOG_LEVEL`` from settings.
        json_format: JSON lines instead of text; defaults to ``LOG_FORMAT == "json"``.
        log_file: Optional file that receives the same records as stdout.
    """
    if level is None or json_format is None:
        settings = get_settings()
        level = level or settings.log_level
        json_format = settings.log_format == "json" if json_format is None else json_format

    formatter: logging.Formatter = (
        JSONFormatter() if json_format else logging.Formatter(TEXT_LOG_FORMAT, DATE_FORMAT)
    )
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level.upper(), handlers=handlers, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_context_logger(name: str, **context: Any) -> ContextLogger:
    """
    Logger whose records all carry ``context``.

    Example:
        log = get_context_logger(__name__, account_id="acct-1")
        log.info("Sending paused manually")
    """
    return ContextLogger(logging.getLogger(name), context)


def log_external_call(
    logger: logging.Logger,
    service: str,
    operation: str,
    success: bool,
    duration_ms: float,
    **extra: Any,
) -> None:
    """
    Record one call to an outside service (webhook, Telegram, Discord).

    Successes log at INFO, failures at WARNING; the structured fields land
    under ``extra`` in JSON output.
    """
    outcome = "completed in" if success else "failed after"
    logger.log(
        logging.INFO if success else logging.WARNING,
        f"External call: {service}.{operation} {outcome} {duration_ms:.2f}ms",
        extra={
            "extra_data": {
                "service": service,
                "operation": operation,
                "success": success,
                "duration_ms": round(duration_ms, 2),
                **extra,
            }
        },
    )


__all__ = [
    "setup_logging",
    "get_logger",
    "get_context_logger",
    "log_external_call",
    "JSONFormatter",
    "ContextLogger",
]
