"""Core module exports."""
from __future__ import annotations

from core.config import Settings, get_settings, reload_settings
from core.db import Base, create_db_engine, get_session, get_session_factory, init_db
from core.exceptions import (
    # Base
    AntiBanError,
    # Configuration
    ConfigurationError,
    # State
    WarmUpStateError,
    # Sending
    SendBlockedError,
    # Queue
    QueueError,
    QueueFullError,
    # Alerts
    AlertError,
    AlertDeliveryError,
    # Storage
    StorageError,
)
from core.logging_config import (
    setup_logging,
    get_logger,
    get_context_logger,
    log_external_call,
    JSONFormatter,
    ContextLogger,
)
from core.models import QueuedMessageRecord, WarmUpStateRecord
from core.types import Clock, MessagePriority, ReasonCode, RiskLevel

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "reload_settings",
    # Database
    "Base",
    "create_db_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    # Models
    "QueuedMessageRecord",
    "WarmUpStateRecord",
    # Types
    "Clock",
    "MessagePriority",
    "ReasonCode",
    "RiskLevel",
    # Exceptions
    "AntiBanError",
    "ConfigurationError",
    "WarmUpStateError",
    "SendBlockedError",
    "QueueError",
    "QueueFullError",
    "AlertError",
    "AlertDeliveryError",
    "StorageError",
    # Logging
    "setup_logging",
    "get_logger",
    "get_context_logger",
    "log_external_call",
    "JSONFormatter",
    "ContextLogger",
]
