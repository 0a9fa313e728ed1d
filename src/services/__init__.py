"""Collaborators built around the anti-ban engine.

This module provides:
- A priority retry queue that drains through the engine
- Message body variation
- Risk alerts over webhooks, Telegram and Discord
- SQL persistence of warm-up snapshots and queued messages

All services have:
- Config dataclasses with ``from_mapping`` (and ``from_settings`` where
  settings exist)
- Structured logging
- Errors from ``core.exceptions``
"""
from __future__ import annotations

from .alerts import AlertConfig, WebhookAlerts
from .content_variator import ContentVariator, VariatorConfig
from .message_queue import MessageQueue, QueueConfig, QueuedMessage
from .retry import webhook_retrying
from .state_store import StateStore

__all__ = [
    # Alerts
    "AlertConfig",
    "WebhookAlerts",
    # Content variation
    "ContentVariator",
    "VariatorConfig",
    # Queue
    "MessageQueue",
    "QueueConfig",
    "QueuedMessage",
    # Retry
    "webhook_retrying",
    # Persistence
    "StateStore",
]
