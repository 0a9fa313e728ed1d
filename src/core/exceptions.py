"""Custom exceptions for the anti-ban engine.

The decision engine itself expresses every outcome through ``SendDecision``;
these exceptions belong to the collaborators around it (snapshot parsing,
queue capacity, transport adapters, alert delivery and storage).
"""
from __future__ import annotations

from typing import Any, Optional


class AntiBanError(Exception):
    """Base exception for all application errors."""

    pass


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(AntiBanError):
    """Raised when required configuration is missing or invalid."""

    pass


# =============================================================================
# State Errors
# =============================================================================


class WarmUpStateError(AntiBanError):
    """Raised when a warm-up snapshot is corrupt or has an unknown version."""

    pass


# =============================================================================
# Sending Errors
# =============================================================================


class SendBlockedError(AntiBanError):
    """Raised by transport adapters when the engine refuses a send."""

    def __init__(self, reason: str, decision: Optional[Any] = None) -> None:
        super().__init__(f"Message blocked: {reason}")
        self.reason = reason
        self.decision = decision


# =============================================================================
# Queue Errors
# =============================================================================


class QueueError(AntiBanError):
    """Base exception for message queue errors."""

    pass


class QueueFullError(QueueError):
    """Raised when adding to a queue that reached its capacity."""

    pass


# =============================================================================
# Alert Errors
# =============================================================================


class AlertError(AntiBanError):
    """Base exception for alert delivery errors."""

    pass


class AlertDeliveryError(AlertError):
    """Raised when a webhook endpoint rejects or fails an alert."""

    pass


# =============================================================================
# Storage Errors
# =============================================================================


class StorageError(AntiBanError):
    """Raised when persisted state cannot be read or written."""

    pass


__all__ = [
    "AntiBanError",
    "ConfigurationError",
    "WarmUpStateError",
    "SendBlockedError",
    "QueueError",
    "QueueFullError",
    "AlertError",
    "AlertDeliveryError",
    "StorageError",
]
