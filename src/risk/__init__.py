"""Ban-risk detection from connection and delivery signals."""
from core.types import RiskLevel

from .monitor import (
    EventKind,
    HealthConfig,
    RiskEvent,
    RiskMonitor,
    RiskStats,
    RiskStatus,
    RiskTransition,
)

__all__ = [
    "EventKind",
    "HealthConfig",
    "RiskEvent",
    "RiskLevel",
    "RiskMonitor",
    "RiskStats",
    "RiskStatus",
    "RiskTransition",
]
