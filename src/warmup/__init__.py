"""Graduated activity ramp for new or reactivated accounts."""
from .ramp import SNAPSHOT_VERSION, ActivityRamp, WarmUpConfig, WarmUpSnapshot, WarmUpStatus

__all__ = [
    "SNAPSHOT_VERSION",
    "ActivityRamp",
    "WarmUpConfig",
    "WarmUpSnapshot",
    "WarmUpStatus",
]
