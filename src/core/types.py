"""Shared enums and type helpers."""
from __future__ import annotations

import enum
from typing import Callable, Union

# Epoch-millisecond clock used by every engine component
Clock = Callable[[], float]

# Disconnect reason as reported by a transport (status code or name)
ReasonCode = Union[str, int]


class RiskLevel(str, enum.Enum):
    """Discrete ban-risk bands, ordered from safest to most dangerous."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)

    def at_least(self, other: "RiskLevel") -> bool:
        """True when this level is the same as or worse than ``other``."""
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: object, default: "RiskLevel") -> "RiskLevel":
        """Parse a level name, falling back to ``default`` for unknown input."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                return default
        return default


_RISK_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


class MessagePriority(str, enum.Enum):
    """Queue priorities, drained high first."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def weight(self) -> int:
        return {"high": 0, "normal": 1, "low": 2}[self.value]


__all__ = ["Clock", "ReasonCode", "RiskLevel", "MessagePriority"]
