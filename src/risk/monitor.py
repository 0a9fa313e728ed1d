"""Risk monitor: early ban-warning detection from connection signals.

Frequent disconnects, 403 Forbidden closes, 401 logouts and silently failing
sends are the provider's usual prelude to a restriction. ``RiskMonitor`` keeps
a six-hour event log, scores the last hour of it on every query and reports a
discrete risk level with a recommended action.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from core.logging_config import get_logger
from core.types import Clock, ReasonCode, RiskLevel
from core.utils import HOUR_MS, config_from_mapping, now_ms

LOGGER = get_logger(__name__)

RETENTION_MS = 6 * HOUR_MS
SCORING_WINDOW_MS = HOUR_MS

FORBIDDEN_CODES = {"403", "forbidden"}
LOGGED_OUT_CODES = {"401", "loggedOut"}

FORBIDDEN_POINTS = 40
LOGGED_OUT_POINTS = 60
DISCONNECT_CRITICAL_POINTS = 30
DISCONNECT_WARNING_POINTS = 15
FAILED_MESSAGE_POINTS = 20

# Minimum score for each level, checked from most to least severe
LEVEL_THRESHOLDS = [
    (RiskLevel.CRITICAL, 85),
    (RiskLevel.HIGH, 60),
    (RiskLevel.MEDIUM, 30),
]

RECOMMENDATIONS = {
    RiskLevel.CRITICAL: (
        "STOP ALL MESSAGING IMMEDIATELY. Disconnect and wait 24-48 hours before reconnecting."
    ),
    RiskLevel.HIGH: "Reduce messaging rate by 80%. Consider pausing for 1-2 hours.",
    RiskLevel.MEDIUM: "Reduce messaging rate by 50%. Increase delays between messages.",
    RiskLevel.LOW: "Operating normally. Continue monitoring.",
}

NO_ISSUES = "No issues detected"


class EventKind(str, Enum):
    DISCONNECT = "disconnect"
    FORBIDDEN = "forbidden"
    LOGGED_OUT = "logged_out"
    MESSAGE_FAILED = "message_failed"
    RECONNECT = "reconnect"


CONNECTION_LOSS_KINDS = {EventKind.DISCONNECT, EventKind.FORBIDDEN, EventKind.LOGGED_OUT}


@dataclass(frozen=True)
class HealthConfig:
    """Thresholds are counts within the last hour."""

    disconnect_warning_threshold: int = 3
    disconnect_critical_threshold: int = 5
    failed_message_threshold: int = 5
    auto_pause_at: RiskLevel = RiskLevel.HIGH

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, Any]] = None) -> "HealthConfig":
        return config_from_mapping(cls, overrides)


@dataclass(frozen=True)
class RiskEvent:
    kind: EventKind
    timestamp: float
    detail: Optional[str] = None


@dataclass
class RiskStats:
    disconnects_last_hour: int
    failed_messages_last_hour: int
    forbidden_errors: int
    uptime_ms: int
    last_disconnect_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "disconnects_last_hour": self.disconnects_last_hour,
            "failed_messages_last_hour": self.failed_messages_last_hour,
            "forbidden_errors": self.forbidden_errors,
            "uptime_ms": self.uptime_ms,
            "last_disconnect_reason": self.last_disconnect_reason,
        }


@dataclass
class RiskStatus:
    """Derived risk assessment; recomputed on every query."""

    level: RiskLevel
    score: int
    reasons: List[str]
    recommendation: str
    stats: RiskStats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "score": self.score,
            "reasons": list(self.reasons),
            "recommendation": self.recommendation,
            "stats": self.stats.to_dict(),
        }


@dataclass(frozen=True)
class RiskTransition:
    """Emitted once per actual change of risk level."""

    previous: RiskLevel
    current: RiskLevel
    status: RiskStatus
    timestamp: float


def classify_disconnect(reason: ReasonCode) -> EventKind:
    """Map a transport close reason onto an event kind."""
    code = str(reason)
    if code in FORBIDDEN_CODES:
        return EventKind.FORBIDDEN
    if code in LOGGED_OUT_CODES:
        return EventKind.LOGGED_OUT
    return EventKind.DISCONNECT


def level_for_score(score: int) -> RiskLevel:
    for level, minimum in LEVEL_THRESHOLDS:
        if score >= minimum:
            return level
    return RiskLevel.LOW


class RiskMonitor:
    """Scores recent connection events into a risk level."""

    def __init__(self, config: Optional[HealthConfig] = None, clock: Clock = now_ms) -> None:
        self.config = config or HealthConfig()
        self._clock = clock
        self._events: List[RiskEvent] = []
        self._started_at = clock()
        self._paused = False
        self._last_level = RiskLevel.LOW
        self._transitions: List[RiskTransition] = []

    def record_disconnect(self, reason: ReasonCode) -> None:
        """Record a connection close with its status code or reason name."""
        kind = classify_disconnect(reason)
        self._events.append(RiskEvent(kind=kind, timestamp=self._clock(), detail=str(reason)))
        LOGGER.debug("Recorded %s (reason=%s)", kind.value, reason)
        self._check_transition()

    def record_reconnect(self) -> None:
        self._events.append(RiskEvent(kind=EventKind.RECONNECT, timestamp=self._clock()))

    def record_message_failed(self, detail: Optional[str] = None) -> None:
        self._events.append(
            RiskEvent(kind=EventKind.MESSAGE_FAILED, timestamp=self._clock(), detail=detail)
        )
        self._check_transition()

    def get_status(self) -> RiskStatus:
        """Score the last hour of events."""
        now = self._clock()
        self._cleanup(now)
        cfg = self.config

        recent = [e for e in self._events if now - e.timestamp < SCORING_WINDOW_MS]
        disconnects = sum(1 for e in recent if e.kind is EventKind.DISCONNECT)
        forbidden = sum(1 for e in recent if e.kind is EventKind.FORBIDDEN)
        logged_out = sum(1 for e in recent if e.kind is EventKind.LOGGED_OUT)
        failed = sum(1 for e in recent if e.kind is EventKind.MESSAGE_FAILED)

        score = 0
        reasons: List[str] = []

        if forbidden > 0:
            score += FORBIDDEN_POINTS * forbidden
            plural = "s" if forbidden > 1 else ""
            reasons.append(f"{forbidden} forbidden (403) error{plural} in last hour")

        if logged_out > 0:
            score += LOGGED_OUT_POINTS
            reasons.append("Logged out by provider, possible temporary ban")

        if disconnects >= cfg.disconnect_critical_threshold:
            score += DISCONNECT_CRITICAL_POINTS
            reasons.append(f"{disconnects} disconnects in last hour (critical threshold)")
        elif disconnects >= cfg.disconnect_warning_threshold:
            score += DISCONNECT_WARNING_POINTS
            reasons.append(f"{disconnects} disconnects in last hour")

        if failed >= cfg.failed_message_threshold:
            score += FAILED_MESSAGE_POINTS
            reasons.append(f"{failed} failed messages in last hour")

        score = max(0, min(100, score))
        level = level_for_score(score)

        last_loss = next(
            (e for e in reversed(self._events) if e.kind in CONNECTION_LOSS_KINDS), None
        )

        return RiskStatus(
            level=level,
            score=score,
            reasons=reasons or [NO_ISSUES],
            recommendation=RECOMMENDATIONS[level],
            stats=RiskStats(
                disconnects_last_hour=disconnects,
                failed_messages_last_hour=failed,
                forbidden_errors=forbidden,
                uptime_ms=round(now - self._started_at),
                last_disconnect_reason=last_loss.detail if last_loss else None,
            ),
        )

    def is_paused(self) -> bool:
        """Manual pause, or current level at/above ``auto_pause_at``."""
        if self._paused:
            return True
        return self.get_status().level.at_least(self.config.auto_pause_at)

    def set_paused(self, paused: bool) -> None:
        self._paused = paused

    @property
    def manually_paused(self) -> bool:
        return self._paused

    def drain_transitions(self) -> List[RiskTransition]:
        """Return and clear level changes observed since the last drain."""
        drained, self._transitions = self._transitions, []
        return drained

    def reset(self) -> None:
        self._events = []
        self._started_at = self._clock()
        self._paused = False
        self._last_level = RiskLevel.LOW
        self._transitions = []

    def _cleanup(self, now: float) -> None:
        self._events = [e for e in self._events if now - e.timestamp < RETENTION_MS]

    def _check_transition(self) -> None:
        status = self.get_status()
        if status.level is self._last_level:
            return

        previous, self._last_level = self._last_level, status.level
        self._transitions.append(
            RiskTransition(previous=previous, current=status.level, status=status, timestamp=self._clock())
        )
        log = LOGGER.warning if status.level.at_least(RiskLevel.HIGH) else LOGGER.info
        log(
            "Risk level %s -> %s (score %d): %s",
            previous.value,
            status.level.value,
            status.score,
            "; ".join(status.reasons),
        )


__all__ = [
    "EventKind",
    "HealthConfig",
    "RiskEvent",
    "RiskStats",
    "RiskStatus",
    "RiskTransition",
    "RiskMonitor",
    "RECOMMENDATIONS",
    "classify_disconnect",
    "level_for_score",
]
