"""Activity ramp: graduated daily limits for new or dormant accounts.

Providers scrutinize numbers that go from zero to hundreds of messages
overnight, and numbers that wake up after a long silence. The ramp enforces
``day1_limit * growth_factor ** day`` messages per elapsed day until
``warm_up_days`` have passed, then graduates to unbounded sending. A graduated
account that stays silent longer than ``inactivity_threshold_hours`` starts
over.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, ValidationError, model_validator

from core.exceptions import WarmUpStateError
from core.logging_config import get_logger
from core.types import Clock
from core.utils import DAY_MS, HOUR_MS, config_from_mapping, now_ms

LOGGER = get_logger(__name__)

SNAPSHOT_VERSION = 1

DayCount = Annotated[int, Field(strict=True, ge=0)]


@dataclass(frozen=True)
class WarmUpConfig:
    """Ramp shape and re-entry threshold."""

    warm_up_days: int = 7
    day1_limit: int = 20
    growth_factor: float = 1.8
    inactivity_threshold_hours: float = 72.0

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, Any]] = None) -> "WarmUpConfig":
        return config_from_mapping(cls, overrides)


class WarmUpSnapshot(BaseModel):
    """
    Versioned, validated ramp state for cross-restart persistence.

    Serialized with camelCase keys (``activatedAt``, ``lastActiveAt``,
    ``dailyCounts``, ``graduated``); ``startedAt`` is accepted on input for
    older exports.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    version: int = Field(default=SNAPSHOT_VERSION)
    activated_at: float = Field(
        ge=0,
        validation_alias=AliasChoices("activatedAt", "startedAt", "activated_at"),
        serialization_alias="activatedAt",
    )
    last_active_at: float = Field(
        ge=0,
        validation_alias=AliasChoices("lastActiveAt", "last_active_at"),
        serialization_alias="lastActiveAt",
    )
    daily_counts: List[DayCount] = Field(
        default_factory=list,
        validation_alias=AliasChoices("dailyCounts", "daily_counts"),
        serialization_alias="dailyCounts",
    )
    graduated: StrictBool = False

    @model_validator(mode="after")
    def check_consistency(self) -> "WarmUpSnapshot":
        if self.version != SNAPSHOT_VERSION:
            raise ValueError(f"unsupported snapshot version {self.version}")
        if self.last_active_at < self.activated_at:
            raise ValueError("lastActiveAt precedes activatedAt")
        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WarmUpSnapshot":
        """Parse and validate a snapshot, raising WarmUpStateError when corrupt."""
        try:
            return cls.model_validate(dict(data))
        except (ValidationError, TypeError, ValueError) as exc:
            raise WarmUpStateError(f"Invalid warm-up snapshot: {exc}") from exc

    @classmethod
    def from_json(cls, raw: str) -> "WarmUpSnapshot":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise WarmUpStateError(f"Warm-up snapshot is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise WarmUpStateError("Warm-up snapshot must be a JSON object")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class WarmUpStatus:
    """Ramp progress as shown to operators."""

    phase: str
    day: int
    total_days: int
    today_limit: int
    today_sent: int
    progress: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "day": self.day,
            "total_days": self.total_days,
            "today_limit": self.today_limit,
            "today_sent": self.today_sent,
            "progress": self.progress,
        }


@dataclass
class _RampState:
    activated_at: float
    last_active_at: float
    daily_counts: List[int] = field(default_factory=list)
    graduated: bool = False


class ActivityRamp:
    """Tracks sends per elapsed day since activation."""

    def __init__(
        self,
        config: Optional[WarmUpConfig] = None,
        state: Optional[WarmUpSnapshot] = None,
        clock: Clock = now_ms,
    ) -> None:
        self.config = config or WarmUpConfig()
        self._clock = clock
        if state is None:
            self._state = self._fresh_state()
        else:
            self._state = _RampState(
                activated_at=state.activated_at,
                last_active_at=state.last_active_at,
                daily_counts=list(state.daily_counts),
                graduated=state.graduated,
            )

    def get_daily_limit(self) -> float:
        """Today's cap; ``math.inf`` once graduated."""
        if self._state.graduated:
            return math.inf

        day = self.current_day()
        if day >= self.config.warm_up_days:
            self._state.graduated = True
            LOGGER.info("Warm-up complete after %d days, limits lifted", self.config.warm_up_days)
            return math.inf

        return math.floor(self.config.day1_limit * self.config.growth_factor ** day + 0.5)

    def can_send(self) -> bool:
        """Whether today's cap still has room (after the inactivity check)."""
        self._check_inactivity()

        if self._state.graduated:
            return True

        return self._today_count() < self.get_daily_limit()

    def record(self) -> None:
        """Count one accepted send against today."""
        day = self.current_day()
        counts = self._state.daily_counts
        while len(counts) <= day:
            counts.append(0)
        counts[day] += 1
        self._state.last_active_at = self._clock()

    def status(self) -> WarmUpStatus:
        limit = self.get_daily_limit()
        day = self.current_day()
        total = self.config.warm_up_days
        graduated = self._state.graduated
        return WarmUpStatus(
            phase="graduated" if graduated else "warming",
            day=min(day + 1, total),
            total_days=total,
            today_limit=-1 if limit == math.inf else int(limit),
            today_sent=self._today_count(),
            progress=100 if graduated else round(day / total * 100),
        )

    def export_state(self) -> WarmUpSnapshot:
        """Snapshot for the caller to persist verbatim."""
        return WarmUpSnapshot(
            activated_at=self._state.activated_at,
            last_active_at=self._state.last_active_at,
            daily_counts=list(self._state.daily_counts),
            graduated=self._state.graduated,
        )

    def reset(self) -> None:
        self._state = self._fresh_state()

    def current_day(self) -> int:
        """Zero-based elapsed day since activation."""
        elapsed = self._clock() - self._state.activated_at
        return max(0, int(elapsed // DAY_MS))

    def _today_count(self) -> int:
        day = self.current_day()
        counts = self._state.daily_counts
        return counts[day] if day < len(counts) else 0

    def _check_inactivity(self) -> None:
        idle_hours = (self._clock() - self._state.last_active_at) / HOUR_MS
        if self._state.graduated and idle_hours > self.config.inactivity_threshold_hours:
            LOGGER.warning(
                "Inactive for %.1f hours (threshold %.1f), re-entering warm-up",
                idle_hours,
                self.config.inactivity_threshold_hours,
            )
            self._state = self._fresh_state()

    def _fresh_state(self) -> _RampState:
        now = self._clock()
        return _RampState(activated_at=now, last_active_at=now)


__all__ = [
    "SNAPSHOT_VERSION",
    "WarmUpConfig",
    "WarmUpSnapshot",
    "WarmUpStatus",
    "ActivityRamp",
]
