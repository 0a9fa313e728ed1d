"""Time-of-day pacing helper.

Messages sent at 3 AM look automated. ``ActivitySchedule`` keeps sending
inside an active window and scales delays for weekends, peak hours and lunch.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import pytz

from core.config import Settings
from core.logging_config import get_logger
from core.utils import config_from_mapping

LOGGER = get_logger(__name__)

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


@dataclass(frozen=True)
class SchedulerConfig:
    """Hours are 24h clock values in ``timezone``; ranges are [start, end)."""

    timezone: str = "UTC"
    active_hours: Tuple[int, int] = (8, 21)
    weekend_factor: float = 0.5
    peak_hours: Tuple[int, int] = (10, 14)
    peak_factor: float = 1.3
    lunch_break: Tuple[int, int] = (12, 13)
    lunch_factor: float = 0.5

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, Any]] = None) -> "SchedulerConfig":
        return config_from_mapping(cls, overrides)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SchedulerConfig":
        return cls(
            timezone=settings.schedule_timezone,
            active_hours=(settings.active_hour_start, settings.active_hour_end),
        )


class ActivitySchedule:
    """Speed factor and active-window calculations for one timezone."""

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or SchedulerConfig()
        try:
            self._tz = pytz.timezone(self.config.timezone)
        except pytz.UnknownTimeZoneError:
            LOGGER.warning("Unknown timezone %r, falling back to UTC", self.config.timezone)
            self._tz = pytz.utc
        self._now = now or (lambda: datetime.now(pytz.utc))

    def local_now(self) -> datetime:
        current = self._now()
        if current.tzinfo is None:
            current = pytz.utc.localize(current)
        return current.astimezone(self._tz)

    def is_active_time(self) -> bool:
        """Check if now is within active hours."""
        start, end = self.config.active_hours
        return start <= self.local_now().hour < end

    def get_speed_factor(self) -> float:
        """
        Speed multiplier for the current time.

        Returns:
            > 1 faster, < 1 slower, 0 when sending should not happen.
        """
        if not self.is_active_time():
            return 0.0

        current = self.local_now()
        hour = current.hour
        factor = 1.0

        if current.weekday() >= 5:
            factor *= self.config.weekend_factor

        peak_start, peak_end = self.config.peak_hours
        if peak_start <= hour < peak_end:
            factor *= self.config.peak_factor

        lunch_start, lunch_end = self.config.lunch_break
        if lunch_start <= hour < lunch_end:
            factor *= self.config.lunch_factor

        return factor

    def ms_until_active(self) -> int:
        """Milliseconds until the next active window opens (0 when active)."""
        if self.is_active_time():
            return 0

        current = self.local_now()
        start, end = self.config.active_hours
        next_day = current.date() + timedelta(days=1) if current.hour >= end else current.date()
        naive_start = datetime(next_day.year, next_day.month, next_day.day, start)
        next_active = self._tz.localize(naive_start)
        return max(0, round((next_active - current).total_seconds() * 1000))

    def adjust_delay(self, base_delay_ms: int) -> int:
        """Scale a delay by the speed factor; -1 means do not send now."""
        factor = self.get_speed_factor()
        if factor == 0:
            return -1
        return round(base_delay_ms / factor)

    def status(self) -> Dict[str, Any]:
        """Current schedule status."""
        current = self.local_now()
        start, end = self.config.active_hours
        return {
            "active": self.is_active_time(),
            "current_hour": current.hour,
            "day": DAY_NAMES[current.weekday()],
            "is_weekend": current.weekday() >= 5,
            "speed_factor": self.get_speed_factor(),
            "ms_until_active": self.ms_until_active(),
            "active_window": f"{start}:00 - {end}:00",
        }


__all__ = ["SchedulerConfig", "ActivitySchedule"]
