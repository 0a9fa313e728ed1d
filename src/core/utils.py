"""Core utility functions."""
from __future__ import annotations

import enum
import re
import time
from dataclasses import fields, replace
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Type, TypeVar

from core.logging_config import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")

MINUTE_MS = 60_000
HOUR_MS = 3_600_000
DAY_MS = 86_400_000

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def utcnow() -> datetime:
    """Get current UTC datetime with timezone info. Always use this instead of datetime.now()."""
    return datetime.now(timezone.utc)


def now_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000


def to_snake_case(name: str) -> str:
    """Convert ``maxPerMinute`` style option names to ``max_per_minute``."""
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()


def _coerce_option(value: Any, default: Any) -> Any:
    """
    Coerce a raw option value to the type of its default.

    Returns the default when the value is missing or malformed.
    """
    if value is None:
        return default
    if isinstance(default, bool):
        return value if isinstance(value, bool) else default
    if isinstance(default, enum.Enum):
        try:
            return type(default)(value.lower() if isinstance(value, str) else value)
        except (TypeError, ValueError):
            return default
    if isinstance(default, (int, float)):
        if isinstance(value, bool):
            return default
        try:
            number = float(value)
        except (TypeError, ValueError):
            return default
        if number != number or number < 0:  # NaN or negative
            return default
        if isinstance(default, int) and number.is_integer():
            return int(number)
        return number if isinstance(default, float) else default
    if isinstance(default, tuple):
        if isinstance(value, (list, tuple)) and len(value) == len(default):
            return tuple(value)
        return default
    if isinstance(default, str):
        return value if isinstance(value, str) else default
    if isinstance(default, list):
        if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
            return list(value)
        return default
    if isinstance(default, dict):
        if isinstance(value, Mapping) and all(
            isinstance(k, str) and isinstance(v, str) for k, v in value.items()
        ):
            return dict(value)
        return default
    # Optional fields without a typed default (tokens, callbacks)
    return value


def config_from_mapping(cls: Type[T], overrides: Optional[Mapping[str, Any]] = None) -> T:
    """
    Build a fully-populated config dataclass from a loose mapping.

    Unknown keys are ignored; missing or malformed values keep their
    documented defaults. Keys may be snake_case or camelCase.

    Args:
        cls: A dataclass whose fields all have defaults.
        overrides: Raw option values.

    Returns:
        Config instance.
    """
    config = cls()
    if not overrides:
        return config

    normalized = {to_snake_case(str(key)): value for key, value in overrides.items()}
    values: dict[str, Any] = {}
    for field in fields(cls):  # type: ignore[arg-type]
        if field.name not in normalized:
            continue
        default = getattr(config, field.name)
        coerced = _coerce_option(normalized[field.name], default)
        if coerced is not default:
            values[field.name] = coerced

    ignored = set(normalized) - {field.name for field in fields(cls)}  # type: ignore[arg-type]
    if ignored:
        LOGGER.debug("Ignoring unknown %s options: %s", cls.__name__, sorted(ignored))

    return replace(config, **values)  # type: ignore[type-var]


class CircuitBreaker:
    """
    Simple circuit breaker for external service calls.

    States:
    - CLOSED: Normal operation, calls pass through
    - OPEN: Service is down, calls fail fast
    - HALF_OPEN: Testing if service is back
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        half_open_max_calls: int = 1,
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Service name for logging.
            failure_threshold: Number of failures before opening circuit.
            recovery_timeout: Seconds to wait before trying again.
            half_open_max_calls: Successful test calls needed to close again.
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.half_open_max_calls = half_open_max_calls

        self.state = self.CLOSED
        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.half_open_calls = 0

    def can_execute(self) -> bool:
        """Check if a call can be made."""
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            if self.last_failure_time:
                elapsed = (utcnow() - self.last_failure_time).total_seconds()
                if elapsed >= self.recovery_timeout:
                    self.state = self.HALF_OPEN
                    self.half_open_calls = 0
                    LOGGER.info(f"Circuit breaker {self.name}: OPEN -> HALF_OPEN")
                    return True
            return False

        return self.half_open_calls < self.half_open_max_calls

    def record_success(self) -> None:
        """Record a successful call."""
        if self.state == self.HALF_OPEN:
            self.half_open_calls += 1
            if self.half_open_calls >= self.half_open_max_calls:
                self.state = self.CLOSED
                self.failure_count = 0
                LOGGER.info(f"Circuit breaker {self.name}: HALF_OPEN -> CLOSED")
        elif self.state == self.CLOSED:
            self.failure_count = 0

    def record_failure(self) -> None:
        """Record a failed call."""
        self.failure_count += 1
        self.last_failure_time = utcnow()

        if self.state == self.HALF_OPEN:
            self.state = self.OPEN
            LOGGER.warning(f"Circuit breaker {self.name}: HALF_OPEN -> OPEN (failure in test)")
        elif self.failure_count >= self.failure_threshold:
            self.state = self.OPEN
            LOGGER.warning(f"Circuit breaker {self.name}: CLOSED -> OPEN (threshold reached)")


__all__ = [
    "MINUTE_MS",
    "HOUR_MS",
    "DAY_MS",
    "utcnow",
    "now_ms",
    "to_snake_case",
    "config_from_mapping",
    "CircuitBreaker",
]
