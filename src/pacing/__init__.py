"""Send pacing: sliding-window limits, jitter and time-of-day scheduling."""
from .jitter import fingerprint, jitter, text_length
from .limiter import BLOCK, PacingLimiter, PacingStats, RateLimiterConfig, SendRecord
from .scheduler import ActivitySchedule, SchedulerConfig

__all__ = [
    "BLOCK",
    "PacingLimiter",
    "PacingStats",
    "RateLimiterConfig",
    "SendRecord",
    "ActivitySchedule",
    "SchedulerConfig",
    "fingerprint",
    "jitter",
    "text_length",
]
