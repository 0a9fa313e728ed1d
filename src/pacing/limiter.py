"""Pacing limiter: sliding-window send accounting and human-like delays.

Provider-side detection looks for too many messages per minute/hour/day,
identical bodies fanned out to many recipients, mechanically even timing and
inhuman typing speed. ``PacingLimiter`` answers "how long should the next
message wait" from its own send history and never reserves capacity: an
abandoned decision leaves no trace.
"""
from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Mapping, Optional, Set

from core.logging_config import get_logger
from core.types import Clock
from core.utils import DAY_MS, HOUR_MS, MINUTE_MS, config_from_mapping, now_ms
from .jitter import fingerprint, jitter, text_length

LOGGER = get_logger(__name__)

# Sentinel returned by get_delay when the message must not be sent
BLOCK = -1

BURST_RESET_MS = 30_000
TYPING_MS_PER_CHAR = 30
TYPING_MAX_MS = 3000
HOUR_FALLBACK_MS = 60_000
MINUTE_FALLBACK_MS = 10_000


@dataclass(frozen=True)
class RateLimiterConfig:
    """Pacing limits. All delays are in milliseconds."""

    max_per_minute: int = 8
    max_per_hour: int = 200
    max_per_day: int = 1500
    min_delay_ms: int = 1500
    max_delay_ms: int = 5000
    new_chat_delay_ms: int = 3000
    max_identical_messages: int = 3
    burst_allowance: int = 3

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, Any]] = None) -> "RateLimiterConfig":
        return config_from_mapping(cls, overrides)


@dataclass(frozen=True)
class SendRecord:
    """One reported send."""

    timestamp: float
    recipient_id: str
    fingerprint: str


@dataclass
class PacingStats:
    """Window counts at the time of the query."""

    last_minute: int
    last_hour: int
    last_day: int
    limits: Dict[str, int] = field(default_factory=dict)
    known_chats: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_minute": self.last_minute,
            "last_hour": self.last_hour,
            "last_day": self.last_day,
            "limits": dict(self.limits),
            "known_chats": self.known_chats,
        }


class PacingLimiter:
    """Tracks per-recipient and global send history in sliding windows."""

    def __init__(
        self,
        config: Optional[RateLimiterConfig] = None,
        clock: Clock = now_ms,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or RateLimiterConfig()
        self._clock = clock
        self._rng = rng
        self._records: Deque[SendRecord] = deque()
        self._identical_counts: Dict[str, int] = {}
        self._known_chats: Set[str] = set()
        self._burst_count = 0
        self._last_send_at = 0.0

    async def get_delay(self, recipient_id: str, content: str) -> int:
        """
        Delay before the next message may go out.

        Async only so callers can compose it with other async gates; no
        suspension happens inside.

        Returns:
            Delay in ms (>= 0), or BLOCK.
        """
        return self.compute_delay(recipient_id, content)

    def compute_delay(self, recipient_id: str, content: str) -> int:
        """Synchronous form of :meth:`get_delay`."""
        now = self._clock()
        self._cleanup(now)
        cfg = self.config

        if self._count_within(now, DAY_MS) >= cfg.max_per_day:
            LOGGER.info("Daily cap reached (%d/day)", cfg.max_per_day)
            return BLOCK

        if self._count_within(now, HOUR_MS) >= cfg.max_per_hour:
            return self._wait_for_window(now, HOUR_MS, HOUR_FALLBACK_MS)

        if self._count_within(now, MINUTE_MS) >= cfg.max_per_minute:
            return self._wait_for_window(now, MINUTE_MS, MINUTE_FALLBACK_MS)

        if self._identical_counts.get(fingerprint(content), 0) >= cfg.max_identical_messages:
            LOGGER.info("Identical message limit reached (%d copies)", cfg.max_identical_messages)
            return BLOCK

        if self._effective_burst(now) < cfg.burst_allowance:
            delay = jitter(cfg.min_delay_ms * 0.5, cfg.min_delay_ms, self._rng)
        else:
            delay = jitter(cfg.min_delay_ms, cfg.max_delay_ms, self._rng)

        if recipient_id not in self._known_chats:
            delay += jitter(cfg.new_chat_delay_ms * 0.5, cfg.new_chat_delay_ms, self._rng)

        since_last = now - self._last_send_at
        if since_last < cfg.min_delay_ms:
            delay = max(delay, cfg.min_delay_ms - since_last)

        typing_ms = min(text_length(content) * TYPING_MS_PER_CHAR, TYPING_MAX_MS)
        delay += jitter(typing_ms * 0.5, typing_ms, self._rng)

        return max(0, round(delay))

    def record(self, recipient_id: str, content: str) -> None:
        """Record a send the transport actually accepted."""
        now = self._clock()
        digest = fingerprint(content)

        self._records.append(SendRecord(timestamp=now, recipient_id=recipient_id, fingerprint=digest))
        self._known_chats.add(recipient_id)
        self._identical_counts[digest] = self._identical_counts.get(digest, 0) + 1

        if now - self._last_send_at > BURST_RESET_MS:
            self._burst_count = 0
        self._burst_count += 1
        self._last_send_at = now

    def stats(self) -> PacingStats:
        """Snapshot of last-minute/hour/day counts."""
        now = self._clock()
        self._cleanup(now)
        return PacingStats(
            last_minute=self._count_within(now, MINUTE_MS),
            last_hour=self._count_within(now, HOUR_MS),
            last_day=self._count_within(now, DAY_MS),
            limits={
                "per_minute": self.config.max_per_minute,
                "per_hour": self.config.max_per_hour,
                "per_day": self.config.max_per_day,
            },
            known_chats=len(self._known_chats),
        )

    def reset(self) -> None:
        """Forget all send history."""
        self._records.clear()
        self._identical_counts.clear()
        self._known_chats.clear()
        self._burst_count = 0
        self._last_send_at = 0.0

    def is_known(self, recipient_id: str) -> bool:
        return recipient_id in self._known_chats

    def _effective_burst(self, now: float) -> int:
        # The counter restarts on the next record after 30s of silence
        if now - self._last_send_at > BURST_RESET_MS:
            return 0
        return self._burst_count

    def _count_within(self, now: float, window_ms: int) -> int:
        return sum(1 for r in self._records if now - r.timestamp < window_ms)

    def _wait_for_window(self, now: float, window_ms: int, fallback_ms: int) -> int:
        oldest = next((r for r in self._records if now - r.timestamp < window_ms), None)
        if oldest is None:
            return fallback_ms
        return max(0, round(oldest.timestamp + window_ms - now))

    def _cleanup(self, now: float) -> None:
        while self._records and now - self._records[0].timestamp >= DAY_MS:
            self._records.popleft()
        # Coarse reset: counters survive as long as any record is inside 24h
        if not self._records:
            self._identical_counts.clear()


__all__ = [
    "BLOCK",
    "RateLimiterConfig",
    "SendRecord",
    "PacingStats",
    "PacingLimiter",
]
