"""Tests for the pacing limiter."""
from __future__ import annotations

import asyncio

from pacing.limiter import BLOCK, PacingLimiter, RateLimiterConfig

MINUTE = 60_000
HOUR = 3_600_000
DAY = 86_400_000


def make_limiter(clock, rng, **overrides) -> PacingLimiter:
    return PacingLimiter(RateLimiterConfig(**overrides), clock=clock, rng=rng)


# ============================================================================
# Delay composition
# ============================================================================


class TestDelayComposition:
    """Base jitter, new-chat penalty, spacing floor and typing time."""

    def test_first_message_to_new_chat(self, clock, rng):
        limiter = make_limiter(clock, rng)

        delay = asyncio.run(limiter.get_delay("chat-1", "hello"))

        # burst jitter [750, 1500] + new chat [1500, 3000] + typing [75, 150]
        assert 2325 <= delay <= 4650

    def test_known_chat_skips_new_chat_penalty(self, clock, rng):
        limiter = make_limiter(clock, rng)
        limiter.record("chat-1", "first")
        clock.advance(40_000)

        delay = limiter.compute_delay("chat-1", "")

        assert 750 <= delay <= 1500

    def test_enforces_min_spacing_since_last_send(self, clock, rng):
        limiter = make_limiter(clock, rng)
        limiter.record("chat-1", "first")
        clock.advance(100)

        delay = limiter.compute_delay("chat-1", "")

        assert delay >= 1400

    def test_burst_allowance_then_full_jitter(self, clock, rng):
        limiter = make_limiter(clock, rng)
        for i in range(3):
            limiter.record("chat-1", f"message {i}")
            clock.advance(1000)
        clock.advance(1000)

        delay = limiter.compute_delay("chat-1", "")

        assert 1500 <= delay <= 5000

    def test_burst_resets_after_silence(self, clock, rng):
        limiter = make_limiter(clock, rng)
        for i in range(3):
            limiter.record("chat-1", f"message {i}")
            clock.advance(1000)
        clock.advance(31_000)

        delay = limiter.compute_delay("chat-1", "")

        assert 750 <= delay <= 1500

    def test_typing_time_is_capped(self, clock, rng):
        limiter = make_limiter(clock, rng)
        limiter.record("chat-1", "first")
        clock.advance(40_000)

        delay = limiter.compute_delay("chat-1", "x" * 10_000)

        # burst jitter + typing capped at [1500, 3000]
        assert 2250 <= delay <= 4500

    def test_typing_time_counts_utf16_units(self, clock, rng):
        limiter = make_limiter(clock, rng, min_delay_ms=0, max_delay_ms=0, new_chat_delay_ms=0)

        # 30 emoji are 60 UTF-16 units: typing jitter [900, 1800]
        delay = limiter.compute_delay("chat-1", "\U0001F600" * 30)

        assert 900 <= delay <= 1800

    def test_never_negative(self, clock, rng):
        limiter = make_limiter(clock, rng, min_delay_ms=0, max_delay_ms=0, new_chat_delay_ms=0)

        for i in range(50):
            assert limiter.compute_delay(f"chat-{i}", "") >= 0


# ============================================================================
# Window limits
# ============================================================================


class TestWindowLimits:
    """Per-minute/hour waits and hard blocks."""

    def test_minute_cap_waits_for_oldest_to_expire(self, clock, rng):
        limiter = make_limiter(clock, rng)
        for i in range(8):
            limiter.record(f"chat-{i}", f"message {i}")
            clock.advance(1000)
        clock.advance(2000)  # 10s after the first send

        assert limiter.compute_delay("chat-x", "next") == MINUTE - 10_000

    def test_hour_cap_waits_for_oldest_to_expire(self, clock, rng):
        limiter = make_limiter(clock, rng, max_per_minute=100, max_per_hour=3)
        for i in range(3):
            limiter.record(f"chat-{i}", f"message {i}")
            clock.advance(MINUTE)
        clock.advance(2 * MINUTE)  # 5 minutes after the first send

        assert limiter.compute_delay("chat-x", "next") == HOUR - 5 * MINUTE

    def test_daily_cap_blocks(self, clock, rng):
        limiter = make_limiter(clock, rng, max_per_day=2)
        limiter.record("chat-1", "one")
        clock.advance(MINUTE)
        limiter.record("chat-2", "two")
        clock.advance(MINUTE)

        assert limiter.compute_delay("chat-3", "three") == BLOCK

    def test_daily_cap_takes_precedence_over_hour_wait(self, clock, rng):
        limiter = make_limiter(clock, rng, max_per_day=2, max_per_hour=2)
        limiter.record("chat-1", "one")
        limiter.record("chat-2", "two")

        assert limiter.compute_delay("chat-3", "three") == BLOCK

    def test_identical_message_limit_blocks(self, clock, rng):
        limiter = make_limiter(clock, rng)
        for i in range(3):
            limiter.record(f"chat-{i}", "Big sale today!")
            clock.advance(MINUTE)

        assert limiter.compute_delay("chat-9", "Big sale today!") == BLOCK
        assert limiter.compute_delay("chat-9", "Big sale today") != BLOCK

    def test_identical_counts_survive_while_any_record_is_young(self, clock, rng):
        limiter = make_limiter(clock, rng)
        for i in range(3):
            limiter.record(f"chat-{i}", "promo")
        clock.advance(23 * HOUR)
        limiter.record("chat-9", "other")
        clock.advance(2 * HOUR)

        # the promo sends have aged out, but the counter is only cleared
        # once the whole history is empty
        assert limiter.compute_delay("chat-5", "promo") == BLOCK

        clock.advance(23 * HOUR)

        assert limiter.compute_delay("chat-5", "promo") != BLOCK

    def test_history_purged_after_a_day(self, clock, rng):
        limiter = make_limiter(clock, rng, max_per_day=1)
        limiter.record("chat-1", "Big sale today!")
        assert limiter.compute_delay("chat-2", "other") == BLOCK

        clock.advance(DAY)

        assert limiter.compute_delay("chat-2", "other") != BLOCK
        assert limiter.stats().last_day == 0


# ============================================================================
# Reads and bookkeeping
# ============================================================================


class TestLimiterState:
    """Pure reads, stats and reset."""

    def test_get_delay_does_not_mutate(self, clock, rng):
        limiter = make_limiter(clock, rng)
        for i in range(8):
            limiter.record(f"chat-{i}", f"message {i}")

        first = limiter.compute_delay("chat-x", "next")
        second = limiter.compute_delay("chat-x", "next")

        assert first == second == MINUTE
        assert limiter.stats().last_minute == 8
        assert not limiter.is_known("chat-x")

    def test_stats(self, clock, rng):
        limiter = make_limiter(clock, rng)
        limiter.record("chat-1", "a")
        clock.advance(2 * MINUTE)
        limiter.record("chat-2", "b")

        stats = limiter.stats()

        assert stats.last_minute == 1
        assert stats.last_hour == 2
        assert stats.last_day == 2
        assert stats.known_chats == 2
        assert stats.to_dict()["limits"] == {"per_minute": 8, "per_hour": 200, "per_day": 1500}

    def test_reset_forgets_everything(self, clock, rng):
        limiter = make_limiter(clock, rng, max_per_day=1)
        limiter.record("chat-1", "a")

        limiter.reset()

        assert limiter.compute_delay("chat-1", "a") != BLOCK
        assert not limiter.is_known("chat-1")
        assert limiter.stats().last_day == 0

    def test_config_from_mapping(self):
        config = RateLimiterConfig.from_mapping(
            {"maxPerMinute": 5, "min_delay_ms": "2000", "maxPerDay": -3, "unknown": True}
        )

        assert config.max_per_minute == 5
        assert config.min_delay_ms == 2000
        assert config.max_per_day == 1500
