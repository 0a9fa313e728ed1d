"""Tests for the activity ramp and its persisted snapshot."""
from __future__ import annotations

import math

import pytest

from core.exceptions import WarmUpStateError
from warmup.ramp import ActivityRamp, WarmUpConfig, WarmUpSnapshot


class TestDailyLimits:
    """Geometric ramp and graduation."""

    @pytest.mark.parametrize(
        "day, expected",
        [(0, 20), (1, 36), (2, 65), (3, 117), (6, 680)],
    )
    def test_limit_grows_geometrically(self, clock, day, expected):
        ramp = ActivityRamp(clock=clock)
        clock.advance_days(day)

        assert ramp.get_daily_limit() == expected

    def test_can_send_until_limit_reached(self, clock):
        ramp = ActivityRamp(WarmUpConfig(day1_limit=3), clock=clock)

        for _ in range(3):
            assert ramp.can_send()
            ramp.record()

        assert not ramp.can_send()
        assert ramp.status().today_sent == 3

    def test_new_day_has_fresh_budget(self, clock):
        ramp = ActivityRamp(WarmUpConfig(day1_limit=1), clock=clock)
        ramp.record()
        assert not ramp.can_send()

        clock.advance_days(1)

        assert ramp.can_send()
        assert ramp.status().today_limit == 2  # round(1 * 1.8)

    def test_graduates_after_warm_up_days(self, clock):
        ramp = ActivityRamp(clock=clock)
        clock.advance_days(7)

        assert ramp.get_daily_limit() == math.inf
        status = ramp.status()
        assert status.phase == "graduated"
        assert status.today_limit == -1
        assert status.progress == 100
        assert ramp.export_state().graduated is True

    def test_zero_warm_up_days_graduates_immediately(self, clock):
        ramp = ActivityRamp(WarmUpConfig(warm_up_days=0), clock=clock)

        assert ramp.can_send()
        assert ramp.status().phase == "graduated"

    def test_status_progress(self, clock):
        ramp = ActivityRamp(clock=clock)
        clock.advance_days(3)
        ramp.record()

        status = ramp.status()

        assert status.phase == "warming"
        assert status.day == 4
        assert status.total_days == 7
        assert status.progress == 43
        assert status.today_sent == 1


class TestInactivity:
    """Graduated accounts that go quiet start over."""

    def test_long_silence_restarts_warm_up(self, clock):
        ramp = ActivityRamp(clock=clock)
        clock.advance_days(7)
        ramp.record()
        assert ramp.get_daily_limit() == math.inf

        clock.advance_hours(73)

        assert ramp.can_send()
        status = ramp.status()
        assert status.phase == "warming"
        assert status.day == 1
        assert status.today_limit == 20

    def test_short_silence_keeps_graduation(self, clock):
        ramp = ActivityRamp(clock=clock)
        clock.advance_days(7)
        ramp.record()
        ramp.get_daily_limit()

        clock.advance_hours(71)

        assert ramp.can_send()
        assert ramp.status().phase == "graduated"

    def test_reset(self, clock):
        ramp = ActivityRamp(clock=clock)
        clock.advance_days(2)
        ramp.record()

        ramp.reset()

        assert ramp.current_day() == 0
        assert ramp.status().today_sent == 0


class TestSnapshot:
    """Export, restore and validation of persisted state."""

    def test_export_and_restore(self, clock):
        ramp = ActivityRamp(clock=clock)
        clock.advance_days(1)
        for _ in range(5):
            ramp.record()

        raw = ramp.export_state().to_json()
        restored = ActivityRamp(state=WarmUpSnapshot.from_json(raw), clock=clock)

        assert restored.status() == ramp.status()
        assert restored.export_state() == ramp.export_state()

    def test_serializes_camel_case(self, clock):
        data = ActivityRamp(clock=clock).export_state().to_dict()

        assert set(data) == {"version", "activatedAt", "lastActiveAt", "dailyCounts", "graduated"}

    def test_accepts_legacy_started_at(self):
        snapshot = WarmUpSnapshot.from_dict(
            {"startedAt": 1000, "lastActiveAt": 2000, "dailyCounts": [3], "graduated": False}
        )

        assert snapshot.activated_at == 1000
        assert snapshot.daily_counts == [3]

    @pytest.mark.parametrize(
        "payload",
        [
            {"activatedAt": 1000, "lastActiveAt": 2000, "dailyCounts": [-1], "graduated": False},
            {"activatedAt": 5000, "lastActiveAt": 2000, "dailyCounts": [], "graduated": False},
            {"version": 2, "activatedAt": 1000, "lastActiveAt": 2000, "dailyCounts": []},
            {"activatedAt": 1000, "lastActiveAt": 2000, "dailyCounts": [1.5]},
            {"activatedAt": 1000, "lastActiveAt": 2000, "graduated": "yes"},
            {"lastActiveAt": 2000},
        ],
    )
    def test_corrupt_snapshot_rejected(self, payload):
        with pytest.raises(WarmUpStateError):
            WarmUpSnapshot.from_dict(payload)

    def test_invalid_json_rejected(self):
        with pytest.raises(WarmUpStateError):
            WarmUpSnapshot.from_json("{not json")
        with pytest.raises(WarmUpStateError):
            WarmUpSnapshot.from_json("[1, 2]")
