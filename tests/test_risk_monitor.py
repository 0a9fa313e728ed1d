"""Tests for risk scoring, pausing and level transitions."""
from __future__ import annotations

import pytest

from core.types import RiskLevel
from risk.monitor import EventKind, HealthConfig, RiskMonitor, classify_disconnect, level_for_score


class TestClassification:
    @pytest.mark.parametrize(
        "reason, kind",
        [
            ("403", EventKind.FORBIDDEN),
            (403, EventKind.FORBIDDEN),
            ("forbidden", EventKind.FORBIDDEN),
            ("401", EventKind.LOGGED_OUT),
            ("loggedOut", EventKind.LOGGED_OUT),
            (428, EventKind.DISCONNECT),
            ("unknown", EventKind.DISCONNECT),
        ],
    )
    def test_classify_disconnect(self, reason, kind):
        assert classify_disconnect(reason) is kind

    @pytest.mark.parametrize(
        "score, level",
        [(0, RiskLevel.LOW), (29, RiskLevel.LOW), (30, RiskLevel.MEDIUM), (60, RiskLevel.HIGH), (85, RiskLevel.CRITICAL)],
    )
    def test_level_for_score(self, score, level):
        assert level_for_score(score) is level


class TestScoring:
    """Fresh scoring over the last hour."""

    def test_fresh_monitor_is_low(self, clock):
        status = RiskMonitor(clock=clock).get_status()

        assert status.level is RiskLevel.LOW
        assert status.score == 0
        assert status.reasons == ["No issues detected"]
        assert status.recommendation == "Operating normally. Continue monitoring."

    def test_forbidden_adds_forty(self, clock):
        monitor = RiskMonitor(clock=clock)
        monitor.record_disconnect("403")

        status = monitor.get_status()

        assert status.score == 40
        assert status.level is RiskLevel.MEDIUM
        assert any("forbidden" in reason for reason in status.reasons)
        assert status.stats.forbidden_errors == 1

    def test_forbidden_count_multiplies_and_clamps(self, clock):
        monitor = RiskMonitor(clock=clock)
        for _ in range(3):
            monitor.record_disconnect(403)

        status = monitor.get_status()

        assert status.score == 100
        assert status.level is RiskLevel.CRITICAL
        assert status.recommendation.startswith("STOP ALL MESSAGING IMMEDIATELY")

    def test_logged_out_is_a_single_contribution(self, clock):
        monitor = RiskMonitor(clock=clock)
        monitor.record_disconnect("401")
        monitor.record_disconnect("loggedOut")

        status = monitor.get_status()

        assert status.score == 60
        assert status.level is RiskLevel.HIGH

    def test_disconnect_thresholds_are_exclusive(self, clock):
        monitor = RiskMonitor(clock=clock)
        for _ in range(3):
            monitor.record_disconnect(428)
        assert monitor.get_status().score == 15

        for _ in range(2):
            monitor.record_disconnect(428)
        status = monitor.get_status()
        assert status.score == 30
        assert status.level is RiskLevel.MEDIUM
        assert status.stats.disconnects_last_hour == 5

    def test_custom_warning_threshold(self, clock):
        monitor = RiskMonitor(HealthConfig(disconnect_warning_threshold=2), clock=clock)
        monitor.record_disconnect("timeout")
        monitor.record_disconnect("timeout")

        assert monitor.get_status().score > 0

    def test_failed_messages(self, clock):
        monitor = RiskMonitor(clock=clock)
        for i in range(5):
            monitor.record_message_failed(f"error {i}")

        status = monitor.get_status()

        assert status.score == 20
        assert status.stats.failed_messages_last_hour == 5

    def test_reconnect_does_not_score(self, clock):
        monitor = RiskMonitor(clock=clock)
        for _ in range(10):
            monitor.record_reconnect()

        assert monitor.get_status().score == 0

    def test_events_decay_after_an_hour(self, clock):
        monitor = RiskMonitor(clock=clock)
        monitor.record_disconnect("403")

        clock.advance_hours(1)
        status = monitor.get_status()
        assert status.score == 0
        assert status.stats.last_disconnect_reason == "403"

        clock.advance_hours(5)
        assert monitor.get_status().stats.last_disconnect_reason is None

    def test_uptime(self, clock):
        monitor = RiskMonitor(clock=clock)
        clock.advance(12_345)

        assert monitor.get_status().stats.uptime_ms == 12_345

    def test_get_status_is_a_pure_read(self, clock):
        monitor = RiskMonitor(clock=clock)
        monitor.record_disconnect("403")

        assert monitor.get_status() == monitor.get_status()


class TestPausing:
    def test_auto_pause_at_threshold(self, clock):
        monitor = RiskMonitor(clock=clock)
        assert not monitor.is_paused()

        monitor.record_disconnect("401")

        assert monitor.is_paused()

    def test_auto_pause_level_is_configurable(self, clock):
        monitor = RiskMonitor(HealthConfig(auto_pause_at=RiskLevel.MEDIUM), clock=clock)
        monitor.record_disconnect("403")

        assert monitor.is_paused()

    def test_manual_pause_and_resume(self, clock):
        monitor = RiskMonitor(clock=clock)

        monitor.set_paused(True)
        assert monitor.is_paused()

        monitor.set_paused(False)
        assert not monitor.is_paused()

    def test_manual_resume_does_not_override_auto_pause(self, clock):
        monitor = RiskMonitor(clock=clock)
        monitor.record_disconnect("401")

        monitor.set_paused(False)

        assert monitor.is_paused()

    def test_reset(self, clock):
        monitor = RiskMonitor(clock=clock)
        monitor.record_disconnect("401")
        monitor.set_paused(True)
        clock.advance(5000)

        monitor.reset()

        assert not monitor.is_paused()
        status = monitor.get_status()
        assert status.score == 0
        assert status.stats.uptime_ms == 0
        assert monitor.drain_transitions() == []


class TestTransitions:
    """Level changes are reported once each."""

    def test_transition_on_level_change(self, clock):
        monitor = RiskMonitor(clock=clock)
        monitor.record_disconnect("403")

        transitions = monitor.drain_transitions()

        assert len(transitions) == 1
        assert transitions[0].previous is RiskLevel.LOW
        assert transitions[0].current is RiskLevel.MEDIUM
        assert transitions[0].status.score == 40

    def test_no_duplicate_when_level_unchanged(self, clock):
        monitor = RiskMonitor(clock=clock)
        monitor.record_disconnect("timeout")
        monitor.record_disconnect("timeout")
        monitor.record_disconnect("timeout")
        monitor.record_message_failed()

        assert monitor.drain_transitions() == []

    def test_escalation_sequence(self, clock):
        monitor = RiskMonitor(clock=clock)
        monitor.record_disconnect("403")
        monitor.record_disconnect("403")
        monitor.record_disconnect("403")

        levels = [t.current for t in monitor.drain_transitions()]

        assert levels == [RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]

    def test_get_status_never_emits(self, clock):
        monitor = RiskMonitor(clock=clock)
        monitor.record_disconnect("403")
        monitor.drain_transitions()

        clock.advance_hours(2)
        assert monitor.get_status().level is RiskLevel.LOW

        assert monitor.drain_transitions() == []

    def test_drain_clears_outbox(self, clock):
        monitor = RiskMonitor(clock=clock)
        monitor.record_disconnect("401")

        assert len(monitor.drain_transitions()) == 1
        assert monitor.drain_transitions() == []

    def test_decay_is_reported_on_next_mutation(self, clock):
        monitor = RiskMonitor(clock=clock)
        monitor.record_disconnect("403")
        monitor.drain_transitions()

        clock.advance_hours(2)
        monitor.record_message_failed()

        transitions = monitor.drain_transitions()
        assert [(t.previous, t.current) for t in transitions] == [(RiskLevel.MEDIUM, RiskLevel.LOW)]
