"""Anti-ban domain service - the per-account send decision point.

Combines the pacing limiter, the activity ramp and the risk monitor into one
decision per outbound message. The service never sends anything itself: the
caller asks ``before_send``, waits ``delay_ms``, performs the send and reports
the outcome through ``after_send`` / ``after_send_failed``.

Usage:
    service = AntiBanService(AntiBanConfig.from_settings(get_settings()))
    decision = await service.before_send(recipient, text)
    if decision.allowed:
        await asyncio.sleep(decision.delay_ms / 1000)
        await transport.send(recipient, text)
        service.after_send(recipient, text)

    # risk alerts go out from the host task, never inside the calls above
    await service.flush_alerts()
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol

from core.config import Settings
from core.logging_config import get_context_logger
from core.types import Clock, ReasonCode, RiskLevel
from core.utils import now_ms
from pacing.limiter import BLOCK, PacingLimiter, PacingStats, RateLimiterConfig
from risk.monitor import HealthConfig, RiskMonitor, RiskStatus, RiskTransition
from warmup.ramp import ActivityRamp, WarmUpConfig, WarmUpSnapshot, WarmUpStatus

RATE_LIMIT_REASON = "Rate limit exceeded or identical message spam detected"


class AlertSink(Protocol):
    """Anything that wants to hear about risk level changes."""

    async def notify(self, transition: RiskTransition) -> Any:
        ...


@dataclass(frozen=True)
class AntiBanConfig:
    """Fully populated configuration for all three components."""

    rate_limiter: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    warm_up: WarmUpConfig = field(default_factory=WarmUpConfig)
    health: HealthConfig = field(default_factory=HealthConfig)

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None) -> "AntiBanConfig":
        """
        Build from a nested mapping such as ``{"rateLimiter": {...}, "warmUp": {...}}``.

        Unknown sections and keys are ignored; malformed values keep defaults.
        """
        options = options or {}

        def section(*names: str) -> Optional[Mapping[str, Any]]:
            for name in names:
                value = options.get(name)
                if isinstance(value, Mapping):
                    return value
            return None

        return cls(
            rate_limiter=RateLimiterConfig.from_mapping(section("rate_limiter", "rateLimiter")),
            warm_up=WarmUpConfig.from_mapping(section("warm_up", "warmUp")),
            health=HealthConfig.from_mapping(section("health")),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "AntiBanConfig":
        return cls(
            rate_limiter=RateLimiterConfig(
                max_per_minute=settings.max_per_minute,
                max_per_hour=settings.max_per_hour,
                max_per_day=settings.max_per_day,
                min_delay_ms=settings.min_delay_ms,
                max_delay_ms=settings.max_delay_ms,
                new_chat_delay_ms=settings.new_chat_delay_ms,
                max_identical_messages=settings.max_identical_messages,
                burst_allowance=settings.burst_allowance,
            ),
            warm_up=WarmUpConfig(
                warm_up_days=settings.warm_up_days,
                day1_limit=settings.day1_limit,
                growth_factor=settings.growth_factor,
                inactivity_threshold_hours=settings.inactivity_threshold_hours,
            ),
            health=HealthConfig(
                disconnect_warning_threshold=settings.disconnect_warning_threshold,
                disconnect_critical_threshold=settings.disconnect_critical_threshold,
                failed_message_threshold=settings.failed_message_threshold,
                auto_pause_at=RiskLevel.parse(settings.auto_pause_at, RiskLevel.HIGH),
            ),
        )


@dataclass
class SendDecision:
    """Outcome of one ``before_send`` call."""

    allowed: bool
    delay_ms: int
    risk: RiskStatus
    reason: Optional[str] = None
    warm_up_day: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "delay_ms": self.delay_ms,
            "reason": self.reason,
            "risk": self.risk.to_dict(),
            "warm_up_day": self.warm_up_day,
        }


@dataclass
class AntiBanStats:
    """Aggregate counters merged with fresh component status."""

    messages_allowed: int
    messages_blocked: int
    total_delay_ms: int
    risk: RiskStatus
    warm_up: WarmUpStatus
    pacing: PacingStats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messages_allowed": self.messages_allowed,
            "messages_blocked": self.messages_blocked,
            "total_delay_ms": self.total_delay_ms,
            "risk": self.risk.to_dict(),
            "warm_up": self.warm_up.to_dict(),
            "pacing": self.pacing.to_dict(),
        }


class AntiBanService:
    """Gatekeeper for one messaging account."""

    def __init__(
        self,
        config: Optional[AntiBanConfig] = None,
        warm_up_state: Optional[WarmUpSnapshot] = None,
        clock: Clock = now_ms,
        alerts: Optional[AlertSink] = None,
        account_id: Optional[str] = None,
        limiter: Optional[PacingLimiter] = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            config: Component configuration; defaults everywhere when omitted.
            warm_up_state: Snapshot from a previous ``export_warm_up_state``.
            clock: Epoch-millisecond clock shared by all components.
            alerts: Optional sink for risk level changes, fed by
                :meth:`flush_alerts`.
            account_id: Included in log records for multi-account hosts.
            limiter: Pre-built limiter (e.g. with a seeded rng).
        """
        self.config = config or AntiBanConfig()
        self.account_id = account_id
        self.alerts = alerts
        self._log = get_context_logger(__name__, account_id=account_id)

        self.limiter = limiter or PacingLimiter(self.config.rate_limiter, clock=clock)
        self.ramp = ActivityRamp(self.config.warm_up, state=warm_up_state, clock=clock)
        self.monitor = RiskMonitor(self.config.health, clock=clock)

        self._transitions: List[RiskTransition] = []
        self._pending_alerts: List[RiskTransition] = []
        self.messages_allowed = 0
        self.messages_blocked = 0
        self.total_delay_ms = 0

    async def before_send(self, recipient: str, content: str) -> SendDecision:
        """
        Decide whether a message may go out now and how long to wait first.

        Call before every send. Nothing is reserved: abandoning an allowed
        decision leaves limiter and ramp untouched.
        """
        return self.evaluate(recipient, content)

    def evaluate(self, recipient: str, content: str) -> SendDecision:
        """Synchronous form of :meth:`before_send`."""
        risk = self.monitor.get_status()

        if self.monitor.manually_paused or risk.level.at_least(self.monitor.config.auto_pause_at):
            return self._block(
                f"Health risk {risk.level.value}: {risk.recommendation}",
                risk,
            )

        if not self.ramp.can_send():
            ramp = self.ramp.status()
            return self._block(
                f"Warm-up limit: {ramp.today_sent}/{ramp.today_limit} messages today (day {ramp.day})",
                risk,
                warm_up_day=ramp.day,
            )

        delay = self.limiter.compute_delay(recipient, content)
        if delay == BLOCK:
            return self._block(RATE_LIMIT_REASON, risk)

        self.total_delay_ms += delay
        return SendDecision(allowed=True, delay_ms=delay, risk=risk)

    def after_send(self, recipient: str, content: str) -> None:
        """Report a send the transport accepted."""
        self.limiter.record(recipient, content)
        self.ramp.record()
        self.messages_allowed += 1

    def after_send_failed(self, detail: Optional[str] = None) -> None:
        self.monitor.record_message_failed(detail)
        self._collect_transitions()

    def on_disconnect(self, reason: ReasonCode) -> None:
        self.monitor.record_disconnect(reason)
        self._collect_transitions()

    def on_reconnect(self) -> None:
        self.monitor.record_reconnect()

    def pause(self) -> None:
        self.monitor.set_paused(True)
        self._log.info("Sending paused manually")

    def resume(self) -> None:
        self.monitor.set_paused(False)
        self._log.info("Sending resumed")

    def reset(self) -> None:
        """Start over after a ban period: fresh risk, ramp, pacing and counters."""
        self.monitor.reset()
        self.ramp.reset()
        self.limiter.reset()
        self._transitions = []
        self._pending_alerts = []
        self.messages_allowed = 0
        self.messages_blocked = 0
        self.total_delay_ms = 0
        self._log.info("Reset, starting fresh warm-up")

    def export_warm_up_state(self) -> WarmUpSnapshot:
        return self.ramp.export_state()

    def get_stats(self) -> AntiBanStats:
        return AntiBanStats(
            messages_allowed=self.messages_allowed,
            messages_blocked=self.messages_blocked,
            total_delay_ms=self.total_delay_ms,
            risk=self.monitor.get_status(),
            warm_up=self.ramp.status(),
            pacing=self.limiter.stats(),
        )

    def drain_risk_transitions(self) -> List[RiskTransition]:
        """Risk level changes since the last drain, oldest first."""
        drained, self._transitions = self._transitions, []
        return drained

    async def flush_alerts(self) -> int:
        """
        Hand queued risk level changes to the alert sink.

        Recording events never talks to the network; hosts await this from
        their own task (or after a send) to deliver alerts.

        Returns:
            Number of transitions handed to the sink.
        """
        pending, self._pending_alerts = self._pending_alerts, []
        if self.alerts is None:
            return 0
        for transition in pending:
            await self.alerts.notify(transition)
        return len(pending)

    def _block(
        self,
        reason: str,
        risk: RiskStatus,
        warm_up_day: Optional[int] = None,
    ) -> SendDecision:
        self.messages_blocked += 1
        self._log.info(f"Send blocked: {reason}", extra={"risk_level": risk.level.value})
        return SendDecision(
            allowed=False,
            delay_ms=0,
            risk=risk,
            reason=reason,
            warm_up_day=warm_up_day,
        )

    def _collect_transitions(self) -> None:
        for transition in self.monitor.drain_transitions():
            self._transitions.append(transition)
            if self.alerts is not None:
                self._pending_alerts.append(transition)


__all__ = [
    "AlertSink",
    "AntiBanConfig",
    "AntiBanService",
    "AntiBanStats",
    "SendDecision",
    "RATE_LIMIT_REASON",
]
