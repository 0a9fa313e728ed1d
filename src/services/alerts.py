"""Risk alert delivery to webhooks, Telegram and Discord.

Delivery is async: hosts drain risk changes from ``AntiBanService`` and
await ``notify`` (or ``AntiBanService.flush_alerts``) from their own task, so
the send path never waits on a webhook.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

import httpx

from core.config import Settings
from core.exceptions import AlertDeliveryError
from core.logging_config import get_logger, log_external_call
from core.types import Clock, RiskLevel
from core.utils import CircuitBreaker, config_from_mapping, now_ms, utcnow
from risk.monitor import RiskStatus, RiskTransition
from services.retry import webhook_retrying

LOGGER = get_logger(__name__)

ALERT_SOURCE = "antiban-engine"
TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"

LEVEL_EMOJI = {
    RiskLevel.LOW: "🟢",
    RiskLevel.MEDIUM: "🟡",
    RiskLevel.HIGH: "🟠",
    RiskLevel.CRITICAL: "🔴",
}

DISCORD_COLORS = {
    RiskLevel.LOW: 0x00FF00,
    RiskLevel.MEDIUM: 0xFFFF00,
    RiskLevel.HIGH: 0xFF8800,
    RiskLevel.CRITICAL: 0xFF0000,
}


@dataclass(frozen=True)
class AlertConfig:
    """Where and when to send risk alerts."""

    urls: List[str] = field(default_factory=list)
    min_risk_level: RiskLevel = RiskLevel.MEDIUM
    cooldown_ms: int = 300_000
    include_stats: bool = True
    headers: Dict[str, str] = field(default_factory=dict)
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    discord_webhook_url: Optional[str] = None
    timeout_seconds: float = 10.0
    max_attempts: int = 3

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, Any]] = None) -> "AlertConfig":
        return config_from_mapping(cls, overrides)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AlertConfig":
        return cls(
            urls=list(settings.alert_webhook_urls),
            min_risk_level=RiskLevel.parse(settings.alert_min_risk_level, RiskLevel.MEDIUM),
            cooldown_ms=settings.alert_cooldown_ms,
            telegram_bot_token=settings.telegram_bot_token,
            telegram_chat_id=settings.telegram_chat_id,
            discord_webhook_url=settings.discord_webhook_url,
        )

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)


class WebhookAlerts:
    """
    Posts risk alerts to every configured target.

    Alerts below ``min_risk_level`` or inside the cooldown window are dropped.
    Delivery failures are logged per target and never propagate: alerting
    must not be able to break the send path.
    """

    def __init__(
        self,
        config: Optional[AlertConfig] = None,
        clock: Clock = now_ms,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self.config = config or AlertConfig()
        self._clock = clock
        self._client = client
        self._sleep = sleep
        self._last_alert_at: Optional[float] = None
        self._circuits: Dict[str, CircuitBreaker] = {}

    async def alert(self, status: RiskStatus) -> bool:
        """
        Send an alert for a risk status.

        Returns:
            True if the alert passed threshold and cooldown and was dispatched.
        """
        if not status.level.at_least(self.config.min_risk_level):
            LOGGER.debug(f"Risk {status.level.value} below alert threshold")
            return False

        now = self._clock()
        if self._last_alert_at is not None and now - self._last_alert_at < self.config.cooldown_ms:
            LOGGER.debug("Alert cooldown active, skipping")
            return False
        self._last_alert_at = now

        payload = self.build_payload(status)
        for url in self.config.urls:
            await self._deliver("webhook", url, payload)

        if self.config.telegram_enabled:
            url = TELEGRAM_API_URL.format(token=self.config.telegram_bot_token)
            await self._deliver(
                "telegram",
                url,
                {
                    "chat_id": self.config.telegram_chat_id,
                    "text": self.format_telegram(status),
                    "parse_mode": "Markdown",
                },
            )

        if self.config.discord_webhook_url:
            await self._deliver("discord", self.config.discord_webhook_url, self.format_discord(status))

        return True

    async def notify(self, transition: RiskTransition) -> bool:
        """Alert sink hook for ``AntiBanService``."""
        return await self.alert(transition.status)

    def build_payload(self, status: RiskStatus) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "source": ALERT_SOURCE,
            "timestamp": utcnow().isoformat(),
            "risk": status.level.value,
            "score": status.score,
            "recommendation": status.recommendation,
            "reasons": list(status.reasons),
        }
        if self.config.include_stats:
            payload["stats"] = status.stats.to_dict()
        return payload

    @staticmethod
    def format_telegram(status: RiskStatus) -> str:
        reasons = "\n".join(f"• {reason}" for reason in status.reasons)
        return (
            f"{LEVEL_EMOJI[status.level]} *Anti-ban Alert*\n\n"
            f"Risk: *{status.level.value.upper()}* (score: {status.score})\n"
            f"{status.recommendation}\n\n"
            f"Reasons:\n{reasons}"
        )

    @staticmethod
    def format_discord(status: RiskStatus) -> Dict[str, Any]:
        return {
            "embeds": [
                {
                    "title": "🛡️ Anti-ban Alert",
                    "color": DISCORD_COLORS[status.level],
                    "fields": [
                        {"name": "Risk", "value": status.level.value.upper(), "inline": True},
                        {"name": "Score", "value": str(status.score), "inline": True},
                        {"name": "Recommendation", "value": status.recommendation},
                        {"name": "Reasons", "value": "\n".join(status.reasons)},
                    ],
                    "timestamp": utcnow().isoformat(),
                }
            ]
        }

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _circuit(self, target: str) -> CircuitBreaker:
        if target not in self._circuits:
            self._circuits[target] = CircuitBreaker(
                name=f"{target}_alerts", failure_threshold=3, recovery_timeout=300
            )
        return self._circuits[target]

    async def _deliver(self, target: str, url: str, payload: Dict[str, Any]) -> bool:
        circuit = self._circuit(target)
        if not circuit.can_execute():
            LOGGER.warning(f"{target} alert circuit breaker is open")
            return False

        start = time.perf_counter()
        try:
            async for attempt in webhook_retrying(self.config.max_attempts, sleep=self._sleep):
                with attempt:
                    await self._post(url, payload)
        except Exception as e:
            circuit.record_failure()
            log_external_call(
                LOGGER, target, "send_alert", False, (time.perf_counter() - start) * 1000,
                error=str(e),
            )
            LOGGER.error(f"Failed to send {target} alert: {e}")
            return False

        circuit.record_success()
        log_external_call(LOGGER, target, "send_alert", True, (time.perf_counter() - start) * 1000)
        return True

    async def _post(self, url: str, payload: Dict[str, Any]) -> None:
        headers = {"Content-Type": "application/json", **self.config.headers}
        if self._client is not None:
            response = await self._client.post(
                url, json=payload, headers=headers, timeout=self.config.timeout_seconds
            )
        else:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                response = await client.post(url, json=payload, headers=headers)
        if response.status_code >= 400:
            raise AlertDeliveryError(f"Webhook returned HTTP {response.status_code}")


__all__ = ["AlertConfig", "WebhookAlerts", "ALERT_SOURCE"]
