"""Transport adapter that routes every send through the anti-ban gate."""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Mapping, Optional

from core.exceptions import SendBlockedError
from core.logging_config import get_logger
from domain.antiban import AntiBanService

LOGGER = get_logger(__name__)

TransportSend = Callable[..., Awaitable[Any]]
Sleep = Callable[[float], Awaitable[Any]]


def extract_text(payload: Any) -> str:
    """Text the limiter should look at: ``text``, ``caption`` or ``image.caption``."""
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, Mapping):
        return ""
    for key in ("text", "caption"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    image = payload.get("image")
    if isinstance(image, Mapping) and isinstance(image.get("caption"), str):
        return image["caption"]
    return ""


class GuardedSender:
    """
    Wraps an async transport ``send(recipient, payload, **kwargs)``.

    Usage:
        sender = GuardedSender(transport.send_message, AntiBanService())
        await sender.send(chat_id, {"text": "Hello!"})
        transport.on("connection.update", sender.handle_connection_update)
    """

    def __init__(
        self,
        send: TransportSend,
        service: Optional[AntiBanService] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._send = send
        self.service = service or AntiBanService()
        self._sleep = sleep

    async def send(self, recipient: str, payload: Any, **kwargs: Any) -> Any:
        """
        Send through the gate.

        Raises:
            SendBlockedError: If the engine refused the message.
        """
        text = extract_text(payload)
        decision = await self.service.before_send(recipient, text)
        if not decision.allowed:
            raise SendBlockedError(decision.reason or "blocked", decision=decision)

        if decision.delay_ms > 0:
            await self._sleep(decision.delay_ms / 1000)

        try:
            result = await self._send(recipient, payload, **kwargs)
        except Exception as e:
            self.service.after_send_failed(str(e))
            raise

        self.service.after_send(recipient, text)
        return result

    def handle_connection_update(self, update: Mapping[str, Any]) -> None:
        """
        Feed a transport connection update into the risk monitor.

        ``{"connection": "close", "status_code": 403}`` records a disconnect
        (``"unknown"`` when no code is given); ``{"connection": "open"}``
        records a reconnect.
        """
        state = update.get("connection")
        if state == "close":
            reason = update.get("status_code") or _nested_status_code(update) or "unknown"
            LOGGER.info(f"Connection closed ({reason})")
            self.service.on_disconnect(reason)
        elif state == "open":
            self.service.on_reconnect()


def _nested_status_code(update: Mapping[str, Any]) -> Optional[Any]:
    # lastDisconnect.error.output.statusCode, as reported by socket libraries
    node: Any = update.get("last_disconnect") or update.get("lastDisconnect")
    for key in ("error", "output", "statusCode"):
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


__all__ = ["GuardedSender", "extract_text"]
