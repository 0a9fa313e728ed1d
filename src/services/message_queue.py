"""Priority retry queue that drains through the anti-ban gate.

Instead of fire-and-forget sends, callers enqueue messages and let the queue
drain them one at a time through a guarded send function (usually
``GuardedSender.send``). Sends refused by the engine are retried later
without using up an attempt; transport failures back off exponentially and
end up in the dead-letter list after ``max_attempts``.
"""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from core.config import Settings
from core.exceptions import QueueError, QueueFullError, SendBlockedError
from core.logging_config import get_logger
from core.types import Clock, MessagePriority
from core.utils import config_from_mapping, now_ms

LOGGER = get_logger(__name__)

SendFunction = Callable[[str, Any], Awaitable[Any]]


@dataclass(frozen=True)
class QueueConfig:
    max_attempts: int = 3
    retry_base_delay_ms: int = 30_000
    max_queue_size: int = 1000
    priority_order: bool = True

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, Any]] = None) -> "QueueConfig":
        return config_from_mapping(cls, overrides)

    @classmethod
    def from_settings(cls, settings: Settings) -> "QueueConfig":
        return cls(
            max_attempts=settings.queue_max_attempts,
            retry_base_delay_ms=settings.queue_retry_base_delay_ms,
            max_queue_size=settings.queue_max_size,
        )


class QueuedMessage(BaseModel):
    """A message waiting to be sent. Serializable for persistence."""

    id: str
    recipient: str
    content: Any
    priority: MessagePriority = MessagePriority.NORMAL
    added_at: float
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=3, ge=1)
    last_error: Optional[str] = None
    scheduled_for: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def is_due(self, now: float) -> bool:
        return self.scheduled_for is None or self.scheduled_for <= now


class MessageQueue:
    """In-memory priority queue with retry and dead-lettering."""

    def __init__(
        self,
        config: Optional[QueueConfig] = None,
        send: Optional[SendFunction] = None,
        clock: Clock = now_ms,
    ) -> None:
        self.config = config or QueueConfig()
        self._send = send
        self._clock = clock
        self._queue: List[QueuedMessage] = []
        self._ids = itertools.count(1)
        self._processing = False
        self._task: Optional[asyncio.Task] = None
        self.dead_letters: List[QueuedMessage] = []
        self.sent_count = 0

    def set_send_function(self, send: SendFunction) -> None:
        self._send = send

    def add(
        self,
        recipient: str,
        content: Any,
        priority: Union[MessagePriority, str] = MessagePriority.NORMAL,
        scheduled_for: Optional[Union[datetime, float]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Enqueue a message.

        Args:
            recipient: Destination chat id.
            content: Transport payload passed verbatim to the send function.
            priority: ``high``, ``normal`` or ``low``.
            scheduled_for: Earliest send time (datetime or epoch ms).
            metadata: Free-form caller data kept with the message.

        Returns:
            The new message id.

        Raises:
            QueueFullError: If the queue already holds ``max_queue_size`` messages.
        """
        if len(self._queue) >= self.config.max_queue_size:
            raise QueueFullError(f"Queue full ({self.config.max_queue_size} messages)")

        now = self._clock()
        if isinstance(scheduled_for, datetime):
            scheduled_for = scheduled_for.timestamp() * 1000

        message = QueuedMessage(
            id=f"msg_{int(now)}_{next(self._ids)}",
            recipient=recipient,
            content=content,
            priority=MessagePriority(priority),
            added_at=now,
            max_attempts=self.config.max_attempts,
            scheduled_for=scheduled_for,
            metadata=metadata or {},
        )
        self._queue.append(message)
        self._sort()
        LOGGER.debug(f"Queued {message.id} for {recipient} ({message.priority.value})")
        return message.id

    def add_bulk(
        self,
        recipients: Iterable[str],
        content: Any,
        priority: Union[MessagePriority, str] = MessagePriority.NORMAL,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[str]:
        """Enqueue the same content for many recipients."""
        return [self.add(r, content, priority=priority, metadata=metadata) for r in recipients]

    async def process_next(self) -> Optional[QueuedMessage]:
        """
        Send the first due message.

        Returns:
            The message that was attempted, or None if nothing was due.
        """
        if self._processing or self._send is None:
            return None

        now = self._clock()
        message = next((m for m in self._queue if m.is_due(now)), None)
        if message is None:
            return None

        self._processing = True
        message.attempts += 1
        try:
            await self._send(message.recipient, message.content)
        except SendBlockedError as e:
            message.attempts -= 1
            message.last_error = str(e)
            LOGGER.info(f"{message.id} delayed by anti-ban gate: {e.reason}")
        except Exception as e:
            message.last_error = str(e)
            self._handle_failure(message)
        else:
            self._discard(message.id)
            self.sent_count += 1
            LOGGER.debug(f"Sent {message.id}")
        finally:
            self._processing = False

        return message

    def start(self, interval_s: float = 1.0) -> None:
        """Drain the queue in a background task on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(interval_s))
        LOGGER.info("Message queue started")

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        LOGGER.info("Message queue stopped")

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def stats(self) -> Dict[str, Any]:
        now = self._clock()
        return {
            "total": len(self._queue),
            "pending": sum(1 for m in self._queue if m.is_due(now)),
            "scheduled": sum(1 for m in self._queue if not m.is_due(now)),
            "by_priority": {
                p.value: sum(1 for m in self._queue if m.priority is p) for p in MessagePriority
            },
            "dead_letters": len(self.dead_letters),
            "sent": self.sent_count,
            "processing": self._processing,
            "is_running": self.is_running,
        }

    def clear(self) -> int:
        """Drop every queued message. Returns how many were dropped."""
        count = len(self._queue)
        self._queue = []
        LOGGER.info(f"Cleared {count} queued messages")
        return count

    def remove(self, message_id: str) -> bool:
        before = len(self._queue)
        self._discard(message_id)
        return len(self._queue) < before

    def export(self) -> List[Dict[str, Any]]:
        """Queued messages as plain dicts, in drain order."""
        return [m.model_dump(mode="json") for m in self._queue]

    def import_messages(self, messages: Iterable[Union[QueuedMessage, Mapping[str, Any]]]) -> None:
        """
        Replace the queue contents, e.g. after a restart.

        Raises:
            QueueError: If any entry is not a valid queued message.
        """
        try:
            restored = [
                m if isinstance(m, QueuedMessage) else QueuedMessage.model_validate(dict(m))
                for m in messages
            ]
        except ValidationError as e:
            raise QueueError(f"Invalid queued message: {e}") from e
        self._queue = restored
        self._sort()

    def __len__(self) -> int:
        return len(self._queue)

    def _handle_failure(self, message: QueuedMessage) -> None:
        if message.attempts >= message.max_attempts:
            self._discard(message.id)
            self.dead_letters.append(message)
            LOGGER.warning(
                f"{message.id} failed after {message.attempts} attempts: {message.last_error}"
            )
            return

        backoff = self.config.retry_base_delay_ms * 2 ** (message.attempts - 1)
        message.scheduled_for = self._clock() + backoff
        LOGGER.info(f"{message.id} attempt {message.attempts} failed, retrying in {backoff}ms")

    def _discard(self, message_id: str) -> None:
        self._queue = [m for m in self._queue if m.id != message_id]

    def _sort(self) -> None:
        if not self.config.priority_order:
            return
        self._queue.sort(key=lambda m: (m.priority.weight, m.added_at))

    async def _run(self, interval_s: float) -> None:
        while True:
            await self.process_next()
            await asyncio.sleep(interval_s)


__all__ = ["MessageQueue", "QueueConfig", "QueuedMessage", "SendFunction"]
