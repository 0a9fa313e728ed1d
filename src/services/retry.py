"""Retry utilities using tenacity."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Type

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.exceptions import AlertDeliveryError
from core.logging_config import get_logger

LOGGER = get_logger(__name__)

# Failures worth another try when posting to a webhook
WEBHOOK_RETRY_EXCEPTIONS: tuple[Type[Exception], ...] = (
    httpx.TransportError,
    AlertDeliveryError,
)


def webhook_retrying(
    max_attempts: int = 3,
    max_wait: float = 4.0,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> AsyncRetrying:
    """
    Build a tenacity ``AsyncRetrying`` loop for one webhook delivery.

    Backoff sleeps are awaited, so a slow or dead webhook never holds the
    event loop.

    Example:
        async for attempt in webhook_retrying(max_attempts=2):
            with attempt:
                await post()
    """
    kwargs: Dict[str, Any] = {"sleep": sleep} if sleep is not None else {}
    return AsyncRetrying(
        retry=retry_if_exception_type(WEBHOOK_RETRY_EXCEPTIONS),
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=max_wait),
        before_sleep=before_sleep_log(LOGGER, log_level=logging.INFO),
        reraise=True,
        **kwargs,
    )


__all__ = ["WEBHOOK_RETRY_EXCEPTIONS", "webhook_retrying"]
