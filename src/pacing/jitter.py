"""Randomized timing and content fingerprint helpers."""
from __future__ import annotations

import math
import random
from typing import Optional

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def jitter(min_ms: float, max_ms: float, rng: Optional[random.Random] = None) -> int:
    """
    Random delay in ``[min_ms, max_ms]`` clustered around the midpoint.

    A Box-Muller normal sample is mapped from roughly [-3, 3] onto [0, 1]
    and clamped, so extreme values are rare and the distribution has no
    uniform signature.

    Args:
        min_ms: Lower bound.
        max_ms: Upper bound.
        rng: Optional random source (module-level random by default).

    Returns:
        Rounded delay in milliseconds.
    """
    source = rng or random
    u1 = 1.0 - source.random()  # (0, 1], keeps log() finite
    u2 = source.random()
    normal = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    normalized = (normal + 3.0) / 6.0
    clamped = max(0.0, min(1.0, normalized))
    return round(min_ms + clamped * (max_ms - min_ms))


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return sign + "".join(reversed(digits))


def text_length(text: str) -> int:
    """Length in UTF-16 code units, so astral characters count twice."""
    return len(text.encode("utf-16-le")) // 2


def fingerprint(text: str) -> str:
    """
    Short order-sensitive hash of message text.

    Rolling ``h * 31 + code`` over UTF-16 code units, wrapped to a signed
    32-bit integer and rendered in base 36.
    """
    h = 0
    encoded = text.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        code = encoded[i] | (encoded[i + 1] << 8)
        h = (h * 31 + code) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(h)


__all__ = ["jitter", "fingerprint", "text_length"]
