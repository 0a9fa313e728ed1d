"""Top-level package for the anti-ban engine."""
from __future__ import annotations

__version__ = "1.0.0"

__all__ = [
    "core",
    "domain",
    "outreach",
    "pacing",
    "risk",
    "services",
    "warmup",
]
