"""Domain layer for the anti-ban engine.

All send decisions should go through ``AntiBanService``; the pacing, warm-up
and risk packages are its building blocks.
"""
from __future__ import annotations

from .antiban import AlertSink, AntiBanConfig, AntiBanService, AntiBanStats, SendDecision

__all__ = [
    "AlertSink",
    "AntiBanConfig",
    "AntiBanService",
    "AntiBanStats",
    "SendDecision",
]
