"""Transport adapters that send through the anti-ban gate."""
from .guarded_sender import GuardedSender, extract_text

__all__ = [
    "GuardedSender",
    "extract_text",
]
