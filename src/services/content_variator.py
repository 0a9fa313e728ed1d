"""Message body variation.

Providers flag identical bodies fanned out to many recipients. These helpers
make each copy technically unique (zero-width characters, punctuation, an
optional emoji or synonym) while reading the same to a human.
"""
from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from core.logging_config import get_logger
from core.utils import config_from_mapping

LOGGER = get_logger(__name__)

# Invisible to readers
ZERO_WIDTH_CHARS = ["\u200b", "\u200c", "\u200d", "\ufeff"]

EMOJI_PADDING = ["", " 👍", " ✅", " 📌", " 💬", " 📢"]

SYNONYMS: Dict[str, List[str]] = {
    "hello": ["hi", "hey", "howdy"],
    "hi": ["hello", "hey", "howdy"],
    "thanks": ["thank you", "thx", "cheers"],
    "please": ["kindly", "pls"],
    "great": ["awesome", "excellent", "wonderful"],
    "good": ["great", "nice", "fine"],
    "buy": ["purchase", "get", "grab"],
    "sell": ["offer", "list"],
    "price": ["cost", "amount", "value"],
    "available": ["in stock", "on offer"],
    "check": ["look at", "see", "view"],
    "join": ["participate", "enter", "come to"],
    "start": ["begin", "kick off", "commence"],
    "end": ["finish", "close", "conclude"],
}

MAX_UNIQUE_RETRIES = 10

_WORD_BOUNDARY = re.compile(r"\b")


@dataclass(frozen=True)
class VariatorConfig:
    zero_width_chars: bool = True
    punctuation_variation: bool = True
    emoji_padding: bool = False
    synonyms: bool = False
    # Called as custom_variator(text, index); replaces every built-in step
    custom_variator: Optional[Callable[[str, int], str]] = None

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, Any]] = None) -> "VariatorConfig":
        return config_from_mapping(cls, overrides)


class ContentVariator:
    """Produces a slightly different rendition of a text on every call."""

    def __init__(self, config: Optional[VariatorConfig] = None, rng: Optional[random.Random] = None) -> None:
        self.config = config or VariatorConfig()
        self._rng = rng or random.Random()
        self._counter = 0

    def vary(self, text: str) -> str:
        self._counter += 1
        cfg = self.config

        if cfg.custom_variator is not None:
            return cfg.custom_variator(text, self._counter)

        result = text
        if cfg.synonyms:
            result = self._apply_synonym(result)
        if cfg.zero_width_chars:
            result = self._add_zero_width(result)
        if cfg.punctuation_variation:
            result = self._vary_punctuation(result)
        if cfg.emoji_padding:
            result += EMOJI_PADDING[self._counter % len(EMOJI_PADDING)]
        return result

    def vary_bulk(self, text: str, count: int) -> List[str]:
        """
        Produce ``count`` variations, retrying a few times to avoid duplicates.

        Duplicates are still possible for very short texts with few options.
        """
        results: List[str] = []
        seen = set()
        for _ in range(count):
            variation = self.vary(text)
            retries = 0
            while variation in seen and retries < MAX_UNIQUE_RETRIES:
                variation = self.vary(text)
                retries += 1
            if variation in seen:
                LOGGER.debug("Could not produce a unique variation")
            seen.add(variation)
            results.append(variation)
        return results

    def _add_zero_width(self, text: str) -> str:
        words = text.split(" ")
        if len(words) < 2:
            return text

        gaps = len(words) - 1
        positions = set(self._rng.sample(range(gaps), min(2, gaps)))
        return " ".join(
            word + self._rng.choice(ZERO_WIDTH_CHARS) if i in positions else word
            for i, word in enumerate(words)
        )

    def _vary_punctuation(self, text: str) -> str:
        variant = self._counter % 5
        if variant == 0:
            return text + " "
        if variant == 1:
            return text + "  "
        if variant == 2:
            return text[:-1] if text.endswith(".") else text + "."
        if variant == 3:
            return text
        if text[:1] and text[0] == text[0].upper():
            return text[0].lower() + text[1:]
        return text

    def _apply_synonym(self, text: str) -> str:
        # At most one replacement per message
        tokens = _WORD_BOUNDARY.split(text)
        for i, token in enumerate(tokens):
            options = SYNONYMS.get(token.lower())
            if options and self._rng.random() > 0.5:
                synonym = self._rng.choice(options)
                if token[0].isupper():
                    synonym = synonym[0].upper() + synonym[1:]
                tokens[i] = synonym
                break
        return "".join(tokens)


__all__ = ["ContentVariator", "VariatorConfig", "ZERO_WIDTH_CHARS", "SYNONYMS"]
