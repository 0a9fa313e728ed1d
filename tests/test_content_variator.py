"""Tests for message body variation."""
from __future__ import annotations

import random

from services.content_variator import ZERO_WIDTH_CHARS, ContentVariator, VariatorConfig


def strip_invisible(text: str) -> str:
    for char in ZERO_WIDTH_CHARS:
        text = text.replace(char, "")
    return text


class TestContentVariator:
    def test_variations_read_the_same(self):
        variator = ContentVariator(rng=random.Random(3))
        text = "Hello there, the auction starts at noon."

        for _ in range(10):
            variant = strip_invisible(variator.vary(text)).strip()
            assert variant.lower().rstrip(".") == text.lower().rstrip(".")

    def test_zero_width_chars_inserted(self):
        variator = ContentVariator(VariatorConfig(punctuation_variation=False), rng=random.Random(5))

        variant = variator.vary("one two three four")

        assert variant != "one two three four"
        assert strip_invisible(variant) == "one two three four"
        assert sum(variant.count(c) for c in ZERO_WIDTH_CHARS) == 2

    def test_single_word_has_no_zero_width(self):
        variator = ContentVariator(VariatorConfig(punctuation_variation=False))

        assert variator.vary("hello") == "hello"

    def test_punctuation_cycle(self):
        variator = ContentVariator(VariatorConfig(zero_width_chars=False))

        variants = [variator.vary("Hi there") for _ in range(5)]

        assert variants == ["Hi there  ", "Hi there.", "Hi there", "hi there", "Hi there "]

    def test_emoji_padding(self):
        config = VariatorConfig(zero_width_chars=False, punctuation_variation=False, emoji_padding=True)
        variator = ContentVariator(config)

        assert variator.vary("Hi") == "Hi 👍"

    def test_synonym_preserves_case(self):
        config = VariatorConfig(zero_width_chars=False, punctuation_variation=False, synonyms=True)
        variator = ContentVariator(config, rng=random.Random(0))

        results = {variator.vary("Hello friend") for _ in range(30)}

        assert "Hello friend" in results or len(results) > 1
        for result in results:
            assert result[0].isupper()
            assert result.endswith(" friend")

    def test_custom_variator_replaces_builtins(self):
        config = VariatorConfig(custom_variator=lambda text, i: f"{text} #{i}")
        variator = ContentVariator(config)

        assert variator.vary("Hi") == "Hi #1"
        assert variator.vary("Hi") == "Hi #2"

    def test_vary_bulk_unique(self):
        variator = ContentVariator(rng=random.Random(11))

        variants = variator.vary_bulk("Join the live auction tonight at eight", 8)

        assert len(variants) == 8
        assert len(set(variants)) == 8
