"""
Tests for short code generation strategies.
"""
import random
import re

import pytest

from shortlink_app.config import settings
from shortlink_app.errors import GenerationExhausted
from shortlink_app.services.short_code_strategies import (
    BASE62_CHARS,
    RandomShortCodeStrategy,
    SecureShortCodeStrategy
)
from shortlink_app.services.short_code_factory import (
    ShortCodeFactory,
    ShortCodeStrategyType
)

CODE_RE = re.compile(r"^[A-Za-z0-9]{6}$")


def never_taken(code):
    return False


class TestRandomStrategy:
    """Test random generation strategy"""

    def test_generates_six_alphanumeric_characters(self):
        """Generated codes match ^[A-Za-z0-9]{6}$"""
        strategy = RandomShortCodeStrategy(length=6, rng=random.Random(7))

        for _ in range(200):
            assert CODE_RE.match(strategy.generate(never_taken))

    def test_alphabet_has_62_characters(self):
        assert len(BASE62_CHARS) == 62
        assert len(set(BASE62_CHARS)) == 62

    def test_same_seed_same_codes(self):
        """Test that a seeded generator is deterministic"""
        first = RandomShortCodeStrategy(rng=random.Random(99))
        second = RandomShortCodeStrategy(rng=random.Random(99))

        assert [first.generate(never_taken) for _ in range(5)] == \
            [second.generate(never_taken) for _ in range(5)]

    def test_retries_on_collision(self):
        """Taken candidates are skipped until a free one comes up"""
        strategy = RandomShortCodeStrategy(rng=random.Random(3))
        seen = []

        def taken_twice(code):
            seen.append(code)
            return len(seen) <= 2

        code = strategy.generate(taken_twice)

        assert len(seen) == 3
        assert code == seen[-1]

    def test_gives_up_after_max_attempts(self):
        """A saturated keyspace surfaces as GenerationExhausted"""
        strategy = RandomShortCodeStrategy(max_attempts=10, rng=random.Random(5))
        calls = []

        def always_taken(code):
            calls.append(code)
            return True

        with pytest.raises(GenerationExhausted) as exc_info:
            strategy.generate(always_taken)

        assert len(calls) == 10
        assert exc_info.value.attempts == 10

    def test_codes_spread_over_alphabet(self):
        """Every alphabet character shows up when drawing many codes"""
        strategy = RandomShortCodeStrategy(rng=random.Random(11))
        characters = set()
        for _ in range(500):
            characters.update(strategy.generate(never_taken))

        assert characters == set(BASE62_CHARS)


class TestSecureStrategy:
    def test_uses_system_random(self):
        strategy = SecureShortCodeStrategy()
        assert isinstance(strategy.rng, random.SystemRandom)

    def test_generates_valid_codes(self):
        strategy = SecureShortCodeStrategy(length=6)
        codes = {strategy.generate(never_taken) for _ in range(50)}

        assert all(CODE_RE.match(code) for code in codes)
        assert len(codes) == 50


class TestShortCodeFactory:
    """Test strategy factory"""

    def test_creates_random_strategy(self):
        """Test factory creates random strategy"""
        strategy = ShortCodeFactory.create_strategy(ShortCodeStrategyType.RANDOM)
        assert type(strategy) is RandomShortCodeStrategy

    def test_creates_secure_strategy(self):
        strategy = ShortCodeFactory.create_strategy(ShortCodeStrategyType.SECURE)
        assert isinstance(strategy, SecureShortCodeStrategy)

    def test_creates_default_from_settings(self):
        """Test factory uses settings when no type specified"""
        strategy = ShortCodeFactory.create_strategy()
        assert strategy is not None

    def test_instances_are_cached(self):
        first = ShortCodeFactory.create_strategy(ShortCodeStrategyType.RANDOM)
        second = ShortCodeFactory.create_strategy(ShortCodeStrategyType.RANDOM)
        assert first is second

    def test_clear_instances_rebuilds_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "short_code_length", 8)
        ShortCodeFactory.clear_instances()
        try:
            strategy = ShortCodeFactory.create_strategy(ShortCodeStrategyType.RANDOM)
            assert len(strategy.generate(never_taken)) == 8
        finally:
            ShortCodeFactory.clear_instances()

    def test_unknown_configured_strategy(self, monkeypatch):
        monkeypatch.setattr(settings, "short_code_strategy", "sequential")
        with pytest.raises(ValueError):
            ShortCodeFactory.create_strategy()
