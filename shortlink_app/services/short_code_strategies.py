"""
Short code generation strategies for URL shortener.
Uses Strategy Pattern to allow different generation algorithms.
"""

import random
import string
from abc import ABC, abstractmethod
from typing import Callable, Optional

from shortlink_app.errors import GenerationExhausted

BASE62_CHARS = string.ascii_letters + string.digits


class ShortCodeStrategy(ABC):
    """Abstract base class for short code generation strategies"""

    @abstractmethod
    def generate(self, is_taken: Callable[[str], bool]) -> str:
        """
        Generate a short code.

        Args:
            is_taken: Predicate telling whether a candidate already exists

        Returns:
            A short code for which ``is_taken`` returned False

        Raises:
            GenerationExhausted: If no free code was found within the attempt cap
        """
        pass


class RandomShortCodeStrategy(ShortCodeStrategy):
    """
    Random generation strategy.
    Draws each character uniformly from [A-Za-z0-9] and retries on collision.

    Pros: Simple, no coordination, unpredictable enough for sharing
    Cons: Collision checks grow with the store; a saturated keyspace
          surfaces as GenerationExhausted
    """

    def __init__(
        self,
        length: int = 6,
        max_attempts: int = 10,
        rng: Optional[random.Random] = None
    ):
        self.length = length
        self.max_attempts = max_attempts
        self.characters = BASE62_CHARS
        self.rng = rng or random.Random()

    def generate(self, is_taken: Callable[[str], bool]) -> str:
        """Generate random short code with collision checking"""
        for attempt in range(self.max_attempts):
            short_code = self._generate_random_string()

            if not is_taken(short_code):
                return short_code

        raise GenerationExhausted(self.max_attempts)

    def _generate_random_string(self) -> str:
        """Generate a random string of specified length"""
        return ''.join(self.rng.choice(self.characters) for _ in range(self.length))


class SecureShortCodeStrategy(RandomShortCodeStrategy):
    """
    Same algorithm as RandomShortCodeStrategy, fed by the OS entropy pool.

    Codes cannot be predicted from earlier codes, which matters once short
    links point at unlisted documents.
    """

    def __init__(self, length: int = 6, max_attempts: int = 10):
        super().__init__(length=length, max_attempts=max_attempts, rng=random.SystemRandom())
