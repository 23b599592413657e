"""
Factory for short code generators.
One cached generator per strategy type.
"""

from enum import Enum
from typing import Dict, Optional, Type

from shortlink_app.config import settings
from shortlink_app.services.short_code_strategies import (
    ShortCodeStrategy,
    RandomShortCodeStrategy,
    SecureShortCodeStrategy
)


class ShortCodeStrategyType(Enum):
    """Available short code generation strategies"""
    RANDOM = "random"
    SECURE = "secure"


class ShortCodeFactory:
    """Builds generators from settings (length, attempt cap) and caches them"""

    _strategies: Dict[ShortCodeStrategyType, Type[RandomShortCodeStrategy]] = {
        ShortCodeStrategyType.RANDOM: RandomShortCodeStrategy,
        ShortCodeStrategyType.SECURE: SecureShortCodeStrategy,
    }
    _instances: Dict[ShortCodeStrategyType, ShortCodeStrategy] = {}

    @classmethod
    def create_strategy(
        cls,
        strategy_type: Optional[ShortCodeStrategyType] = None
    ) -> ShortCodeStrategy:
        """
        Return the cached generator for ``strategy_type``.

        Args:
            strategy_type: Defaults to ``settings.short_code_strategy``

        Raises:
            ValueError: If the configured strategy name is unknown
        """
        if strategy_type is None:
            strategy_type = ShortCodeStrategyType(settings.short_code_strategy)

        if strategy_type not in cls._instances:
            strategy_class = cls._strategies[strategy_type]
            cls._instances[strategy_type] = strategy_class(
                length=settings.short_code_length,
                max_attempts=settings.max_generation_attempts
            )
        return cls._instances[strategy_type]

    @classmethod
    def clear_instances(cls):
        """Drop cached generators (for testing)"""
        cls._instances.clear()
