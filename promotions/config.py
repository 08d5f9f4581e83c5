"""Dataclass-based engine configuration.

Thresholds and policy switches that are not part of any single rule live
here as a frozen dataclass, so a tenant or deployment can override them
without touching the engine:

    config = EngineConfig.from_env()
    result = calculate(cart, rules, context, config)
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MinimumQuantityScope(str, Enum):
    """Which units count towards a rule's ``minimum_quantity``."""

    CART = "cart"          # every unit in the cart
    MATCHING = "matching"  # only units on lines the rule applies to


@dataclass(frozen=True)
class EngineConfig:
    """Policy knobs for the discount engine.

    Usage::

        config = EngineConfig(minimum_quantity_scope=MinimumQuantityScope.MATCHING)
        result = calculate(cart, rules, context, config)
    """

    currency_places: int = 2
    minimum_quantity_scope: MinimumQuantityScope = MinimumQuantityScope.CART
    max_gift_units: Optional[int] = None  # None = no cap

    def __post_init__(self):
        object.__setattr__(
            self, "minimum_quantity_scope", MinimumQuantityScope(self.minimum_quantity_scope)
        )
        if self.currency_places < 0:
            raise ValueError(f"currency_places must be >= 0, got {self.currency_places}")
        if self.max_gift_units is not None and self.max_gift_units < 0:
            raise ValueError(f"max_gift_units must be >= 0, got {self.max_gift_units}")

    @classmethod
    def default(cls) -> "EngineConfig":
        """Create config with all defaults."""
        return cls()

    @classmethod
    def from_env(cls, prefix: str = "PROMOTIONS_") -> "EngineConfig":
        """Create config from environment variables.

        Example: PROMOTIONS_MINIMUM_QUANTITY_SCOPE=matching
        """
        overrides = {}
        places = os.getenv(f"{prefix}CURRENCY_PLACES")
        if places:
            overrides["currency_places"] = int(places)

        quantity_scope = os.getenv(f"{prefix}MINIMUM_QUANTITY_SCOPE")
        if quantity_scope:
            overrides["minimum_quantity_scope"] = MinimumQuantityScope(quantity_scope.lower())

        max_gifts = os.getenv(f"{prefix}MAX_GIFT_UNITS")
        if max_gifts:
            overrides["max_gift_units"] = int(max_gifts)

        return cls(**overrides)
