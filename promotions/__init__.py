"""Discount and promotion calculation engine.

Given a cart, the active rules and a context, ``calculate`` decides which
rules apply, in what order, how much each is worth, whether shipping is
free and which gift items are added. It is a pure function: usage limits
are only enforced at order commit (see verticals.storefront.checkout).
"""

from promotions.config import EngineConfig, MinimumQuantityScope
from promotions.engine import calculate
from promotions.errors import (
    CouponUnavailableError,
    InvariantViolation,
    PromotionError,
    PromotionUnavailableError,
    UsageLimitExceeded,
)
from promotions.models import (
    AppliedRule,
    BuyXGetY,
    BuyXPayY,
    CalculationContext,
    CalculationResult,
    CartLine,
    DiscountKind,
    DiscountRule,
    QuantityTier,
    RuleScope,
    SpendThreshold,
)
from promotions.serialization import rule_from_mapping, rule_to_mapping
from promotions.validation import describe_rule, validate_rule

__all__ = [
    "AppliedRule",
    "BuyXGetY",
    "BuyXPayY",
    "CalculationContext",
    "CalculationResult",
    "CartLine",
    "CouponUnavailableError",
    "DiscountKind",
    "DiscountRule",
    "EngineConfig",
    "InvariantViolation",
    "MinimumQuantityScope",
    "PromotionError",
    "PromotionUnavailableError",
    "QuantityTier",
    "RuleScope",
    "SpendThreshold",
    "UsageLimitExceeded",
    "calculate",
    "describe_rule",
    "rule_from_mapping",
    "rule_to_mapping",
    "validate_rule",
]
