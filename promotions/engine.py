"""The discount engine: one pure function from (cart, rules, context) to a result.

    result = calculate(cart, rules, CalculationContext(now=now, coupon_code="SAVE10"))

The engine reads no clock, no database and no shared state, so it is safe to
call on every cart render. It only reports whether usage-limited rules
appear eligible; enforcing limits is the job of order commit.
"""

from typing import Sequence

from core.observability.logger import get_logger
from promotions.aggregator import aggregate
from promotions.calculators import calculate_rule
from promotions.config import EngineConfig
from promotions.eligibility import filter_eligible
from promotions.gifts import resolve_gifts
from promotions.models import CalculationContext, CalculationResult, CartLine, DiscountRule
from promotions.stacking import resolve_stacking

logger = get_logger("engine")


def calculate(
    cart: Sequence[CartLine],
    rules: Sequence[DiscountRule],
    context: CalculationContext,
    config: EngineConfig | None = None,
) -> CalculationResult:
    """Decide which rules apply to ``cart`` and what they are worth.

    Pipeline: eligibility -> stacking -> per-kind calculators -> aggregation
    -> gift policy. Rule problems end up in ``result.errors``; only an
    internal invariant violation raises.
    """
    config = config or EngineConfig.default()

    eligibility = filter_eligible(cart, rules, context, config)
    selection = resolve_stacking(eligibility.candidates)
    outcomes = [calculate_rule(rule, cart, config) for rule in selection.selected]

    result = aggregate(
        cart,
        outcomes,
        context,
        errors=eligibility.errors + selection.errors,
    )
    result = resolve_gifts(result, config)

    logger.debug(
        "Calculated cart of %d lines against %d rules: %d applied, discount %s",
        len(cart),
        len(rules),
        len(result.applied_rules),
        result.discount_total,
    )
    return result
