"""Aggregator: combine per-rule outcomes into one cart-level result.

This is where the result invariants are enforced. A calculator that returns
a negative amount, more than its matching subtotal, or a priced gift line
has misread its rule; that is a bug and raises InvariantViolation instead
of being clamped away. Only the cart totals are clamped, because several
stackable rules can legitimately add up to more than the cart is worth.
"""

from typing import Sequence

from promotions.calculators import RuleOutcome
from promotions.errors import InvariantViolation
from promotions.models import (
    AppliedRule,
    CalculationContext,
    CalculationResult,
    CartLine,
    cart_subtotal,
)
from promotions.money import ZERO, clamp, money_sum
from promotions.validation import describe_rule


def check_outcome(outcome: RuleOutcome) -> None:
    """Raise InvariantViolation if a single rule outcome is impossible."""
    rule_id = outcome.rule.id
    if outcome.amount < ZERO:
        raise InvariantViolation(f"Rule {rule_id} produced a negative amount {outcome.amount}")
    if outcome.amount > outcome.matching_subtotal:
        raise InvariantViolation(
            f"Rule {rule_id} amount {outcome.amount} exceeds its matching subtotal "
            f"{outcome.matching_subtotal}"
        )
    for line in outcome.gift_lines:
        if line.unit_price != ZERO:
            raise InvariantViolation(f"Rule {rule_id} produced a priced gift line {line}")


def check_selection(outcomes: Sequence[RuleOutcome]) -> None:
    """Raise InvariantViolation if the selected rules could not apply together."""
    rule_ids = [o.rule.id for o in outcomes]
    if len(rule_ids) != len(set(rule_ids)):
        raise InvariantViolation(f"A rule was applied more than once: {rule_ids}")
    if sum(1 for o in outcomes if not o.rule.stackable) > 1:
        raise InvariantViolation("More than one non-stackable rule was applied")
    if sum(1 for o in outcomes if o.rule.is_coupon) > 1:
        raise InvariantViolation("More than one coupon was applied")


def aggregate(
    cart: Sequence[CartLine],
    outcomes: Sequence[RuleOutcome],
    context: CalculationContext,
    errors: Sequence[str] = (),
) -> CalculationResult:
    """Sum outcomes into totals; ``outcomes`` must be in selection order."""
    check_selection(outcomes)
    for outcome in outcomes:
        check_outcome(outcome)

    original_total = cart_subtotal(cart)
    discount_total = clamp(money_sum(o.amount for o in outcomes), upper=original_total)
    final_total = clamp(original_total - discount_total)

    applied = tuple(
        AppliedRule(
            rule_id=o.rule.id,
            name=o.rule.name or describe_rule(o.rule),
            amount=o.amount,
            kind=o.rule.kind,
            code=o.rule.code,
        )
        for o in outcomes
    )
    gift_lines = tuple(line for o in outcomes for line in o.gift_lines)

    return CalculationResult(
        original_total=original_total,
        discount_total=discount_total,
        final_total=final_total,
        free_shipping=any(o.free_shipping for o in outcomes),
        applied_rules=applied,
        gift_lines=gift_lines,
        errors=tuple(errors),
        shipping_amount=context.shipping_amount,
    )
