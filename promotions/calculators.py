"""Type calculators: one calculation function per discount kind.

Every calculator sees the rule and the lines it applies to, priced at their
original unit prices. Discounts from different stackable rules therefore
add up instead of compounding on each other's reduced prices.

Dispatch goes through a closed mapping from DiscountKind to calculator;
adding a kind without a calculator fails at import time.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Sequence

from promotions.config import EngineConfig
from promotions.models import (
    BuyXGetY,
    BuyXPayY,
    CartLine,
    DiscountKind,
    DiscountRule,
    SpendThreshold,
    cart_subtotal,
    matching_lines,
    unit_count,
)
from promotions.money import ZERO, clamp, money_sum, percent_of


@dataclass(frozen=True)
class RuleOutcome:
    """What one rule does to the cart."""

    rule: DiscountRule
    amount: Decimal
    matching_subtotal: Decimal
    gift_lines: tuple = ()
    free_shipping: bool = False


Calculator = Callable[[DiscountRule, Sequence[CartLine], EngineConfig], RuleOutcome]


def _outcome(rule: DiscountRule, lines: Sequence[CartLine], amount: Decimal = ZERO, **kwargs) -> RuleOutcome:
    return RuleOutcome(rule=rule, amount=amount, matching_subtotal=cart_subtotal(lines), **kwargs)


# ---------------------------------------------------------------------------
# Calculators
# ---------------------------------------------------------------------------

def calculate_percentage(rule: DiscountRule, lines: Sequence[CartLine], config: EngineConfig) -> RuleOutcome:
    """value% of the matching subtotal, banker's-rounded, capped at the subtotal."""
    subtotal = cart_subtotal(lines)
    amount = percent_of(subtotal, rule.value, config.currency_places)
    return _outcome(rule, lines, clamp(amount, upper=subtotal))


def calculate_fixed_amount(rule: DiscountRule, lines: Sequence[CartLine], config: EngineConfig) -> RuleOutcome:
    """A flat amount off the matching lines, never more than they cost."""
    subtotal = cart_subtotal(lines)
    return _outcome(rule, lines, min(rule.value, subtotal))


def calculate_free_shipping(rule: DiscountRule, lines: Sequence[CartLine], config: EngineConfig) -> RuleOutcome:
    # The caller zeroes the shipping charge from the flag
    return _outcome(rule, lines, free_shipping=True)


def calculate_quantity_tiered(rule: DiscountRule, lines: Sequence[CartLine], config: EngineConfig) -> RuleOutcome:
    """Percentage of the highest tier reached by the matching quantity."""
    quantity = unit_count(lines)
    reached = [tier for tier in rule.value if tier.min_quantity <= quantity]
    if not reached:
        return _outcome(rule, lines)

    tier = max(reached, key=lambda t: t.min_quantity)
    subtotal = cart_subtotal(lines)
    amount = percent_of(subtotal, tier.percent_off, config.currency_places)
    return _outcome(rule, lines, clamp(amount, upper=subtotal))


def calculate_spend_threshold(rule: DiscountRule, lines: Sequence[CartLine], config: EngineConfig) -> RuleOutcome:
    """Spend at least X on matching lines and pay a fixed price for them."""
    threshold: SpendThreshold = rule.value
    subtotal = cart_subtotal(lines)
    if subtotal < threshold.minimum_spend:
        return _outcome(rule, lines)
    return _outcome(rule, lines, clamp(subtotal - threshold.fixed_price))


def calculate_buy_x_pay_y(rule: DiscountRule, lines: Sequence[CartLine], config: EngineConfig) -> RuleOutcome:
    """Buy x units, pay for y: the x - y cheapest units of each bucket are free.

    Units are ordered by price, most expensive first, and cut into buckets
    of x. The cheapest units therefore land in the last, possibly partial,
    bucket, and a partial bucket earns nothing.
    """
    offer: BuyXPayY = rule.value
    bucket_size = offer.buy_quantity
    free_per_bucket = offer.buy_quantity - offer.pay_quantity

    # sorted(reverse=True) is stable, so equal prices keep cart order
    prices = sorted(
        (line.unit_price for line in lines for _ in range(line.quantity)),
        reverse=True,
    )
    full_buckets = len(prices) // bucket_size

    amount = ZERO
    for index in range(full_buckets):
        bucket = prices[index * bucket_size:(index + 1) * bucket_size]
        amount += money_sum(bucket[-free_per_bucket:])

    return _outcome(rule, lines, amount)


def calculate_buy_x_get_y(rule: DiscountRule, lines: Sequence[CartLine], config: EngineConfig) -> RuleOutcome:
    """Every x matching units earn y zero-priced gift units. No price change.

    With a gift product the count runs over all matching units; without one
    each product earns gifts of itself from its own quantity.
    """
    offer: BuyXGetY = rule.value
    gifts: list[CartLine] = []

    if offer.gift_product_id:
        times = unit_count(lines) // offer.buy_quantity
        if times:
            gifts.append(CartLine(
                product_id=offer.gift_product_id,
                unit_price=ZERO,
                quantity=times * offer.get_quantity,
            ))
    else:
        per_product: dict[str, list[CartLine]] = {}
        for line in lines:
            per_product.setdefault(line.product_id, []).append(line)
        for product_id, product_lines in per_product.items():
            times = unit_count(product_lines) // offer.buy_quantity
            if times:
                gifts.append(CartLine(
                    product_id=product_id,
                    unit_price=ZERO,
                    quantity=times * offer.get_quantity,
                    category_id=product_lines[0].category_id,
                ))

    return _outcome(rule, lines, gift_lines=tuple(gifts))


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

_CALCULATORS: dict[DiscountKind, Calculator] = {
    DiscountKind.PERCENTAGE: calculate_percentage,
    DiscountKind.FIXED_AMOUNT: calculate_fixed_amount,
    DiscountKind.FREE_SHIPPING: calculate_free_shipping,
    DiscountKind.QUANTITY_TIERED: calculate_quantity_tiered,
    DiscountKind.SPEND_THRESHOLD: calculate_spend_threshold,
    DiscountKind.BUY_X_PAY_Y: calculate_buy_x_pay_y,
    DiscountKind.BUY_X_GET_Y: calculate_buy_x_get_y,
}

_missing = set(DiscountKind) - set(_CALCULATORS)
if _missing:
    raise RuntimeError(f"No calculator for discount kinds: {sorted(k.value for k in _missing)}")


def calculator_for(kind: DiscountKind) -> Calculator:
    return _CALCULATORS[kind]


def calculate_rule(
    rule: DiscountRule,
    cart: Sequence[CartLine],
    config: EngineConfig | None = None,
) -> RuleOutcome:
    """Run the calculator for ``rule.kind`` against the rule's matching lines."""
    config = config or EngineConfig.default()
    return calculator_for(rule.kind)(rule, matching_lines(rule, cart), config)
