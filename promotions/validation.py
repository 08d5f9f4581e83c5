"""Structural validation and human-readable descriptions for rules.

``validate_rule`` is what the admin forms call before saving a rule, and
what the eligibility filter calls before trusting one. It returns a list of
problems instead of raising, so every problem can be shown at once.
"""

from decimal import Decimal

from promotions.models import (
    BuyXGetY,
    BuyXPayY,
    DiscountKind,
    DiscountRule,
    QuantityTier,
    RuleScope,
    SpendThreshold,
)
from promotions.money import HUNDRED, ZERO, quantize


def _is_decimal(value) -> bool:
    return isinstance(value, Decimal) and value.is_finite()


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_percent(percent, label: str = "Percentage") -> list[str]:
    if not _is_decimal(percent):
        return [f"{label} must be a decimal number"]
    if percent <= ZERO or percent > HUNDRED:
        return [f"{label} must be between 0 and 100 (exclusive of 0)"]
    return []


def _validate_value(rule: DiscountRule) -> list[str]:
    kind = rule.kind
    value = rule.value

    if kind == DiscountKind.PERCENTAGE:
        return _validate_percent(value)

    if kind == DiscountKind.FIXED_AMOUNT:
        if not _is_decimal(value):
            return ["Fixed amount must be a decimal number"]
        if value <= ZERO:
            return ["Fixed amount must be greater than 0"]
        return []

    if kind == DiscountKind.FREE_SHIPPING:
        return []

    if kind == DiscountKind.BUY_X_PAY_Y:
        if not isinstance(value, BuyXPayY):
            return ["Buy X pay Y rules need buy and pay quantities"]
        errors = []
        if not _is_count(value.buy_quantity) or value.buy_quantity <= 0:
            errors.append("Buy quantity must be greater than 0")
        if not _is_count(value.pay_quantity) or value.pay_quantity <= 0:
            errors.append("Pay quantity must be greater than 0")
        if not errors and value.pay_quantity >= value.buy_quantity:
            errors.append("Pay quantity must be less than buy quantity")
        return errors

    if kind == DiscountKind.BUY_X_GET_Y:
        if not isinstance(value, BuyXGetY):
            return ["Buy X get Y rules need buy and get quantities"]
        errors = []
        if not _is_count(value.buy_quantity) or value.buy_quantity <= 0:
            errors.append("Buy quantity must be greater than 0")
        if not _is_count(value.get_quantity) or value.get_quantity <= 0:
            errors.append("Gift quantity must be greater than 0")
        return errors

    if kind == DiscountKind.QUANTITY_TIERED:
        if not isinstance(value, tuple) or not value:
            return ["At least one quantity tier is required"]
        errors = []
        for tier in value:
            if not isinstance(tier, QuantityTier):
                errors.append("Quantity tiers must be (min_quantity, percent_off) pairs")
                continue
            if not _is_count(tier.min_quantity) or tier.min_quantity <= 0:
                errors.append("Tier minimum quantity must be greater than 0")
            errors.extend(_validate_percent(tier.percent_off, label="Tier percentage"))
        return errors

    if kind == DiscountKind.SPEND_THRESHOLD:
        if not isinstance(value, SpendThreshold):
            return ["Spend threshold rules need a minimum spend and a fixed price"]
        errors = []
        if not _is_decimal(value.minimum_spend) or value.minimum_spend <= ZERO:
            errors.append("Minimum spend must be greater than 0")
        if not _is_decimal(value.fixed_price) or value.fixed_price < ZERO:
            errors.append("Fixed price cannot be negative")
        if not errors and value.fixed_price >= value.minimum_spend:
            errors.append("Fixed price must be less than the minimum spend")
        return errors

    return [f"Unknown discount kind {kind!r}"]


def validate_rule(rule: DiscountRule) -> list[str]:
    """Return every structural problem with ``rule``; empty means valid."""
    errors = _validate_value(rule)

    if rule.scope == RuleScope.CATEGORY and not rule.scope_category_ids:
        errors.append("Select at least one category")
    if rule.scope == RuleScope.PRODUCT and not rule.scope_product_ids:
        errors.append("Select at least one product")

    if rule.minimum_cart_amount is not None and (
        not _is_decimal(rule.minimum_cart_amount) or rule.minimum_cart_amount < ZERO
    ):
        errors.append("Minimum cart amount cannot be negative")
    if rule.minimum_quantity is not None and (
        not _is_count(rule.minimum_quantity) or rule.minimum_quantity < 1
    ):
        errors.append("Minimum quantity must be at least 1")
    if rule.usage_limit is not None and (not _is_count(rule.usage_limit) or rule.usage_limit < 1):
        errors.append("Usage limit must be at least 1")
    if rule.usage_count < 0:
        errors.append("Usage count cannot be negative")
    if rule.active_from and rule.active_until and rule.active_from > rule.active_until:
        errors.append("Start date must be before end date")

    return errors


# ---------------------------------------------------------------------------
# Descriptions
# ---------------------------------------------------------------------------

def _percent(value: Decimal) -> str:
    return format(value.normalize(), "f")


def describe_rule(rule: DiscountRule) -> str:
    """Short customer-facing description, e.g. "Buy 3, pay for 2"."""
    kind = rule.kind
    value = rule.value

    if kind == DiscountKind.PERCENTAGE and _is_decimal(value):
        return f"{_percent(value)}% off"
    if kind == DiscountKind.FIXED_AMOUNT and _is_decimal(value):
        return f"{quantize(value)} off"
    if kind == DiscountKind.FREE_SHIPPING:
        return "Free shipping"
    if kind == DiscountKind.BUY_X_PAY_Y and isinstance(value, BuyXPayY):
        return f"Buy {value.buy_quantity}, pay for {value.pay_quantity}"
    if kind == DiscountKind.BUY_X_GET_Y and isinstance(value, BuyXGetY):
        description = f"Buy {value.buy_quantity}, get {value.get_quantity} free"
        if value.gift_product_id:
            description += f" ({value.gift_product_id})"
        return description
    if kind == DiscountKind.QUANTITY_TIERED and value and isinstance(value, tuple) and all(
        isinstance(tier, QuantityTier) for tier in value
    ):
        first = min(value, key=lambda tier: tier.min_quantity)
        return f"Buy {first.min_quantity}+, get {_percent(first.percent_off)}% off"
    if kind == DiscountKind.SPEND_THRESHOLD and isinstance(value, SpendThreshold):
        return f"Spend {quantize(value.minimum_spend)}, pay {quantize(value.fixed_price)}"
    return "Discount"
