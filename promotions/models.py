"""Value types for the discount engine.

Every type here is a frozen dataclass: the caller builds them per
calculation and the engine never mutates them. Money is always Decimal.

The rule ``value`` is a closed union whose shape depends on ``kind``:

    percentage / fixed_amount / free_shipping -> Decimal
    quantity_tiered                           -> tuple[QuantityTier, ...]
    spend_threshold                           -> SpendThreshold
    buy_x_pay_y                               -> BuyXPayY
    buy_x_get_y                               -> BuyXGetY
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional, Sequence, Union

from promotions.money import ZERO, money_sum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class DiscountKind(str, Enum):
    """How a rule reduces the price."""

    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_SHIPPING = "free_shipping"
    BUY_X_GET_Y = "buy_x_get_y"
    BUY_X_PAY_Y = "buy_x_pay_y"
    QUANTITY_TIERED = "quantity_tiered"
    SPEND_THRESHOLD = "spend_threshold"


class RuleScope(str, Enum):
    """Which cart lines a rule may affect."""

    ALL = "all"
    CATEGORY = "category"
    PRODUCT = "product"
    MEMBER = "member"


# ---------------------------------------------------------------------------
# Kind parameters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class QuantityTier:
    """Buy at least ``min_quantity`` matching units, get ``percent_off``."""

    min_quantity: int
    percent_off: Decimal


@dataclass(frozen=True)
class SpendThreshold:
    """Spend at least ``minimum_spend`` on matching lines, pay ``fixed_price``."""

    minimum_spend: Decimal
    fixed_price: Decimal


@dataclass(frozen=True)
class BuyXPayY:
    """Buy ``buy_quantity`` units, pay for ``pay_quantity`` of them."""

    buy_quantity: int
    pay_quantity: int


@dataclass(frozen=True)
class BuyXGetY:
    """Buy ``buy_quantity`` units, receive ``get_quantity`` free units.

    The gift is ``gift_product_id`` when set, otherwise the purchased product.
    """

    buy_quantity: int
    get_quantity: int
    gift_product_id: Optional[str] = None


RuleValue = Union[Decimal, tuple, SpendThreshold, BuyXPayY, BuyXGetY]


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CartLine:
    """One line of the shopping cart, as handed in by the caller."""

    product_id: str
    unit_price: Decimal
    quantity: int = 1
    category_id: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Quantity must be an integer, got {self.quantity!r}")
        if self.quantity < 1:
            raise ValueError(f"Quantity must be at least 1, got {self.quantity}")
        if not isinstance(self.unit_price, Decimal):
            raise ValueError(f"Unit price must be a Decimal, got {type(self.unit_price).__name__}")
        if self.unit_price < ZERO:
            raise ValueError(f"Unit price cannot be negative, got {self.unit_price}")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


def cart_subtotal(lines: Iterable[CartLine]) -> Decimal:
    """Sum of unit_price * quantity over the given lines."""
    return money_sum(line.line_total for line in lines)


def unit_count(lines: Iterable[CartLine]) -> int:
    """Total number of units across the given lines."""
    return sum(line.quantity for line in lines)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken as UTC so they compare with stored dates."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_code(code: Optional[str]) -> Optional[str]:
    """Canonical form of a coupon code: stripped and upper-cased."""
    if code is None:
        return None
    normalized = code.strip().upper()
    return normalized or None


@dataclass(frozen=True)
class DiscountRule:
    """A discount or promotion rule.

    Rules with a ``code`` are coupons; rules without one are automatic.
    ``usage_count`` is read-only here: only order commit increments it.
    """

    id: str
    kind: DiscountKind
    value: RuleValue = ZERO
    name: str = ""
    scope: RuleScope = RuleScope.ALL
    scope_category_ids: frozenset = frozenset()
    scope_product_ids: frozenset = frozenset()
    excluded_category_ids: frozenset = frozenset()
    excluded_product_ids: frozenset = frozenset()
    minimum_cart_amount: Optional[Decimal] = None
    minimum_quantity: Optional[int] = None
    active_from: Optional[datetime] = None
    active_until: Optional[datetime] = None
    priority: int = 0
    stackable: bool = True
    usage_limit: Optional[int] = None
    usage_count: int = 0
    code: Optional[str] = None

    def __post_init__(self):
        # Accept plain strings / lists from callers; store canonical forms
        object.__setattr__(self, "kind", DiscountKind(self.kind))
        object.__setattr__(self, "scope", RuleScope(self.scope))
        for attr in (
            "scope_category_ids",
            "scope_product_ids",
            "excluded_category_ids",
            "excluded_product_ids",
        ):
            object.__setattr__(self, attr, frozenset(getattr(self, attr)))
        if isinstance(self.value, list):
            object.__setattr__(self, "value", tuple(self.value))
        object.__setattr__(self, "code", normalize_code(self.code))
        object.__setattr__(self, "active_from", ensure_utc(self.active_from))
        object.__setattr__(self, "active_until", ensure_utc(self.active_until))

    @property
    def is_coupon(self) -> bool:
        return self.code is not None

    @property
    def has_exclusions(self) -> bool:
        return bool(self.excluded_category_ids or self.excluded_product_ids)

    @property
    def label(self) -> str:
        """Name for messages: the coupon code, else the name, else the id."""
        if self.code:
            return f"Coupon {self.code}"
        return self.name or self.id


def line_matches(rule: DiscountRule, line: CartLine) -> bool:
    """Whether ``line`` is affected by ``rule`` (exclusions first, then scope)."""
    if line.product_id in rule.excluded_product_ids:
        return False
    if line.category_id is not None and line.category_id in rule.excluded_category_ids:
        return False

    if rule.scope in (RuleScope.ALL, RuleScope.MEMBER):
        return True
    if rule.scope == RuleScope.CATEGORY:
        return line.category_id is not None and line.category_id in rule.scope_category_ids
    if rule.scope == RuleScope.PRODUCT:
        return line.product_id in rule.scope_product_ids
    return False


def matching_lines(rule: DiscountRule, cart: Sequence[CartLine]) -> list[CartLine]:
    """Cart lines the rule applies to, in cart order."""
    return [line for line in cart if line_matches(rule, line)]


# ---------------------------------------------------------------------------
# Context & result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CalculationContext:
    """Per-call facts the engine cannot derive from the cart.

    ``now`` is injected so the calculation never reads the clock; a naive
    value is taken as UTC.
    """

    now: datetime
    is_member: bool = False
    shipping_amount: Decimal = ZERO
    coupon_code: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "coupon_code", normalize_code(self.coupon_code))
        object.__setattr__(self, "now", ensure_utc(self.now))


@dataclass(frozen=True)
class AppliedRule:
    """A rule that took part in the result, with the amount it removed."""

    rule_id: str
    name: str
    amount: Decimal
    kind: DiscountKind
    code: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "name": self.name,
            "amount": str(self.amount),
            "kind": self.kind.value,
            "code": self.code,
        }


@dataclass(frozen=True)
class CalculationResult:
    """Cart-level outcome of a calculation."""

    original_total: Decimal
    discount_total: Decimal
    final_total: Decimal
    free_shipping: bool = False
    applied_rules: tuple = ()
    gift_lines: tuple = ()
    errors: tuple = ()
    shipping_amount: Decimal = ZERO

    @property
    def amount_due(self) -> Decimal:
        """Final total plus shipping, unless shipping became free."""
        shipping = ZERO if self.free_shipping else self.shipping_amount
        return self.final_total + shipping

    @property
    def applied_rule_ids(self) -> list[str]:
        return [applied.rule_id for applied in self.applied_rules]

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_total": str(self.original_total),
            "discount_total": str(self.discount_total),
            "final_total": str(self.final_total),
            "shipping_amount": str(self.shipping_amount),
            "amount_due": str(self.amount_due),
            "free_shipping": self.free_shipping,
            "applied_rules": [applied.to_dict() for applied in self.applied_rules],
            "gift_lines": [
                {
                    "product_id": line.product_id,
                    "category_id": line.category_id,
                    "unit_price": str(line.unit_price),
                    "quantity": line.quantity,
                }
                for line in self.gift_lines
            ],
            "errors": list(self.errors),
        }
