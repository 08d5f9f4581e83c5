"""Pydantic schemas for API request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field

from promotions.models import (
    CalculationContext,
    CalculationResult,
    CartLine,
    DiscountKind,
    DiscountRule,
    RuleScope,
)
from promotions.serialization import rule_from_mapping


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class CartLineIn(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=64)
    category_id: Optional[str] = Field(None, max_length=64)
    unit_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=4)
    quantity: int = Field(..., ge=1, le=10_000)

    def to_line(self) -> CartLine:
        return CartLine(
            product_id=self.product_id,
            unit_price=self.unit_price,
            quantity=self.quantity,
            category_id=self.category_id,
        )


class CartPreviewRequest(BaseModel):
    lines: list[CartLineIn] = Field(default_factory=list, max_length=500)
    coupon_code: Optional[str] = Field(None, max_length=64)
    is_member: bool = False
    shipping_amount: Decimal = Field(Decimal("0"), ge=0)

    def to_cart(self) -> list[CartLine]:
        return [line.to_line() for line in self.lines]

    def to_context(self, now: datetime) -> CalculationContext:
        return CalculationContext(
            now=now,
            is_member=self.is_member,
            shipping_amount=self.shipping_amount,
            coupon_code=self.coupon_code,
        )


class OrderCommitRequest(CartPreviewRequest):
    """Same payload as a preview; the order id travels in the path."""


class DiscountRuleIn(BaseModel):
    """A rule as entered in the admin form, checked before it is saved."""

    id: str = "draft"
    kind: DiscountKind
    value: Any = None
    name: str = Field("", max_length=200)
    scope: RuleScope = RuleScope.ALL
    scope_category_ids: list[str] = Field(default_factory=list)
    scope_product_ids: list[str] = Field(default_factory=list)
    excluded_category_ids: list[str] = Field(default_factory=list)
    excluded_product_ids: list[str] = Field(default_factory=list)
    minimum_cart_amount: Optional[Decimal] = None
    minimum_quantity: Optional[int] = None
    active_from: Optional[datetime] = None
    active_until: Optional[datetime] = None
    priority: int = 0
    stackable: bool = True
    usage_limit: Optional[int] = None
    code: Optional[str] = Field(None, max_length=64)

    def to_rule(self) -> DiscountRule:
        return rule_from_mapping(self.model_dump())


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class AppliedRuleOut(BaseModel):
    rule_id: str
    name: str
    kind: str
    amount: Decimal
    code: Optional[str] = None


class GiftLineOut(BaseModel):
    product_id: str
    category_id: Optional[str] = None
    quantity: int
    unit_price: Decimal


class CalculationResponse(BaseModel):
    original_total: Decimal
    discount_total: Decimal
    final_total: Decimal
    shipping_amount: Decimal
    amount_due: Decimal
    free_shipping: bool
    applied_rules: list[AppliedRuleOut]
    gift_lines: list[GiftLineOut]
    errors: list[str]
    replayed: bool = False

    @classmethod
    def from_result(cls, result: CalculationResult, replayed: bool = False) -> "CalculationResponse":
        return cls(
            original_total=result.original_total,
            discount_total=result.discount_total,
            final_total=result.final_total,
            shipping_amount=result.shipping_amount,
            amount_due=result.amount_due,
            free_shipping=result.free_shipping,
            applied_rules=[
                AppliedRuleOut(
                    rule_id=applied.rule_id,
                    name=applied.name,
                    kind=applied.kind.value,
                    amount=applied.amount,
                    code=applied.code,
                )
                for applied in result.applied_rules
            ],
            gift_lines=[
                GiftLineOut(
                    product_id=line.product_id,
                    category_id=line.category_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for line in result.gift_lines
            ],
            errors=list(result.errors),
            replayed=replayed,
        )


class RuleValidationResponse(BaseModel):
    valid: bool
    errors: list[str]
    description: Optional[str] = None
