"""SQLAlchemy models for the storefront promotions vertical.

Automatic discounts and coupons share one table: a row with a code is a
coupon. Kind-specific parameters live in the JSON ``value`` column in the
shape promotions.serialization reads and writes. The to_dict() method is the
standard serialisation used by repositories and routers; to_rule() hands the
row to the engine.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, TenantMixin
from promotions.models import DiscountRule
from promotions.serialization import rule_from_mapping, rule_to_mapping


class DiscountRuleRecord(TenantMixin, Base):
    """A stored discount rule (automatic discount or coupon)."""

    __tablename__ = "discount_rules"
    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_discount_rules_tenant_code"),)
    # Fetch server-side timestamps on insert; async sessions cannot lazy-load them
    __mapper_args__ = {"eager_defaults": True}

    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    scope: Mapped[str] = mapped_column(String(16), nullable=False, default="all")
    scope_category_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    scope_product_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    excluded_category_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    excluded_product_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    minimum_cart_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    minimum_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    active_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    active_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    stackable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    code: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @staticmethod
    def columns_from_rule(rule: DiscountRule) -> dict[str, Any]:
        """Column values for ``rule``; the row gets its own id on insert."""
        data = rule_to_mapping(rule)
        data.pop("id")
        data["minimum_cart_amount"] = rule.minimum_cart_amount
        data["active_from"] = rule.active_from
        data["active_until"] = rule.active_until
        return data

    def to_rule(self) -> DiscountRule:
        """Engine value for this row."""
        return rule_from_mapping({
            "id": str(self.id),
            "kind": self.kind,
            "value": self.value,
            "name": self.name,
            "scope": self.scope,
            "scope_category_ids": self.scope_category_ids,
            "scope_product_ids": self.scope_product_ids,
            "excluded_category_ids": self.excluded_category_ids,
            "excluded_product_ids": self.excluded_product_ids,
            "minimum_cart_amount": self.minimum_cart_amount,
            "minimum_quantity": self.minimum_quantity,
            "active_from": self.active_from,
            "active_until": self.active_until,
            "priority": self.priority,
            "stackable": self.stackable,
            "usage_limit": self.usage_limit,
            "usage_count": self.usage_count,
            "code": self.code,
        })

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "tenant_id": self.tenant_id,
            "name": self.name,
            "kind": self.kind,
            "value": self.value,
            "scope": self.scope,
            "code": self.code,
            "priority": self.priority,
            "stackable": self.stackable,
            "usage_limit": self.usage_limit,
            "usage_count": self.usage_count,
            "is_active": self.is_active,
            "active_from": self.active_from.isoformat() if self.active_from else None,
            "active_until": self.active_until.isoformat() if self.active_until else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
