"""Discount rule repository — rule loading and usage accounting.

Two operations matter to the promotions engine:

- load_rules(): the active automatic rules of a tenant plus, when a code
  was entered, the coupon with that code. Read-only; safe on every cart
  render.
- consume_usage(): the atomic conditional increment performed at order
  commit. It is the only place usage counters change.
"""

from dataclasses import replace
from datetime import datetime
from typing import Optional

from fastapi import Depends
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from core.observability.logger import get_logger
from core.repository import BaseRepository, as_uuid
from promotions.models import DiscountRule, normalize_code
from verticals.storefront.models.db_models import DiscountRuleRecord

logger = get_logger("storefront.repository")


class DiscountRuleRepository(BaseRepository[DiscountRuleRecord]):
    """Repository for discount rules and coupons."""

    model = DiscountRuleRecord

    async def add_rule(self, tenant_id: str, rule: DiscountRule) -> DiscountRule:
        """Store ``rule`` for a tenant and return it carrying its database id."""
        created = await self.create(tenant_id, DiscountRuleRecord.columns_from_rule(rule))
        return replace(rule, id=created["id"])

    async def load_rules(
        self,
        tenant_id: str,
        now: datetime,
        coupon_code: Optional[str] = None,
    ) -> list[DiscountRule]:
        """Active automatic rules in priority order, then the requested coupon.

        The coupon is loaded regardless of its active window so the engine
        can tell the customer it expired rather than that it does not exist.
        """
        Rule = DiscountRuleRecord
        stmt = (
            select(Rule)
            .where(
                Rule.tenant_id == tenant_id,
                Rule.is_active.is_(True),
                Rule.code.is_(None),
                or_(Rule.active_from.is_(None), Rule.active_from <= now),
                or_(Rule.active_until.is_(None), Rule.active_until >= now),
            )
            .order_by(Rule.priority, Rule.created_at, Rule.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        rules = [row.to_rule() for row in result.scalars().all()]

        code = normalize_code(coupon_code)
        if code:
            coupon_stmt = (
                select(Rule)
                .where(
                    Rule.tenant_id == tenant_id,
                    Rule.is_active.is_(True),
                    Rule.code == code,
                )
                .limit(1)
                .execution_options(populate_existing=True)
            )
            coupon = (await self.session.execute(coupon_stmt)).scalar_one_or_none()
            if coupon is not None:
                rules.append(coupon.to_rule())

        return rules

    async def consume_usage(self, tenant_id: str, rule_id: str) -> bool:
        """Atomically add one use to a rule if it is still under its limit.

        The guard lives in the UPDATE's WHERE clause, so two concurrent
        commits can never both take the last use. Returns False when the
        limit was already reached (or the rule does not exist).
        """
        Rule = DiscountRuleRecord
        stmt = (
            update(Rule)
            .where(
                Rule.id == as_uuid(rule_id),
                Rule.tenant_id == tenant_id,
                or_(Rule.usage_limit.is_(None), Rule.usage_count < Rule.usage_limit),
            )
            .values(usage_count=Rule.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        consumed = result.rowcount == 1
        if not consumed:
            logger.info("Usage limit reached for rule %s (tenant %s)", rule_id, tenant_id)
        return consumed

    async def commit(self) -> None:
        """Make this session's usage increments durable."""
        await self.session.commit()

    async def release(self) -> None:
        """Roll back this session's uncommitted usage increments."""
        await self.session.rollback()


# ---------------------------------------------------------------------------
# FastAPI dependency factory
# ---------------------------------------------------------------------------

def get_discount_repository(
    session: AsyncSession = Depends(get_session),
) -> DiscountRuleRepository:
    """FastAPI dependency for DiscountRuleRepository."""
    return DiscountRuleRepository(session)
