"""Preview and commit of cart discounts.

Preview runs the pure engine against freshly loaded rules and changes
nothing, so it can run on every cart render. Two previews may both see the
last use of a coupon; that is expected.

Commit is the authoritative step, run once the order is being finalised:

1. the order's idempotency key is reserved, so a retried checkout request
   does not consume usage twice;
2. rules are reloaded and the engine runs again;
3. every applied rule is consumed with an atomic conditional increment,
   and the increments are committed before the key is marked completed;
4. if any increment finds the rule exhausted, the transaction is rolled
   back, the cart is recalculated, and CouponUnavailableError /
   PromotionUnavailableError carries the new result to the caller.
"""

from dataclasses import dataclass, field, replace
from typing import Protocol, Sequence

from core.observability.logger import get_logger
from core.resilience import IdempotencyStatus, IdempotencyStore, generate_idempotency_key
from promotions.config import EngineConfig
from promotions.engine import calculate
from promotions.errors import (
    CouponUnavailableError,
    PromotionError,
    PromotionUnavailableError,
    UsageLimitExceeded,
)
from promotions.models import AppliedRule, CalculationContext, CalculationResult, CartLine, DiscountRule

logger = get_logger("storefront.checkout")

COMMIT_OPERATION = "commit_order_discounts"


class RuleSource(Protocol):
    """What the service needs from storage (DiscountRuleRepository)."""

    async def load_rules(self, tenant_id, now, coupon_code=None) -> list[DiscountRule]: ...

    async def consume_usage(self, tenant_id: str, rule_id: str) -> bool: ...

    async def commit(self) -> None: ...

    async def release(self) -> None: ...


@dataclass
class CommitResult:
    """Outcome of committing an order's discounts."""

    order_id: str
    result: CalculationResult
    consumed_rule_ids: list[str] = field(default_factory=list)
    replayed: bool = False


class DiscountCommitService:
    """Runs the engine for previews and enforces usage limits on commit."""

    def __init__(
        self,
        repository: RuleSource,
        idempotency: IdempotencyStore[CommitResult] | None = None,
        config: EngineConfig | None = None,
    ):
        self.repository = repository
        self.idempotency = idempotency or IdempotencyStore()
        self.config = config or EngineConfig.default()

    async def preview(
        self,
        tenant_id: str,
        cart: Sequence[CartLine],
        context: CalculationContext,
    ) -> CalculationResult:
        """Speculative calculation; no counters change."""
        rules = await self.repository.load_rules(tenant_id, context.now, context.coupon_code)
        return calculate(cart, rules, context, self.config)

    async def commit(
        self,
        tenant_id: str,
        order_id: str,
        cart: Sequence[CartLine],
        context: CalculationContext,
    ) -> CommitResult:
        """Apply discounts to an order and consume usage exactly once.

        Raises UsageLimitExceeded (CouponUnavailableError for the entered
        code) when a rule ran out after the customer saw the preview.
        """
        key = generate_idempotency_key(COMMIT_OPERATION, tenant_id=tenant_id, order_id=order_id)
        existing = self.idempotency.check(key)
        if existing is not None:
            if existing.status == IdempotencyStatus.COMPLETED:
                logger.info("Order %s discounts already committed; replaying", order_id)
                return replace(existing.result, replayed=True)
            raise PromotionError(f"Discounts for order {order_id} are already being committed")

        self.idempotency.reserve(key)
        try:
            outcome = await self._consume(tenant_id, order_id, cart, context)
            # The key is completed only once the increments are durable
            await self.repository.commit()
        except Exception:
            self.idempotency.release(key)
            raise

        self.idempotency.complete(key, outcome)
        return outcome

    async def _consume(
        self,
        tenant_id: str,
        order_id: str,
        cart: Sequence[CartLine],
        context: CalculationContext,
    ) -> CommitResult:
        result = await self.preview(tenant_id, cart, context)
        consumed: list[str] = []

        for applied in result.applied_rules:
            if await self.repository.consume_usage(tenant_id, applied.rule_id):
                consumed.append(applied.rule_id)
                continue

            # Undo this order's increments, then price the cart as it stands now
            await self.repository.release()
            recalculated = await self.preview(tenant_id, cart, context)
            raise self._unavailable(applied, recalculated)

        logger.info(
            "Committed %d discounts for order %s (tenant %s), discount %s",
            len(consumed),
            order_id,
            tenant_id,
            result.discount_total,
        )
        return CommitResult(order_id=order_id, result=result, consumed_rule_ids=consumed)

    @staticmethod
    def _unavailable(applied: AppliedRule, recalculated: CalculationResult) -> UsageLimitExceeded:
        if applied.code:
            return CouponUnavailableError(
                applied.rule_id,
                f"Coupon {applied.code} is no longer available",
                result=recalculated,
                code=applied.code,
            )
        return PromotionUnavailableError(
            applied.rule_id,
            f"Promotion {applied.name} is no longer available",
            result=recalculated,
        )
