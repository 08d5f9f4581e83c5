"""Storefront API router — cart preview, rule validation, order commit.

- Cart preview: speculative pricing on every cart render, no counters change
- Rule validation: admin form check before a rule is saved
- Order commit: authoritative pricing with usage-limit enforcement
- Tenant isolation via middleware
- Service injection via FastAPI Depends
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from opentelemetry import trace

from api.middleware import get_current_tenant
from core.observability.logger import get_logger
from core.observability.otel_setup import calculation_span, record_result
from core.resilience import IdempotencyStore
from promotions.config import EngineConfig
from promotions.errors import PromotionError, UsageLimitExceeded
from promotions.validation import describe_rule, validate_rule
from verticals.storefront.checkout import CommitResult, DiscountCommitService
from verticals.storefront.models.schemas import (
    CalculationResponse,
    CartPreviewRequest,
    DiscountRuleIn,
    OrderCommitRequest,
    RuleValidationResponse,
)
from verticals.storefront.repository import DiscountRuleRepository, get_discount_repository

logger = get_logger("storefront.router")
tracer = trace.get_tracer("storefront-promotions")

router = APIRouter()

# Shared by every request of this process; commits are keyed per tenant/order
_idempotency: IdempotencyStore[CommitResult] = IdempotencyStore()
_config = EngineConfig.from_env()


def get_engine_config() -> EngineConfig:
    """FastAPI dependency for the engine configuration."""
    return _config


def get_commit_service(
    repository: DiscountRuleRepository = Depends(get_discount_repository),
    config: EngineConfig = Depends(get_engine_config),
) -> DiscountCommitService:
    """FastAPI dependency for DiscountCommitService."""
    return DiscountCommitService(repository, idempotency=_idempotency, config=config)


# ============================================================================
# Cart Preview
# ============================================================================

@router.post("/cart/preview", response_model=CalculationResponse)
async def preview_cart(
    request: CartPreviewRequest,
    service: DiscountCommitService = Depends(get_commit_service),
):
    """Price a cart with every discount that currently applies."""
    tenant_id = get_current_tenant()
    cart = request.to_cart()
    context = request.to_context(now=datetime.now(timezone.utc))

    with calculation_span(tracer, "preview", tenant_id, len(cart)) as span:
        result = await service.preview(tenant_id, cart, context)
        record_result(span, result)

    return CalculationResponse.from_result(result)


# ============================================================================
# Rule Validation
# ============================================================================

@router.post("/discounts/validate", response_model=RuleValidationResponse)
async def validate_discount(request: DiscountRuleIn):
    """Check a rule definition and describe it the way customers will see it."""
    try:
        rule = request.to_rule()
    except (KeyError, TypeError, ValueError) as exc:
        return RuleValidationResponse(
            valid=False,
            errors=[f"Invalid value for {request.kind.value}: {exc}"],
        )

    errors = validate_rule(rule)
    return RuleValidationResponse(
        valid=not errors,
        errors=errors,
        description=describe_rule(rule),
    )


# ============================================================================
# Order Commit
# ============================================================================

@router.post("/orders/{order_id}/discounts/commit", response_model=CalculationResponse)
async def commit_order_discounts(
    order_id: str,
    request: OrderCommitRequest,
    service: DiscountCommitService = Depends(get_commit_service),
):
    """Apply discounts to an order, consuming usage exactly once.

    Responds 409 when a coupon or promotion ran out after the customer saw
    the preview; the recalculated cart travels in the error detail.
    """
    tenant_id = get_current_tenant()
    cart = request.to_cart()
    context = request.to_context(now=datetime.now(timezone.utc))

    with calculation_span(tracer, "commit", tenant_id, len(cart)) as span:
        span.set_attribute("promotions.order_id", order_id)
        try:
            outcome = await service.commit(tenant_id, order_id, cart, context)
        except UsageLimitExceeded as exc:
            logger.info("Order %s: %s", order_id, exc)
            detail = {"message": str(exc), "rule_id": exc.rule_id, "code": exc.code}
            if exc.result is not None:
                detail["result"] = CalculationResponse.from_result(exc.result).model_dump(mode="json")
            raise HTTPException(status_code=409, detail=detail)
        except PromotionError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        record_result(span, outcome.result)

    return CalculationResponse.from_result(outcome.result, replayed=outcome.replayed)
