"""Eligibility filter: which rules are candidates for a cart.

Each check is a pure function: (rule, cart/context) -> RuleResult.
No database, no clock, no side effects, so every check is trivially
testable and the outcome of a calculation is explainable rule by rule.

filter_eligible() composes the checks for every rule and returns the
candidates in application order (ascending priority; on ties automatic
rules keep their stored order and come before the coupon).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence, cast

from core.observability.logger import get_logger
from promotions.config import EngineConfig, MinimumQuantityScope
from promotions.models import (
    BuyXGetY,
    BuyXPayY,
    CalculationContext,
    CartLine,
    DiscountKind,
    DiscountRule,
    RuleScope,
    SpendThreshold,
    cart_subtotal,
    matching_lines,
    unit_count,
)
from promotions.validation import validate_rule

logger = get_logger("eligibility")


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class RuleResult:
    """Outcome of a single eligibility check."""

    passed: bool
    rule_name: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class RuleSetResult:
    """Aggregate outcome of multiple checks."""

    all_passed: bool
    results: list[RuleResult]
    failed: list[RuleResult] = field(default_factory=list)

    def __post_init__(self):
        self.failed = [r for r in self.results if not r.passed]
        self.all_passed = len(self.failed) == 0

    @property
    def reason(self) -> str:
        """Failure messages joined for display; empty when all passed."""
        return "; ".join(r.message for r in self.failed)


def evaluate_rules(*rules: RuleResult) -> RuleSetResult:
    """Compose multiple check results into a single aggregate."""
    return RuleSetResult(
        all_passed=all(r.passed for r in rules),
        results=list(rules),
    )


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------

def check_structure(rule: DiscountRule) -> RuleResult:
    """Reject rules whose parameters do not make sense for their kind."""
    problems = validate_rule(rule)
    return RuleResult(
        passed=not problems,
        rule_name="structure",
        message="Rule is well formed" if not problems else "invalid rule: " + "; ".join(problems),
        details={"problems": problems},
    )


def check_active_window(rule: DiscountRule, now: datetime) -> RuleResult:
    """The rule must have started and must not have ended."""
    if rule.active_from is not None and now < rule.active_from:
        return RuleResult(
            passed=False,
            rule_name="active_window",
            message="not active yet",
            details={"active_from": rule.active_from.isoformat(), "now": now.isoformat()},
        )
    if rule.active_until is not None and now > rule.active_until:
        return RuleResult(
            passed=False,
            rule_name="active_window",
            message="expired",
            details={"active_until": rule.active_until.isoformat(), "now": now.isoformat()},
        )
    return RuleResult(passed=True, rule_name="active_window", message="Active")


def check_usage_limit(rule: DiscountRule) -> RuleResult:
    """The rule must not have been used up.

    This is advisory only: two concurrent previews may both pass it. The
    authoritative check is the conditional increment at order commit.
    """
    passed = rule.usage_limit is None or rule.usage_count < rule.usage_limit
    return RuleResult(
        passed=passed,
        rule_name="usage_limit",
        message="Usage available" if passed else "usage limit reached",
        details={"usage_count": rule.usage_count, "usage_limit": rule.usage_limit},
    )


def check_membership(rule: DiscountRule, is_member: bool) -> RuleResult:
    """Member-scoped rules need a member."""
    passed = rule.scope != RuleScope.MEMBER or is_member
    return RuleResult(
        passed=passed,
        rule_name="membership",
        message="Membership satisfied" if passed else "members only",
        details={"scope": rule.scope.value, "is_member": is_member},
    )


def check_minimum_amount(rule: DiscountRule, cart: Sequence[CartLine]) -> RuleResult:
    """Cart subtotal over all lines must reach ``minimum_cart_amount``."""
    subtotal = cart_subtotal(cart)
    passed = rule.minimum_cart_amount is None or subtotal >= rule.minimum_cart_amount
    return RuleResult(
        passed=passed,
        rule_name="minimum_amount",
        message=(
            "Minimum amount met"
            if passed
            else f"minimum cart amount of {rule.minimum_cart_amount} not met (subtotal {subtotal})"
        ),
        details={"subtotal": str(subtotal), "minimum": str(rule.minimum_cart_amount)},
    )


def check_minimum_quantity(
    rule: DiscountRule,
    cart: Sequence[CartLine],
    quantity_scope: MinimumQuantityScope = MinimumQuantityScope.CART,
) -> RuleResult:
    """Unit count must reach ``minimum_quantity``.

    Units are counted over the whole cart or only over lines the rule
    applies to, depending on ``quantity_scope``.
    """
    if quantity_scope == MinimumQuantityScope.MATCHING:
        counted = unit_count(matching_lines(rule, cart))
    else:
        counted = unit_count(cart)
    passed = rule.minimum_quantity is None or counted >= rule.minimum_quantity
    return RuleResult(
        passed=passed,
        rule_name="minimum_quantity",
        message=(
            "Minimum quantity met"
            if passed
            else f"at least {rule.minimum_quantity} items required ({counted} counted)"
        ),
        details={
            "counted": counted,
            "minimum": rule.minimum_quantity,
            "scope": quantity_scope.value,
        },
    )


def check_scope_relevance(rule: DiscountRule, cart: Sequence[CartLine]) -> RuleResult:
    """At least one cart line must fall inside the rule's scope."""
    if rule.scope in (RuleScope.ALL, RuleScope.MEMBER) and not rule.has_exclusions:
        passed = True
    else:
        passed = bool(matching_lines(rule, cart))
    return RuleResult(
        passed=passed,
        rule_name="scope_relevance",
        message="Applies to cart" if passed else "does not apply to any item in the cart",
        details={"scope": rule.scope.value},
    )


def _largest_product_quantity(lines: Sequence[CartLine]) -> int:
    per_product: dict[str, int] = {}
    for line in lines:
        per_product[line.product_id] = per_product.get(line.product_id, 0) + line.quantity
    return max(per_product.values(), default=0)


def check_kind_preconditions(rule: DiscountRule, cart: Sequence[CartLine]) -> RuleResult:
    """Kind-specific thresholds on the matching lines.

    A rule that cannot produce any effect is not a candidate, so it never
    takes the exclusive slot away from a rule that can.
    """
    lines = matching_lines(rule, cart)
    quantity = unit_count(lines)
    value = rule.value
    message: Optional[str] = None

    if rule.kind == DiscountKind.BUY_X_PAY_Y:
        offer = cast(BuyXPayY, value)
        if quantity < offer.buy_quantity:
            message = f"requires at least {offer.buy_quantity} matching items ({quantity} in cart)"
    elif rule.kind == DiscountKind.BUY_X_GET_Y:
        gift_offer = cast(BuyXGetY, value)
        # Without a gift product each product earns gifts from its own quantity
        counted = quantity if gift_offer.gift_product_id else _largest_product_quantity(lines)
        if counted < gift_offer.buy_quantity:
            message = f"requires at least {gift_offer.buy_quantity} matching items ({counted} counted)"
    elif rule.kind == DiscountKind.QUANTITY_TIERED:
        lowest = min(tier.min_quantity for tier in value)
        if quantity < lowest:
            message = f"requires at least {lowest} matching items ({quantity} in cart)"
    elif rule.kind == DiscountKind.SPEND_THRESHOLD:
        threshold = cast(SpendThreshold, value)
        subtotal = cart_subtotal(lines)
        if subtotal < threshold.minimum_spend:
            message = f"requires spending at least {threshold.minimum_spend} on matching items"

    return RuleResult(
        passed=message is None,
        rule_name="kind_preconditions",
        message=message or "Preconditions met",
        details={"kind": rule.kind.value, "matching_quantity": quantity},
    )


def evaluate_eligibility(
    rule: DiscountRule,
    cart: Sequence[CartLine],
    context: CalculationContext,
    config: EngineConfig,
) -> RuleSetResult:
    """Run every check for one rule.

    A structurally invalid rule is not checked further: the remaining checks
    assume well-formed parameters.
    """
    structure = check_structure(rule)
    if not structure.passed:
        return evaluate_rules(structure)

    return evaluate_rules(
        structure,
        check_active_window(rule, context.now),
        check_usage_limit(rule),
        check_membership(rule, context.is_member),
        check_minimum_amount(rule, cart),
        check_minimum_quantity(rule, cart, config.minimum_quantity_scope),
        check_scope_relevance(rule, cart),
        check_kind_preconditions(rule, cart),
    )


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------

@dataclass
class EligibilityReport:
    """Candidates in application order plus the reasons others were dropped."""

    candidates: list[DiscountRule]
    errors: list[str] = field(default_factory=list)
    rejected: dict[str, RuleSetResult] = field(default_factory=dict)


def filter_eligible(
    cart: Sequence[CartLine],
    rules: Sequence[DiscountRule],
    context: CalculationContext,
    config: EngineConfig | None = None,
) -> EligibilityReport:
    """Select candidate rules for ``cart``.

    Coupons are only considered when their code was supplied in the
    context. Errors are reported for the requested coupon only; automatic
    rules that do not qualify are logged and skipped.
    """
    config = config or EngineConfig.default()
    report = EligibilityReport(candidates=[])
    requested = context.coupon_code
    coupon_seen = False
    seen_ids: set[str] = set()
    passed: list[tuple[int, DiscountRule]] = []

    for index, rule in enumerate(rules):
        if rule.id in seen_ids:
            logger.warning("Ignoring duplicate rule id %s", rule.id)
            continue
        seen_ids.add(rule.id)

        if rule.is_coupon:
            if rule.code != requested:
                continue
            coupon_seen = True

        outcome = evaluate_eligibility(rule, cart, context, config)
        if outcome.all_passed:
            passed.append((index, rule))
            continue

        report.rejected[rule.id] = outcome
        if rule.is_coupon:
            report.errors.append(f"{rule.label}: {outcome.reason}")
        elif outcome.failed[0].rule_name == "structure":
            logger.warning("Skipping malformed rule %s: %s", rule.id, outcome.reason)
        else:
            logger.debug("Rule %s not eligible: %s", rule.id, outcome.reason)

    if requested and not coupon_seen:
        report.errors.append(f"Coupon {requested}: code is not valid")

    # Stable: equal priorities keep stored order, automatic before coupon
    passed.sort(key=lambda pair: (pair[1].priority, pair[1].is_coupon, pair[0]))

    coupon_taken = False
    for _, rule in passed:
        if rule.is_coupon:
            if coupon_taken:
                report.errors.append(f"{rule.label}: only one coupon code can be applied")
                continue
            coupon_taken = True
        report.candidates.append(rule)

    return report
