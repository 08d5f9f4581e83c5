"""Test eligibility checks and the candidate filter."""
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

from promotions.config import EngineConfig, MinimumQuantityScope
from promotions.eligibility import (
    check_active_window,
    check_kind_preconditions,
    check_membership,
    check_minimum_amount,
    check_minimum_quantity,
    check_scope_relevance,
    check_usage_limit,
    evaluate_rules,
    filter_eligible,
)
from promotions.models import BuyXGetY, BuyXPayY, CalculationContext, QuantityTier, SpendThreshold


def test_active_window(rule, now):
    assert check_active_window(rule(), now).passed
    future = rule(active_from=now + timedelta(days=1))
    assert check_active_window(future, now).message == "not active yet"
    past = rule(active_until=now - timedelta(seconds=1))
    assert check_active_window(past, now).message == "expired"


def test_active_window_bounds_are_inclusive(rule, now):
    assert check_active_window(rule(active_from=now, active_until=now), now).passed


def test_usage_limit(rule):
    assert check_usage_limit(rule(usage_limit=2, usage_count=1)).passed
    result = check_usage_limit(rule(usage_limit=2, usage_count=2))
    assert not result.passed
    assert result.message == "usage limit reached"
    assert check_usage_limit(rule(usage_count=500)).passed


def test_membership(rule):
    members_only = rule(scope="member")
    assert not check_membership(members_only, is_member=False).passed
    assert check_membership(members_only, is_member=True).passed
    assert check_membership(rule(), is_member=False).passed


def test_minimum_amount_counts_whole_cart(rule, line):
    r = rule(minimum_cart_amount=Decimal("100"), scope="product", scope_product_ids={"a"})
    cart = [line("a", "10"), line("b", "95")]
    assert check_minimum_amount(r, cart).passed
    assert not check_minimum_amount(r, [line("a", "99.99")]).passed


def test_minimum_quantity_counts_all_units_by_default(rule, line):
    r = rule(minimum_quantity=3, scope="category", scope_category_ids={"books"})
    cart = [line("a", "10", 1, "books"), line("b", "10", 2, "games")]
    assert check_minimum_quantity(r, cart).passed
    assert check_minimum_quantity(r, cart, MinimumQuantityScope.CART).details["counted"] == 3


def test_minimum_quantity_matching_scope_counts_only_matching_units(rule, line):
    r = rule(minimum_quantity=3, scope="category", scope_category_ids={"books"})
    cart = [line("a", "10", 1, "books"), line("b", "10", 2, "games")]
    result = check_minimum_quantity(r, cart, MinimumQuantityScope.MATCHING)
    assert not result.passed
    assert result.details["counted"] == 1


def test_minimum_quantity_scope_changes_the_outcome(rule, line, now):
    r = rule(minimum_quantity=3, scope="category", scope_category_ids={"books"})
    cart = [line("a", "10", 1, "books"), line("b", "10", 2, "games")]
    context = CalculationContext(now=now)

    whole_cart = filter_eligible(cart, [r], context, EngineConfig())
    matching = filter_eligible(
        cart, [r], context, EngineConfig(minimum_quantity_scope=MinimumQuantityScope.MATCHING)
    )
    assert whole_cart.candidates == [r]
    assert matching.candidates == []


def test_scope_relevance(rule, line):
    cart = [line("a", "10", category_id="games")]
    assert not check_scope_relevance(rule(scope="category", scope_category_ids={"books"}), cart).passed
    assert check_scope_relevance(rule(), cart).passed
    excluded_everything = rule(excluded_category_ids={"games"})
    assert not check_scope_relevance(excluded_everything, cart).passed


def test_kind_preconditions(rule, line):
    cart = [line("a", "10", 2)]
    assert not check_kind_preconditions(rule("buy_x_pay_y", BuyXPayY(3, 2)), cart).passed
    assert check_kind_preconditions(rule("buy_x_pay_y", BuyXPayY(2, 1)), cart).passed
    tiers = (QuantityTier(3, Decimal("5")),)
    assert not check_kind_preconditions(rule("quantity_tiered", tiers), cart).passed
    spend = SpendThreshold(Decimal("50"), Decimal("40"))
    assert not check_kind_preconditions(rule("spend_threshold", spend), cart).passed


def test_evaluate_rules_collects_failures(rule, now):
    outcome = evaluate_rules(
        check_active_window(rule(active_until=now - timedelta(days=1)), now),
        check_usage_limit(rule(usage_limit=1, usage_count=1)),
        check_membership(rule(), is_member=False),
    )
    assert not outcome.all_passed
    assert outcome.reason == "expired; usage limit reached"


def test_filter_orders_by_priority_then_stored_order(rule, line, context):
    low = rule(priority=1, id="low")
    first = rule(priority=5, id="first")
    second = rule(priority=5, id="second")
    report = filter_eligible([line("a", "10")], [second, low, first], context)
    assert [r.id for r in report.candidates] == ["low", "second", "first"]


def test_coupon_sorts_after_automatic_rules_of_equal_priority(rule, line, now):
    coupon = rule(id="coupon", code="SAVE")
    auto = rule(id="auto")
    context = CalculationContext(now=now, coupon_code="save")
    report = filter_eligible([line("a", "10")], [coupon, auto], context)
    assert [r.id for r in report.candidates] == ["auto", "coupon"]


def test_coupon_ignored_unless_requested(rule, line, context):
    report = filter_eligible([line("a", "10")], [rule(code="SAVE")], context)
    assert report.candidates == []
    assert report.errors == []


def test_unknown_coupon_reported(rule, line, now):
    context = CalculationContext(now=now, coupon_code="nope")
    report = filter_eligible([line("a", "10")], [rule(code="SAVE")], context)
    assert report.errors == ["Coupon NOPE: code is not valid"]


def test_ineligible_coupon_reports_reason(rule, line, now):
    coupon = rule(code="BIG", minimum_cart_amount=Decimal("100"))
    context = CalculationContext(now=now, coupon_code="big")
    report = filter_eligible([line("a", "10")], [coupon], context)
    assert report.candidates == []
    assert len(report.errors) == 1
    assert report.errors[0].startswith("Coupon BIG: minimum cart amount of 100 not met")


def test_ineligible_automatic_rule_is_silent(rule, line, context):
    members_only = rule(scope="member")
    malformed = rule("percentage", Decimal("-5"))
    report = filter_eligible([line("a", "10")], [members_only, malformed], context)
    assert report.candidates == []
    assert report.errors == []
    assert set(report.rejected) == {members_only.id, malformed.id}


def test_duplicate_rule_ids_are_skipped(rule, line, context):
    original = rule(id="dup", priority=1)
    duplicate = replace(original, priority=0)
    report = filter_eligible([line("a", "10")], [original, duplicate], context)
    assert report.candidates == [original]


def test_only_one_coupon_applies(rule, line, now):
    first = rule(id="c1", code="TWICE", priority=0)
    second = rule(id="c2", code="TWICE", priority=1)
    context = CalculationContext(now=now, coupon_code="twice")
    report = filter_eligible([line("a", "10")], [second, first], context)
    assert [r.id for r in report.candidates] == ["c1"]
    assert report.errors == ["Coupon TWICE: only one coupon code can be applied"]


def test_empty_cart_has_no_scoped_candidates(rule, context):
    report = filter_eligible([], [rule(scope="product", scope_product_ids={"a"})], context)
    assert report.candidates == []


def test_gift_without_product_needs_enough_of_one_product(rule, line):
    r = rule("buy_x_get_y", BuyXGetY(2, 1))
    assert not check_kind_preconditions(r, [line("a", "10"), line("b", "10")]).passed
    assert check_kind_preconditions(r, [line("a", "10"), line("b", "10", 2)]).passed
    assert check_kind_preconditions(r, [line("a", "10"), line("a", "10")]).passed


def test_named_gift_counts_every_matching_unit(rule, line):
    r = rule("buy_x_get_y", BuyXGetY(2, 1, "tote"))
    assert check_kind_preconditions(r, [line("a", "10"), line("b", "10")]).passed
