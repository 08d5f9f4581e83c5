"""Test per-kind calculators."""
from decimal import Decimal

import pytest

from promotions.calculators import _CALCULATORS, calculate_rule, calculator_for
from promotions.config import EngineConfig
from promotions.models import (
    BuyXGetY,
    BuyXPayY,
    DiscountKind,
    QuantityTier,
    SpendThreshold,
)


def test_every_kind_has_a_calculator():
    assert set(_CALCULATORS) == set(DiscountKind)
    for kind in DiscountKind:
        assert callable(calculator_for(kind))


def test_percentage_of_matching_lines(rule, line):
    r = rule("percentage", Decimal("10"), scope="category", scope_category_ids={"books"})
    cart = [line("a", "50", 2, "books"), line("b", "30", 1, "games")]
    outcome = calculate_rule(r, cart)
    assert outcome.amount == Decimal("10.00")
    assert outcome.matching_subtotal == Decimal("100")


def test_percentage_uses_bankers_rounding(rule, line):
    outcome = calculate_rule(rule("percentage", Decimal("5")), [line("a", "2.50")])
    assert outcome.amount == Decimal("0.12")


def test_percentage_respects_currency_places(rule, line):
    config = EngineConfig(currency_places=0)
    outcome = calculate_rule(rule("percentage", Decimal("15")), [line("a", "10")], config)
    assert outcome.amount == Decimal("2")


def test_fixed_amount_capped_at_matching_subtotal(rule, line):
    outcome = calculate_rule(rule("fixed_amount", Decimal("50")), [line("a", "30")])
    assert outcome.amount == Decimal("30")
    outcome = calculate_rule(rule("fixed_amount", Decimal("5")), [line("a", "30")])
    assert outcome.amount == Decimal("5")


def test_free_shipping_flags_without_amount(rule, line):
    outcome = calculate_rule(rule("free_shipping", Decimal("0")), [line("a", "30")])
    assert outcome.free_shipping is True
    assert outcome.amount == Decimal("0")


def test_quantity_tiered_picks_highest_reached_tier(rule, line):
    tiers = (QuantityTier(2, Decimal("5")), QuantityTier(5, Decimal("10")), QuantityTier(10, Decimal("20")))
    outcome = calculate_rule(rule("quantity_tiered", tiers), [line("a", "10", 6)])
    assert outcome.amount == Decimal("6.00")


def test_quantity_tiered_below_every_tier(rule, line):
    tiers = (QuantityTier(3, Decimal("5")),)
    assert calculate_rule(rule("quantity_tiered", tiers), [line("a", "10", 2)]).amount == Decimal("0")


def test_spend_threshold(rule, line):
    r = rule("spend_threshold", SpendThreshold(Decimal("100"), Decimal("80")))
    assert calculate_rule(r, [line("a", "60", 2)]).amount == Decimal("40")
    assert calculate_rule(r, [line("a", "60")]).amount == Decimal("0")


def test_buy_x_pay_y_frees_cheapest_unit_per_bucket(rule, line):
    r = rule("buy_x_pay_y", BuyXPayY(3, 2))
    cart = [line("a", "30"), line("b", "20"), line("c", "10"), line("d", "25"), line("e", "15"), line("f", "5")]
    # 30 25 20 | 15 10 5
    assert calculate_rule(r, cart).amount == Decimal("25")


def test_buy_x_pay_y_partial_bucket_earns_nothing(rule, line):
    r = rule("buy_x_pay_y", BuyXPayY(3, 2))
    assert calculate_rule(r, [line("a", "10", 4)]).amount == Decimal("10")
    assert calculate_rule(r, [line("a", "10", 2)]).amount == Decimal("0")


def test_buy_x_pay_y_more_than_one_free_unit(rule, line):
    r = rule("buy_x_pay_y", BuyXPayY(4, 2))
    cart = [line("a", "40"), line("b", "30"), line("c", "20"), line("d", "10")]
    assert calculate_rule(r, cart).amount == Decimal("30")


def test_buy_x_get_y_named_gift(rule, line):
    r = rule("buy_x_get_y", BuyXGetY(2, 1, "tote-bag"))
    outcome = calculate_rule(r, [line("a", "10", 3), line("b", "10", 2)])
    assert outcome.amount == Decimal("0")
    assert len(outcome.gift_lines) == 1
    gift = outcome.gift_lines[0]
    assert gift.product_id == "tote-bag"
    assert gift.quantity == 2
    assert gift.unit_price == Decimal("0")


def test_buy_x_get_y_same_product_counted_per_product(rule, line):
    r = rule("buy_x_get_y", BuyXGetY(2, 1))
    cart = [line("a", "10", 3, "books"), line("b", "10", 1), line("a", "10", 1, "books")]
    outcome = calculate_rule(r, cart)
    assert [(g.product_id, g.quantity, g.category_id) for g in outcome.gift_lines] == [("a", 2, "books")]


@pytest.mark.parametrize("kind,value", [
    ("percentage", Decimal("100")),
    ("fixed_amount", Decimal("1000")),
    ("spend_threshold", SpendThreshold(Decimal("1"), Decimal("0"))),
    ("buy_x_pay_y", BuyXPayY(2, 1)),
])
def test_amount_never_exceeds_matching_subtotal(rule, line, kind, value):
    cart = [line("a", "9.99", 3), line("b", "0.01", 1)]
    outcome = calculate_rule(rule(kind, value), cart)
    assert Decimal("0") <= outcome.amount <= outcome.matching_subtotal
