"""Test mapping rules to and from plain data."""
from datetime import timezone
from decimal import Decimal

import pytest

from promotions.models import BuyXGetY, BuyXPayY, DiscountKind, QuantityTier, RuleScope, SpendThreshold
from promotions.serialization import (
    parse_datetime,
    parse_decimal,
    rule_from_mapping,
    rule_to_mapping,
    value_from_payload,
)


def test_parse_decimal_reads_floats_by_their_printed_form():
    assert parse_decimal(0.1) == Decimal("0.1")
    assert parse_decimal("19.99") == Decimal("19.99")


def test_parse_decimal_rejects_garbage():
    with pytest.raises(ValueError):
        parse_decimal("ten")


def test_parse_datetime_assumes_utc_for_naive():
    parsed = parse_datetime("2026-01-01T10:00:00")
    assert parsed.tzinfo == timezone.utc
    assert parse_datetime(None) is None
    assert parse_datetime("") is None


def test_value_payloads():
    assert value_from_payload(DiscountKind.PERCENTAGE, "10") == Decimal("10")
    assert value_from_payload(DiscountKind.FREE_SHIPPING, None) == Decimal("0")
    assert value_from_payload(
        DiscountKind.BUY_X_PAY_Y, {"buy_quantity": 3, "pay_quantity": "2"}
    ) == BuyXPayY(3, 2)
    assert value_from_payload(
        DiscountKind.BUY_X_GET_Y, {"buy_quantity": 2, "get_quantity": 1, "gift_product_id": ""}
    ) == BuyXGetY(2, 1, None)
    assert value_from_payload(
        DiscountKind.SPEND_THRESHOLD, {"minimum_spend": "100", "fixed_price": "79.90"}
    ) == SpendThreshold(Decimal("100"), Decimal("79.90"))


def test_tiers_accept_list_or_wrapped_form():
    tiers = [{"min_quantity": 2, "percent_off": "5"}, {"min_quantity": 5, "percent_off": "10"}]
    expected = (QuantityTier(2, Decimal("5")), QuantityTier(5, Decimal("10")))
    assert value_from_payload(DiscountKind.QUANTITY_TIERED, tiers) == expected
    assert value_from_payload(DiscountKind.QUANTITY_TIERED, {"tiers": tiers}) == expected


def test_missing_payload_key_raises():
    with pytest.raises(KeyError):
        value_from_payload(DiscountKind.BUY_X_PAY_Y, {"buy_quantity": 3})


def test_rule_from_mapping_defaults():
    rule = rule_from_mapping({"id": 7, "kind": "fixed_amount", "value": "5"})
    assert rule.id == "7"
    assert rule.scope is RuleScope.ALL
    assert rule.stackable is True
    assert rule.code is None
    assert rule.usage_count == 0


def test_rule_to_mapping_is_stable():
    rule = rule_from_mapping({
        "id": "r1",
        "kind": "percentage",
        "value": "10",
        "scope": "product",
        "scope_product_ids": ["b", "a"],
        "active_from": "2026-01-01T00:00:00+00:00",
        "code": "spring",
        "usage_limit": 100,
    })
    data = rule_to_mapping(rule)
    assert data["scope_product_ids"] == ["a", "b"]
    assert data["value"] == "10"
    assert data["code"] == "SPRING"
    assert data["active_from"] == "2026-01-01T00:00:00+00:00"
    assert rule_from_mapping(data) == rule
