"""Mapping between rules and plain data (dicts / JSON).

Storage rows and HTTP payloads both speak this shape. Amounts travel as
strings and are parsed with ``Decimal(str(value))`` so a float that slips
in is read by its printed form instead of its binary approximation.

Example::

    rule = rule_from_mapping({
        "id": "r1",
        "kind": "buy_x_pay_y",
        "value": {"buy_quantity": 3, "pay_quantity": 2},
        "scope": "product",
        "scope_product_ids": ["sku-1"],
    })
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from promotions.models import (
    BuyXGetY,
    BuyXPayY,
    DiscountKind,
    DiscountRule,
    QuantityTier,
    RuleScope,
    RuleValue,
    SpendThreshold,
    ensure_utc,
)
from promotions.money import ZERO


def parse_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None or value == "" else parse_decimal(value)


def parse_datetime(value: Any) -> Optional[datetime]:
    """ISO string or datetime; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    return ensure_utc(parsed)


def value_from_payload(kind: DiscountKind, payload: Any) -> RuleValue:
    """Build the kind-specific rule value from plain data."""
    kind = DiscountKind(kind)

    if kind in (DiscountKind.PERCENTAGE, DiscountKind.FIXED_AMOUNT):
        return parse_decimal(payload)
    if kind == DiscountKind.FREE_SHIPPING:
        return ZERO if payload in (None, "") else parse_decimal(payload)
    if kind == DiscountKind.QUANTITY_TIERED:
        tiers = payload.get("tiers", []) if isinstance(payload, Mapping) else payload or []
        return tuple(
            QuantityTier(
                min_quantity=int(tier["min_quantity"]),
                percent_off=parse_decimal(tier["percent_off"]),
            )
            for tier in tiers
        )
    if kind == DiscountKind.SPEND_THRESHOLD:
        return SpendThreshold(
            minimum_spend=parse_decimal(payload["minimum_spend"]),
            fixed_price=parse_decimal(payload["fixed_price"]),
        )
    if kind == DiscountKind.BUY_X_PAY_Y:
        return BuyXPayY(
            buy_quantity=int(payload["buy_quantity"]),
            pay_quantity=int(payload["pay_quantity"]),
        )
    if kind == DiscountKind.BUY_X_GET_Y:
        return BuyXGetY(
            buy_quantity=int(payload["buy_quantity"]),
            get_quantity=int(payload["get_quantity"]),
            gift_product_id=payload.get("gift_product_id") or None,
        )
    raise ValueError(f"Unknown discount kind {kind!r}")


def value_to_payload(rule: DiscountRule) -> Any:
    """Inverse of value_from_payload."""
    value = rule.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, tuple):
        return [
            {"min_quantity": tier.min_quantity, "percent_off": str(tier.percent_off)}
            for tier in value
        ]
    if isinstance(value, SpendThreshold):
        return {"minimum_spend": str(value.minimum_spend), "fixed_price": str(value.fixed_price)}
    if isinstance(value, BuyXPayY):
        return {"buy_quantity": value.buy_quantity, "pay_quantity": value.pay_quantity}
    if isinstance(value, BuyXGetY):
        return {
            "buy_quantity": value.buy_quantity,
            "get_quantity": value.get_quantity,
            "gift_product_id": value.gift_product_id,
        }
    raise ValueError(f"Cannot serialise rule value {value!r}")


def rule_from_mapping(data: Mapping[str, Any]) -> DiscountRule:
    """Build a DiscountRule from a dict. Raises ValueError/KeyError on bad data."""
    kind = DiscountKind(data["kind"])
    minimum_quantity = data.get("minimum_quantity")
    usage_limit = data.get("usage_limit")

    return DiscountRule(
        id=str(data["id"]),
        kind=kind,
        value=value_from_payload(kind, data.get("value")),
        name=data.get("name") or "",
        scope=RuleScope(data.get("scope") or RuleScope.ALL),
        scope_category_ids=data.get("scope_category_ids") or (),
        scope_product_ids=data.get("scope_product_ids") or (),
        excluded_category_ids=data.get("excluded_category_ids") or (),
        excluded_product_ids=data.get("excluded_product_ids") or (),
        minimum_cart_amount=_optional_decimal(data.get("minimum_cart_amount")),
        minimum_quantity=int(minimum_quantity) if minimum_quantity is not None else None,
        active_from=parse_datetime(data.get("active_from")),
        active_until=parse_datetime(data.get("active_until")),
        priority=int(data.get("priority") or 0),
        stackable=bool(data.get("stackable", True)),
        usage_limit=int(usage_limit) if usage_limit is not None else None,
        usage_count=int(data.get("usage_count") or 0),
        code=data.get("code") or None,
    )


def rule_to_mapping(rule: DiscountRule) -> dict[str, Any]:
    """Plain-data form of ``rule``; ids are sorted so the output is stable."""
    return {
        "id": rule.id,
        "kind": rule.kind.value,
        "value": value_to_payload(rule),
        "name": rule.name,
        "scope": rule.scope.value,
        "scope_category_ids": sorted(rule.scope_category_ids),
        "scope_product_ids": sorted(rule.scope_product_ids),
        "excluded_category_ids": sorted(rule.excluded_category_ids),
        "excluded_product_ids": sorted(rule.excluded_product_ids),
        "minimum_cart_amount": (
            str(rule.minimum_cart_amount) if rule.minimum_cart_amount is not None else None
        ),
        "minimum_quantity": rule.minimum_quantity,
        "active_from": rule.active_from.isoformat() if rule.active_from else None,
        "active_until": rule.active_until.isoformat() if rule.active_until else None,
        "priority": rule.priority,
        "stackable": rule.stackable,
        "usage_limit": rule.usage_limit,
        "usage_count": rule.usage_count,
        "code": rule.code,
    }
