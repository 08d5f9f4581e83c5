"""Test money helpers."""
from decimal import Decimal

from promotions.money import ZERO, clamp, money_sum, percent_of, quantize


def test_quantize_rounds_half_to_even():
    assert quantize(Decimal("0.125")) == Decimal("0.12")
    assert quantize(Decimal("0.135")) == Decimal("0.14")
    assert quantize(Decimal("2.5"), places=0) == Decimal("2")


def test_quantize_keeps_requested_places():
    assert str(quantize(Decimal("3"))) == "3.00"
    assert str(quantize(Decimal("3.14159"), places=3)) == "3.142"


def test_percent_of():
    assert percent_of(Decimal("200"), Decimal("10")) == Decimal("20.00")
    assert percent_of(Decimal("2.50"), Decimal("5")) == Decimal("0.12")


def test_clamp():
    assert clamp(Decimal("-1")) == ZERO
    assert clamp(Decimal("15"), upper=Decimal("10")) == Decimal("10")
    assert clamp(Decimal("5"), upper=Decimal("10")) == Decimal("5")


def test_money_sum_of_nothing_is_zero():
    assert money_sum([]) == ZERO
    assert money_sum([Decimal("0.10"), Decimal("0.20")]) == Decimal("0.30")
