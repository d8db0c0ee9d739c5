"""Unit tests for the Decimal helpers in app/money.py."""

from __future__ import annotations

from decimal import Decimal

import pytest

from pokerledger.app.money import format_money, round_to_unit, to_money

D = Decimal


@pytest.mark.parametrize("value, unit, expected", [
    ("12.5",  "1",    "13.00"),
    ("-12.5", "1",    "-13.00"),
    ("12.49", "1",    "12.00"),
    ("1.005", "0.01", "1.01"),
    ("17",    "5",    "15.00"),
    ("17.5",  "5",    "20.00"),
])
def test_round_to_unit(value, unit, expected):
    result = round_to_unit(D(value), D(unit))
    assert result == D(expected)
    assert isinstance(result, Decimal)


def test_to_money_quantizes_to_cents():
    assert str(to_money(5)) == "5.00"
    assert str(to_money("2.345")) == "2.35"


def test_format_money_is_signed():
    assert format_money(D("50")) == "+50.00"
    assert format_money(D("-12")) == "-12.00"
    assert format_money(D("0")) == "+0.00"
