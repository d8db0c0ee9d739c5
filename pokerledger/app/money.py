"""
money.py — Decimal helpers shared by the ledger and settlement services.

All amounts are Decimal. Float never enters the engine: JSON input is parsed
by marshmallow's Decimal field and database values come back from
NUMERIC(12, 2) columns as Decimal.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | str) -> Decimal:
    """Normalises an amount to two decimal places (exact for valid inputs)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_to_unit(value: Decimal, unit: Decimal) -> Decimal:
    """
    Rounds `value` to the nearest multiple of `unit`, ties away from zero.

    round_to_unit(Decimal("12.5"), Decimal("1"))    -> Decimal("13.00")
    round_to_unit(Decimal("-12.5"), Decimal("1"))   -> Decimal("-13.00")
    round_to_unit(Decimal("1.005"), Decimal("0.01")) -> Decimal("1.01")
    """
    steps = (value / unit).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return to_money(steps * unit)


def format_money(value: Decimal) -> str:
    """Renders a signed amount for human-facing messages: +50.00 / -12.00."""
    value = to_money(value)
    if value < 0:
        return f"-{abs(value)}"
    return f"+{value}"
