"""
schemas/player_session_schema.py — Marshmallow schemas for chip movements.

Validation responsibility:
  - This file: types, decimal precision, sign of amounts.
  - services/player_session_service.py: minimum buy-in, player state, and the
    balance guard on leave (these need the database).

An amount that fails its sign check is reported as INVALID_AMOUNT so callers
get the same code whether the schema or the service caught it.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate

from pokerledger.app.errors import ErrorCode


def _check_precision(value: Decimal) -> None:
    # Decimal("10.123").as_tuple().exponent == -3 → 3 dp → REJECT
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_positive_amount(value: Decimal) -> None:
    if value <= Decimal("0"):
        raise ValidationError(ErrorCode.INVALID_AMOUNT)
    _check_precision(value)


def _validate_non_negative_amount(value: Decimal) -> None:
    if value < Decimal("0"):
        raise ValidationError(ErrorCode.INVALID_AMOUNT)
    _check_precision(value)


class JoinSessionSchema(Schema):
    """POST /sessions/:id/players"""

    player_id = fields.Int(
        required=True,
        strict=True,   # reject floats like 1.0, integers only
        validate=validate.Range(min=1, error="player_id must be a positive integer."),
    )

    # Compared against the session's minimum in the service (BELOW_MINIMUM_BUY_IN).
    buy_in = fields.Decimal(
        required=True,
        validate=_validate_positive_amount,
    )


class AddChipsSchema(Schema):
    """POST /sessions/:id/players/:psid/chips"""

    amount = fields.Decimal(
        required=True,
        validate=_validate_positive_amount,
    )

    note = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=255),
    )


class LeaveSchema(Schema):
    """
    POST /sessions/:id/players/:psid/leave

    leave_amount is the counted chip stack. Zero is valid (the player lost
    everything); whether it matches the required cash-out of a last player is
    checked in the service.
    """

    leave_amount = fields.Decimal(
        required=True,
        validate=_validate_non_negative_amount,
    )


class RejoinSchema(Schema):
    """POST /sessions/:id/players/:psid/rejoin"""

    additional_buy_in = fields.Decimal(
        load_default=Decimal("0"),
        validate=_validate_non_negative_amount,
    )
