"""
schemas/session_schema.py — Marshmallow schemas for game session endpoints.

Validation responsibility:
  - This file: field types, decimal precision, ranges, non-empty strings.
  - services/game_session_service.py: existence, host/admin authorisation,
    PLAYERS_STILL_ACTIVE when completing.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate

from pokerledger.app.errors import ErrorCode
from pokerledger.app.models.game_session import SessionStatus


def _validate_non_negative_amount(value: Decimal) -> None:
    """Zero or more, at most 2 decimal places. Extra precision is rejected, never rounded."""
    if value < Decimal("0"):
        raise ValidationError(ErrorCode.INVALID_AMOUNT)
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_discount_percent(value: Decimal) -> None:
    if value < Decimal("0") or value > Decimal("100"):
        raise ValidationError("discount_percent must be between 0 and 100.")
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class CreateSessionSchema(Schema):
    """POST /sessions — the caller becomes the host."""

    date = fields.DateTime(required=True)

    location = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=255),
            _validate_non_empty_after_trim,
        ],
    )

    game_type = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=100),
    )

    min_buy_in = fields.Decimal(
        required=True,
        validate=_validate_non_negative_amount,
    )

    # Optional at creation; usually entered after the game.
    session_cost = fields.Decimal(
        load_default=None,
        allow_none=True,
        validate=_validate_non_negative_amount,
    )

    discount_percent = fields.Decimal(
        load_default=Decimal("0"),
        validate=_validate_discount_percent,
    )


class UpdateStatusSchema(Schema):
    """PATCH /sessions/:id/status"""

    status = fields.Enum(
        SessionStatus,
        by_value=True,
        required=True,
    )


class UpdateCostSchema(Schema):
    """PATCH /sessions/:id/cost — cost and discount used for the settlement."""

    session_cost = fields.Decimal(
        required=True,
        validate=_validate_non_negative_amount,
    )

    # Omitted → the stored discount is left unchanged.
    discount_percent = fields.Decimal(
        validate=_validate_discount_percent,
    )
