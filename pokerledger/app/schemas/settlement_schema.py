"""
schemas/settlement_schema.py — Marshmallow schemas for settlement endpoints.

Validation responsibility:
  - This file: field types, decimal precision, cost and discount ranges,
    duplicate players within one saved settlement.
  - services/settlement_service.py:
      - SESSION_NOT_COMPLETE (409)   — requires the session's status.
      - PLAYERS_STILL_ACTIVE (409)   — requires the participant list.
      - PLAYER_NOT_IN_SESSION (422)  — requires a DB participant lookup.

Profit/loss fields on a saved line may be negative (losers), so only their
precision is checked here.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    validate,
    validates_schema,
)

from pokerledger.app.errors import ErrorCode


# ── Shared validators ──────────────────────────────────────────────────────
#
# Same rules as in session_schema.py. Kept local so each schema file is
# self-contained and can be unit tested in isolation.
# ──────────────────────────────────────────────────────────────────────────

def _check_precision(value: Decimal) -> None:
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_non_negative(value: Decimal) -> None:
    if value < Decimal("0"):
        raise ValidationError(ErrorCode.INVALID_AMOUNT)
    _check_precision(value)


def _validate_discount_percent(value: Decimal) -> None:
    if value < Decimal("0") or value > Decimal("100"):
        raise ValidationError("discount_percent must be between 0 and 100.")
    _check_precision(value)


# ── Schemas ────────────────────────────────────────────────────────────────

class CalculateSettlementSchema(Schema):
    """
    POST /sessions/:id/settlement/calculate

    Nothing is stored; the caller can try several cost/discount pairs before
    saving one.
    """

    session_cost = fields.Decimal(
        required=True,
        validate=_validate_non_negative,
    )

    discount_percent = fields.Decimal(
        load_default=Decimal("0"),
        validate=_validate_discount_percent,
    )


class SettlementLineSchema(Schema):
    """One player's row, as returned by the calculate endpoint."""

    class Meta:
        unknown = EXCLUDE   # clients echo back the calculated line as-is

    player_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="player_id must be a positive integer."),
    )
    original_profit_loss = fields.Decimal(required=True, validate=_check_precision)
    discount_amount      = fields.Decimal(load_default=Decimal("0"), validate=_validate_non_negative)
    adjusted_profit_loss = fields.Decimal(validate=_check_precision)
    session_cost_share   = fields.Decimal(load_default=Decimal("0"), validate=_validate_non_negative)
    final_amount         = fields.Decimal(required=True, validate=_check_precision)


class SaveSettlementSchema(Schema):
    """
    PUT /sessions/:id/settlement

    Stores a settlement as the session's record, replacing any earlier one.

    Field rules:
      session_cost     : required, >= 0, max 2 dp
      discount_percent : optional, 0–100, default 0
      imbalanced       : optional, default False — set when the calculation
                         returned LEDGER_IMBALANCE
      lines            : required, at least one, each player_id at most once
    """

    session_cost = fields.Decimal(
        required=True,
        validate=_validate_non_negative,
    )

    discount_percent = fields.Decimal(
        load_default=Decimal("0"),
        validate=_validate_discount_percent,
    )

    imbalanced = fields.Bool(load_default=False)

    lines = fields.List(
        fields.Nested(SettlementLineSchema),
        required=True,
        validate=validate.Length(min=1, error="lines must contain at least one entry."),
    )

    @validates_schema
    def validate_unique_players(self, data: dict, **kwargs) -> None:
        player_ids = [line["player_id"] for line in data.get("lines", [])]
        if len(player_ids) != len(set(player_ids)):
            raise ValidationError(ErrorCode.DUPLICATE_SETTLEMENT_PLAYER, field_name="lines")
