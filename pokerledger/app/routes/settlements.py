"""
routes/settlements.py — Settlement route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Special: calculate returns (lines, warnings[]).
  A LEDGER_IMBALANCE or UNALLOCATED_SESSION_COST warning does NOT block the
  request: the HTTP status is still 200 and the warning travels in the
  envelope's `warnings` array. The client passes `imbalanced: true` back when
  it saves such a settlement.

Endpoints (url_prefix=/api/v1/sessions):
  POST /sessions/:id/settlement/calculate  → 200  compute, store nothing
  PUT  /sessions/:id/settlement            → 200  save (replaces earlier record)
  GET  /sessions/:id/settlement            → 200  saved record, or null
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from pokerledger.app.extensions import db
from pokerledger.app.middleware.auth_middleware import require_auth
from pokerledger.app.schemas.settlement_schema import (
    CalculateSettlementSchema,
    SaveSettlementSchema,
)
from pokerledger.app.serializers import serialize_settlement_record
from pokerledger.app.services import settlement_service

settlements_bp = Blueprint("settlements", __name__)


@settlements_bp.route("/<int:session_id>/settlement/calculate", methods=["POST"])
@require_auth
def calculate_settlement(session_id: int):
    data = CalculateSettlementSchema().load(request.get_json(force=True) or {})
    lines, warnings = settlement_service.calculate_session_settlement(
        session_id=session_id,
        data=data,
        session=db.session,
        unit=current_app.config["SETTLEMENT_ROUNDING_UNIT"],
    )
    if settlement_service.is_imbalanced(warnings):
        current_app.logger.warning(
            "Settlement for session %s computed on an imbalanced ledger", session_id
        )

    return jsonify({
        "data": {
            "session_id": session_id,
            "session_cost": data["session_cost"],
            "discount_percent": data["discount_percent"],
            "imbalanced": settlement_service.is_imbalanced(warnings),
            "lines": [line.to_dict() for line in lines],
        },
        "warnings": warnings,
    }), 200


@settlements_bp.route("/<int:session_id>/settlement", methods=["PUT"])
@require_auth
def save_settlement(session_id: int):
    """PUT /sessions/:id/settlement — Host or admin only. Idempotent per session."""
    data = SaveSettlementSchema().load(request.get_json(force=True) or {})
    record = settlement_service.save_settlement(
        session_id=session_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    current_app.logger.info(
        "Settlement saved for session %s by player %s (%d lines, imbalanced=%s)",
        session_id,
        g.user_id,
        len(record.lines),
        record.imbalanced,
    )
    return jsonify({"data": serialize_settlement_record(record), "warnings": []}), 200


@settlements_bp.route("/<int:session_id>/settlement", methods=["GET"])
@require_auth
def get_settlement(session_id: int):
    record = settlement_service.get_settlement(session_id=session_id, session=db.session)
    data = serialize_settlement_record(record) if record is not None else None
    return jsonify({"data": data, "warnings": []}), 200
