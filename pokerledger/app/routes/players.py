"""
routes/players.py — Player-session route handlers (chips in, chips out).

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Leave and bust read the balance tolerance from app config and pass it to the
service as a plain Decimal. A BALANCE_VIOLATION propagates to the global
error handler with details.required_amount; the client shows that amount
to the host and resubmits.

Endpoints (url_prefix=/api/v1/sessions):
  POST /sessions/:id/players                      → 201  join with buy-in
  POST /sessions/:id/players/:psid/chips          → 200  rebuy
  POST /sessions/:id/players/:psid/leave          → 200  cash out
  POST /sessions/:id/players/:psid/bust           → 200  leave with nothing
  POST /sessions/:id/players/:psid/rejoin         → 200  back to the table
  GET  /sessions/:id/players/:psid/transactions   → 200  ledger rows
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from pokerledger.app.extensions import db
from pokerledger.app.middleware.auth_middleware import require_auth
from pokerledger.app.schemas.player_session_schema import (
    AddChipsSchema,
    JoinSessionSchema,
    LeaveSchema,
    RejoinSchema,
)
from pokerledger.app.serializers import serialize_player_session, serialize_transaction
from pokerledger.app.services import player_session_service

players_bp = Blueprint("players", __name__)


def _leave_response(player_session, summary: dict, warnings: list[dict]):
    db.session.commit()
    current_app.logger.info(
        "Player session %s left session %s as %s with %s",
        player_session.id,
        player_session.session_id,
        player_session.status.value,
        summary["cash_out"],
    )
    data = serialize_player_session(player_session)
    data["summary"] = summary
    return jsonify({"data": data, "warnings": warnings}), 200


@players_bp.route("/<int:session_id>/players", methods=["POST"])
@require_auth
def join_session(session_id: int):
    data = JoinSessionSchema().load(request.get_json(force=True) or {})
    player_session = player_session_service.join_session(
        session_id=session_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": serialize_player_session(player_session), "warnings": []}), 201


@players_bp.route("/<int:session_id>/players/<int:player_session_id>/chips", methods=["POST"])
@require_auth
def add_chips(session_id: int, player_session_id: int):
    data = AddChipsSchema().load(request.get_json(force=True) or {})
    player_session = player_session_service.add_chips(
        session_id=session_id,
        player_session_id=player_session_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": serialize_player_session(player_session), "warnings": []}), 200


@players_bp.route("/<int:session_id>/players/<int:player_session_id>/leave", methods=["POST"])
@require_auth
def leave_session(session_id: int, player_session_id: int):
    """
    POST .../leave — Cash out with the counted stack.

    For the last active player the amount must match the required cash-out
    (BALANCE_VIOLATION, 422, otherwise). The response adds a `summary` block
    with total buy-in, cash-out and profit/loss.
    """
    data = LeaveSchema().load(request.get_json(force=True) or {})
    player_session, summary, warnings = player_session_service.leave_session(
        session_id=session_id,
        player_session_id=player_session_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
        tolerance=current_app.config["BALANCE_TOLERANCE"],
    )
    return _leave_response(player_session, summary, warnings)


@players_bp.route("/<int:session_id>/players/<int:player_session_id>/bust", methods=["POST"])
@require_auth
def bust_player(session_id: int, player_session_id: int):
    player_session, summary, warnings = player_session_service.bust_player(
        session_id=session_id,
        player_session_id=player_session_id,
        caller_id=g.user_id,
        session=db.session,
        tolerance=current_app.config["BALANCE_TOLERANCE"],
    )
    return _leave_response(player_session, summary, warnings)


@players_bp.route("/<int:session_id>/players/<int:player_session_id>/rejoin", methods=["POST"])
@require_auth
def rejoin_session(session_id: int, player_session_id: int):
    """POST .../rejoin — The stack they left with comes back with them."""
    data = RejoinSchema().load(request.get_json(silent=True) or {})
    player_session = player_session_service.rejoin_session(
        session_id=session_id,
        player_session_id=player_session_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": serialize_player_session(player_session), "warnings": []}), 200


@players_bp.route(
    "/<int:session_id>/players/<int:player_session_id>/transactions",
    methods=["GET"],
)
@require_auth
def list_transactions(session_id: int, player_session_id: int):
    transactions = player_session_service.list_transactions(
        session_id=session_id,
        player_session_id=player_session_id,
        session=db.session,
    )
    return jsonify({
        "data": [serialize_transaction(t) for t in transactions],
        "warnings": [],
    }), 200
