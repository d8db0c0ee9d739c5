"""
routes/sessions.py — Game session route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (url_prefix=/api/v1/sessions):
  POST   /sessions                    → 201  create session (caller is host)
  GET    /sessions                    → 200  list sessions, ?status= filter
  GET    /sessions/:id                → 200  session + participants + balance
  PATCH  /sessions/:id/status         → 200  ONGOING / COMPLETED / CANCELLED
  PATCH  /sessions/:id/cost           → 200  session cost and discount
  GET    /sessions/:id/balance-info   → 200  required cash-out for ?player_id= or ?player_session_id=
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from pokerledger.app.errors import AppError, ErrorCode
from pokerledger.app.extensions import db
from pokerledger.app.middleware.auth_middleware import require_auth
from pokerledger.app.models.game_session import SessionStatus
from pokerledger.app.schemas.session_schema import (
    CreateSessionSchema,
    UpdateCostSchema,
    UpdateStatusSchema,
)
from pokerledger.app.serializers import serialize_session
from pokerledger.app.services import balance_service, game_session_service

sessions_bp = Blueprint("sessions", __name__)


@sessions_bp.route("/", methods=["POST"])
@require_auth
def create_session():
    """POST /sessions — Open a new ONGOING session hosted by the caller."""
    data = CreateSessionSchema().load(request.get_json(force=True) or {})
    game_session = game_session_service.create_session(
        host_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": serialize_session(game_session), "warnings": []}), 201


@sessions_bp.route("/", methods=["GET"])
@require_auth
def list_sessions():
    """GET /sessions — Newest first. ?status=ONGOING|COMPLETED|CANCELLED"""
    raw_status = request.args.get("status")
    status = None
    if raw_status is not None:
        try:
            status = SessionStatus(raw_status.upper())
        except ValueError:
            raise AppError(
                ErrorCode.INVALID_STATUS,
                f"Unknown session status '{raw_status}'.",
                400,
                field="status",
            )

    sessions = game_session_service.list_sessions(session=db.session, status=status)
    return jsonify({
        "data": [serialize_session(s) for s in sessions],
        "warnings": [],
    }), 200


@sessions_bp.route("/<int:session_id>", methods=["GET"])
@require_auth
def get_session(session_id: int):
    payload, warnings = game_session_service.get_session_detail(
        session_id=session_id,
        session=db.session,
    )
    return jsonify({"data": payload, "warnings": warnings}), 200


@sessions_bp.route("/<int:session_id>/status", methods=["PATCH"])
@require_auth
def update_status(session_id: int):
    """
    PATCH /sessions/:id/status — Host or admin only.
    Completing is refused with PLAYERS_STILL_ACTIVE while anyone is at the table.
    """
    data = UpdateStatusSchema().load(request.get_json(force=True) or {})
    game_session = game_session_service.update_status(
        session_id=session_id,
        caller_id=g.user_id,
        new_status=data["status"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": serialize_session(game_session), "warnings": []}), 200


@sessions_bp.route("/<int:session_id>/cost", methods=["PATCH"])
@require_auth
def update_cost(session_id: int):
    data = UpdateCostSchema().load(request.get_json(force=True) or {})
    game_session, warnings = game_session_service.update_cost(
        session_id=session_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": serialize_session(game_session), "warnings": warnings}), 200


@sessions_bp.route("/<int:session_id>/balance-info", methods=["GET"])
@require_auth
def balance_info(session_id: int):
    """
    GET /sessions/:id/balance-info?player_id=N — Pre-fill for the leave dialog.

    ?player_session_id=M may be given instead of player_id. When that
    participant is the last one at the table, the response carries the amount
    they must cash out with for the session to balance.
    """
    player_id = request.args.get("player_id", type=int)
    player_session_id = request.args.get("player_session_id", type=int)
    if player_id is None and player_session_id is None:
        raise AppError(
            ErrorCode.MISSING_FIELD,
            "Query parameter player_id or player_session_id is required and "
            "must be an integer.",
            400,
            field="player_id",
        )

    payload, warnings = balance_service.preview_required_cash_out(
        session_id=session_id,
        session=db.session,
        player_id=player_id,
        player_session_id=player_session_id,
    )
    return jsonify({"data": payload, "warnings": warnings}), 200
