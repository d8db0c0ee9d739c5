"""
services/game_session_service.py — Game session lifecycle and access checks.

Authorization rules:
  - Creating a session: any authenticated player; they become the host.
  - Changing status, cost/discount, or any player's chips: host or admin.
  - Reading: any authenticated player.

Status rules:
  - A session cannot be marked COMPLETED while any participant is ACTIVE
    (PLAYERS_STILL_ACTIVE, 409).

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from pokerledger.app.errors import AppError, ErrorCode, WarningCode
from pokerledger.app.models.game_session import GameSession, SessionStatus
from pokerledger.app.models.player import Player
from pokerledger.app.serializers import serialize_player_session, serialize_session
from pokerledger.app.services import balance_service


# ── Shared lookups and guards ──────────────────────────────────────────────

def get_session_or_404(
        session_id: int,
        session: Session,
        for_update: bool = False,
) -> GameSession:
    """Returns the GameSession or raises SESSION_NOT_FOUND (404)."""
    game_session = session.get(GameSession, session_id, with_for_update=for_update)
    if game_session is None:
        raise AppError(
            ErrorCode.SESSION_NOT_FOUND,
            f"Session {session_id} does not exist.",
            404,
        )
    return game_session


def get_player_or_404(player_id: int, session: Session, field: str | None = None) -> Player:
    """Returns the Player or raises PLAYER_NOT_FOUND (404)."""
    player = session.get(Player, player_id)
    if player is None:
        raise AppError(
            ErrorCode.PLAYER_NOT_FOUND,
            f"Player {player_id} does not exist.",
            404,
            field=field,
        )
    return player


def require_host_or_admin(game_session: GameSession, caller_id: int, session: Session) -> None:
    """Raises FORBIDDEN (403) unless the caller hosts the session or is an admin."""
    if game_session.host_id == caller_id:
        return

    caller = session.get(Player, caller_id)
    if caller is None or not caller.is_admin:
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"Only the host or an admin can change session {game_session.id}.",
            403,
        )


def require_host_admin_or_self(
        game_session: GameSession,
        player_id: int,
        caller_id: int,
        session: Session,
) -> None:
    """Like require_host_or_admin(), but a player may also move their own chips."""
    if player_id == caller_id:
        return
    require_host_or_admin(game_session, caller_id, session)


def require_ongoing(game_session: GameSession) -> None:
    """Raises SESSION_NOT_ONGOING (409) unless chips can still move in the session."""
    if game_session.status != SessionStatus.ONGOING:
        raise AppError(
            ErrorCode.SESSION_NOT_ONGOING,
            f"Session {game_session.id} is {game_session.status.value}; chips can "
            f"only move in an ONGOING session.",
            409,
        )


# ── Public service functions ───────────────────────────────────────────────

def create_session(host_id: int, data: dict, session: Session) -> GameSession:
    """
    Creates an ONGOING session hosted by the caller.

    Args:
        host_id: The authenticated player (flask.g.user_id).
        data:    Validated dict from CreateSessionSchema.
    """
    get_player_or_404(host_id, session)

    game_session = GameSession(
        host_id=host_id,
        date=data["date"],
        location=data["location"],
        game_type=data.get("game_type"),
        min_buy_in=data["min_buy_in"],
        status=SessionStatus.ONGOING,
        session_cost=data.get("session_cost"),
        discount_percent=data.get("discount_percent", Decimal("0")),
    )
    session.add(game_session)
    session.flush()
    return game_session


def list_sessions(session: Session, status: SessionStatus | None = None) -> list[GameSession]:
    """Returns sessions newest first, optionally filtered by status."""
    stmt = select(GameSession).order_by(GameSession.date.desc(), GameSession.id.desc())
    if status is not None:
        stmt = stmt.where(GameSession.status == status)
    return list(session.execute(stmt).scalars().all())


def get_session_detail(session_id: int, session: Session) -> tuple[dict, list[dict]]:
    """
    Session payload with participants and the current balance totals.

    The `balance` block is what the session page shows above the player list:
    total buy-ins, total cashed out, and the amount still on the table.
    """
    game_session = get_session_or_404(session_id, session)
    participants = balance_service.get_participants(session_id, session)
    snapshot = balance_service.compute_balance(participants)

    warnings = [balance_service.overpaid_warning(snapshot)] if snapshot.is_overpaid else []

    payload = serialize_session(game_session)
    payload["participants"] = [serialize_player_session(p) for p in participants]
    payload["balance"] = {
        "total_buy_ins": snapshot.total_buy_ins,
        "total_cash_out": snapshot.total_cash_out,
        "active_players": len(snapshot.active_player_ids),
        "remaining_on_table": snapshot.required_cash_out,
    }
    return payload, warnings


def update_status(
        session_id: int,
        caller_id: int,
        new_status: SessionStatus,
        session: Session,
) -> GameSession:
    """
    Moves a session to ONGOING, COMPLETED or CANCELLED.

    Completing requires every participant to have left the table.
    """
    game_session = get_session_or_404(session_id, session, for_update=True)
    require_host_or_admin(game_session, caller_id, session)

    if new_status == SessionStatus.COMPLETED:
        participants = balance_service.get_participants(session_id, session)
        active = [p for p in participants if p.is_active]
        if active:
            raise AppError(
                ErrorCode.PLAYERS_STILL_ACTIVE,
                f"Cannot complete session {session_id}: {len(active)} player(s) "
                f"are still active. Every player must cash out first.",
                409,
            )

    game_session.status = new_status
    session.flush()
    return game_session


def update_cost(
        session_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> tuple[GameSession, list[dict]]:
    """
    Stores the session cost and discount used for settlement previews.

    Both may be set before the session is COMPLETED. A warning is returned in
    that case as a reminder that the settlement cannot be run yet.
    """
    game_session = get_session_or_404(session_id, session)
    require_host_or_admin(game_session, caller_id, session)

    game_session.session_cost = data["session_cost"]
    if "discount_percent" in data:
        game_session.discount_percent = data["discount_percent"]
    session.flush()

    warnings: list[dict] = []
    if game_session.status != SessionStatus.COMPLETED:
        warnings.append({
            "code": WarningCode.SESSION_NOT_COMPLETED,
            "message": (
                f"Session {session_id} is {game_session.status.value}; the cost "
                f"is saved for preview and applies once the session is completed."
            ),
        })
    return game_session, warnings
