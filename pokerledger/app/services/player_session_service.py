"""
services/player_session_service.py — Player-session state machine and ledger writes.

States: ACTIVE, CASHED_OUT, BUSTED (BUSTED = left the table with nothing).

Transitions:
  join       (new)                  → ACTIVE       + BUY_IN
  add_chips  ACTIVE                 → ACTIVE       + REBUY
  leave      ACTIVE                 → CASHED_OUT   + CASH_OUT(leave_amount)
  bust       ACTIVE                 → BUSTED       + CASH_OUT(0)
  rejoin     CASHED_OUT | BUSTED    → ACTIVE       + REBUY (only if additional > 0)

Every transition updates the denormalised `current_stack` and appends the
matching ledger row in the same flush, so the two never diverge.

Balance guard (leave and bust):
  When the player leaving is the sole ACTIVE participant, the cash-out must
  match balance_service's required amount within the tolerance, otherwise the
  request is rejected with BALANCE_VIOLATION and details.required_amount.
  The amount is never substituted silently. The participant rows are read
  with FOR UPDATE so the "am I the last one" check and the write happen on
  a consistent snapshot inside the route's database transaction.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from pokerledger.app.errors import AppError, ErrorCode
from pokerledger.app.models.player_session import PlayerSession, PlayerStatus
from pokerledger.app.models.transaction import Transaction, TransactionType
from pokerledger.app.money import ZERO, format_money
from pokerledger.app.services import balance_service
from pokerledger.app.services.game_session_service import (
    get_player_or_404,
    get_session_or_404,
    require_host_admin_or_self,
    require_host_or_admin,
    require_ongoing,
)

DEFAULT_BALANCE_TOLERANCE = Decimal("0.01")


# ── Private helpers ────────────────────────────────────────────────────────

def _get_player_session_or_404(
        session_id: int,
        player_session_id: int,
        session: Session,
) -> PlayerSession:
    """Returns the PlayerSession if it belongs to session_id, else PLAYER_SESSION_NOT_FOUND."""
    player_session = session.get(PlayerSession, player_session_id)
    if player_session is None or player_session.session_id != session_id:
        raise AppError(
            ErrorCode.PLAYER_SESSION_NOT_FOUND,
            f"Player session {player_session_id} does not exist in session {session_id}.",
            404,
        )
    return player_session


def _require_active(player_session: PlayerSession) -> None:
    if not player_session.is_active:
        raise AppError(
            ErrorCode.PLAYER_NOT_ACTIVE,
            f"Player session {player_session.id} is {player_session.status.value}, "
            f"not ACTIVE.",
            409,
        )


def _require_positive(amount: Decimal, field: str) -> None:
    if amount <= ZERO:
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            "Amount must be greater than zero.",
            400,
            field=field,
        )


def _append(
        player_session: PlayerSession,
        tx_type: TransactionType,
        amount: Decimal,
        session: Session,
        note: str | None = None,
) -> Transaction:
    """Appends one ledger row. Assigning player_session keeps the loaded collection in sync."""
    entry = Transaction(
        player_session=player_session,
        type=tx_type,
        amount=amount,
        note=note,
    )
    session.add(entry)
    return entry


def check_leave_amount(
        participants: list,
        leaving_id: int,
        amount: Decimal,
        tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
) -> list[dict]:
    """
    Balance guard for a participant leaving the table.

    Pure: takes the locked participant list and the requested amount.
    Raises BALANCE_VIOLATION (422) when `leaving_id` is the only ACTIVE
    participant and `amount` is further than `tolerance` from the required
    cash-out. With two or more ACTIVE participants the required amount is
    advisory and nothing is enforced.

    Returns warnings (OVERPAID_LEDGER when the requirement was clamped to 0).
    """
    snapshot = balance_service.compute_balance(participants)
    if snapshot.active_player_ids != (leaving_id,):
        return []

    required = snapshot.required_cash_out
    if abs(amount - required) > tolerance:
        raise AppError(
            ErrorCode.BALANCE_VIOLATION,
            f"To keep the session balanced, the last player must cash out with "
            f"{required}. Use this amount instead of {amount}.",
            422,
            field="leave_amount",
            details={"required_amount": str(required)},
        )

    if snapshot.is_overpaid:
        return [balance_service.overpaid_warning(snapshot)]
    return []


def _leave_table(
        session_id: int,
        player_session_id: int,
        caller_id: int,
        amount: Decimal,
        new_status: PlayerStatus,
        session: Session,
        tolerance: Decimal,
) -> tuple[PlayerSession, dict, list[dict]]:
    """Shared body of leave() and bust()."""
    game_session = get_session_or_404(session_id, session)

    if amount < ZERO:
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            "Leave amount must not be negative.",
            400,
            field="leave_amount",
        )

    # Lock the whole participant set: the guard depends on who else is active.
    participants = balance_service.get_participants(session_id, session, for_update=True)
    player_session = next((p for p in participants if p.id == player_session_id), None)
    if player_session is None:
        raise AppError(
            ErrorCode.PLAYER_SESSION_NOT_FOUND,
            f"Player session {player_session_id} does not exist in session {session_id}.",
            404,
        )
    require_host_admin_or_self(game_session, player_session.player_id, caller_id, session)
    _require_active(player_session)

    warnings = check_leave_amount(participants, player_session.id, amount, tolerance)

    player_session.status = new_status
    player_session.left_at = datetime.now(timezone.utc)
    player_session.current_stack = amount  # overwrite: the counted chips
    _append(player_session, TransactionType.CASH_OUT, amount, session)
    session.flush()

    buy_in = balance_service.total_buy_in(player_session)
    profit_loss = amount - buy_in
    summary = {
        "total_buy_in": buy_in,
        "cash_out": amount,
        "profit_loss": profit_loss,
        "message": f"Player left the table with {amount} ({format_money(profit_loss)}).",
    }
    return player_session, summary, warnings


# ── Public service functions ───────────────────────────────────────────────

def join_session(
        session_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> PlayerSession:
    """
    Seats a player in an ONGOING session with their initial buy-in.

    Args:
        data: Validated dict from JoinSessionSchema.
              Keys: player_id (int), buy_in (Decimal).

    Raises:
        SESSION_NOT_ONGOING (409), PLAYER_NOT_FOUND (404),
        ALREADY_JOINED (409), BELOW_MINIMUM_BUY_IN (400).
    """
    game_session = get_session_or_404(session_id, session, for_update=True)
    require_host_or_admin(game_session, caller_id, session)
    require_ongoing(game_session)

    player_id: int = data["player_id"]
    buy_in: Decimal = data["buy_in"]

    get_player_or_404(player_id, session, field="player_id")

    existing = session.execute(
        select(PlayerSession).where(
            PlayerSession.session_id == session_id,
            PlayerSession.player_id == player_id,
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise AppError(
            ErrorCode.ALREADY_JOINED,
            f"Player {player_id} has already joined session {session_id}. "
            f"Use rejoin to bring them back to the table.",
            409,
            field="player_id",
        )

    if buy_in < game_session.min_buy_in:
        raise AppError(
            ErrorCode.BELOW_MINIMUM_BUY_IN,
            f"Buy-in must be at least {game_session.min_buy_in}.",
            400,
            field="buy_in",
            details={"min_buy_in": str(game_session.min_buy_in)},
        )

    player_session = PlayerSession(
        session_id=session_id,
        player_id=player_id,
        initial_buy_in=buy_in,
        current_stack=buy_in,
        status=PlayerStatus.ACTIVE,
    )
    session.add(player_session)
    _append(player_session, TransactionType.BUY_IN, buy_in, session)
    session.flush()
    return player_session


def add_chips(
        session_id: int,
        player_session_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> PlayerSession:
    """
    Rebuy: adds chips to an ACTIVE player's stack and records a REBUY.

    The host, an admin, or the player themselves may rebuy.

    Args:
        data: Validated dict from AddChipsSchema. Keys: amount, note (optional).

    Raises:
        SESSION_NOT_ONGOING (409), INVALID_AMOUNT (400), FORBIDDEN (403),
        PLAYER_NOT_ACTIVE (409).
    """
    game_session = get_session_or_404(session_id, session)
    require_ongoing(game_session)

    amount: Decimal = data["amount"]
    _require_positive(amount, "amount")

    player_session = _get_player_session_or_404(session_id, player_session_id, session)
    require_host_admin_or_self(game_session, player_session.player_id, caller_id, session)
    _require_active(player_session)

    player_session.current_stack = player_session.current_stack + amount
    _append(player_session, TransactionType.REBUY, amount, session, note=data.get("note"))
    session.flush()
    return player_session


def leave_session(
        session_id: int,
        player_session_id: int,
        caller_id: int,
        data: dict,
        session: Session,
        tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
) -> tuple[PlayerSession, dict, list[dict]]:
    """
    Cash out: the player leaves with `leave_amount` (their counted chips).

    Returns:
        (PlayerSession, summary, warnings). summary holds total_buy_in,
        cash_out and profit_loss for the confirmation message.

    Raises:
        PLAYER_NOT_ACTIVE (409), INVALID_AMOUNT (400),
        BALANCE_VIOLATION (422) with details.required_amount.
    """
    return _leave_table(
        session_id,
        player_session_id,
        caller_id,
        data["leave_amount"],
        PlayerStatus.CASHED_OUT,
        session,
        tolerance,
    )


def bust_player(
        session_id: int,
        player_session_id: int,
        caller_id: int,
        session: Session,
        tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
) -> tuple[PlayerSession, dict, list[dict]]:
    """
    The player lost their whole stack. Leaves with 0 and lands in BUSTED.

    Subject to the same balance guard as leave_session(): a last player can
    only bust when the table is already balanced.
    """
    return _leave_table(
        session_id,
        player_session_id,
        caller_id,
        ZERO,
        PlayerStatus.BUSTED,
        session,
        tolerance,
    )


def rejoin_session(
        session_id: int,
        player_session_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> PlayerSession:
    """
    Brings a CASHED_OUT or BUSTED player back to the table.

    The stack they left with is carried forward as their new starting stack,
    plus any additional buy-in (recorded as a REBUY when > 0).

    Raises:
        SESSION_NOT_ONGOING (409), PLAYER_ALREADY_ACTIVE (409).
    """
    game_session = get_session_or_404(session_id, session)
    require_host_or_admin(game_session, caller_id, session)
    require_ongoing(game_session)

    player_session = _get_player_session_or_404(session_id, player_session_id, session)
    if player_session.is_active:
        raise AppError(
            ErrorCode.PLAYER_ALREADY_ACTIVE,
            f"Player session {player_session_id} is already ACTIVE.",
            409,
        )

    additional: Decimal = data.get("additional_buy_in") or ZERO
    if additional < ZERO:
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            "Additional buy-in must not be negative.",
            400,
            field="additional_buy_in",
        )

    player_session.status = PlayerStatus.ACTIVE
    player_session.left_at = None
    player_session.current_stack = player_session.current_stack + additional
    if additional > ZERO:
        _append(player_session, TransactionType.REBUY, additional, session, note="rejoin")
    session.flush()
    return player_session


def list_transactions(
        session_id: int,
        player_session_id: int,
        session: Session,
) -> list[Transaction]:
    """Returns a player session's ledger in the order it was written."""
    get_session_or_404(session_id, session)
    player_session = _get_player_session_or_404(session_id, player_session_id, session)

    stmt = (
        select(Transaction)
        .where(Transaction.player_session_id == player_session.id)
        .order_by(Transaction.id)
    )
    return list(session.execute(stmt).scalars().all())
