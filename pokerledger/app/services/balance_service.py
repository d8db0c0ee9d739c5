"""
services/balance_service.py — Chip conservation checks.

This file is the SINGLE SOURCE OF TRUTH for how a session's balance is
computed. Total buy-ins across every participant must equal total cash-outs
once everyone has left the table. Cash-out amounts are typed in by a human,
so intermediate states can be off; this module computes what the last active
player must cash out with to close the gap.

    total_buy_ins   = Σ total_buy_in(p) over all participants
    total_cash_out  = Σ current_stack over CASHED_OUT and BUSTED participants
    required        = max(0, total_buy_ins - total_cash_out)

The required amount is a hint while two or more players are active and a hard
constraint on the leave of the sole remaining active player (enforced in
player_session_service.py).

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - compute_balance() and total_buy_in() are pure: they take participant
    objects and never touch the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from pokerledger.app.errors import WarningCode
from pokerledger.app.models.player_session import FINISHED_STATUSES, PlayerSession, PlayerStatus
from pokerledger.app.models.transaction import BUY_IN_TYPES
from pokerledger.app.money import ZERO


@dataclass(frozen=True)
class BalanceSnapshot:
    total_buy_ins: Decimal
    total_cash_out: Decimal
    active_player_ids: tuple[int, ...]

    @property
    def shortfall(self) -> Decimal:
        """Signed gap; negative means more was cashed out than bought in."""
        return self.total_buy_ins - self.total_cash_out

    @property
    def required_cash_out(self) -> Decimal:
        """Amount the remaining active player(s) must cash out with. Never negative."""
        return max(ZERO, self.shortfall)

    @property
    def is_overpaid(self) -> bool:
        return self.shortfall < ZERO

    @property
    def is_balanced(self) -> bool:
        return self.shortfall == ZERO


# ── Pure computations ──────────────────────────────────────────────────────

def total_buy_in(participant) -> Decimal:
    """
    Sum of a participant's BUY_IN and REBUY amounts.

    Counts every rebuy across every leave/rejoin cycle. Falls back to
    initial_buy_in for legacy rows that have no ledger entries.
    """
    amounts = [
        t.amount
        for t in participant.transactions
        if t.type in BUY_IN_TYPES
    ]
    if not amounts:
        return participant.initial_buy_in
    return sum(amounts, ZERO)


def compute_balance(participants: Iterable) -> BalanceSnapshot:
    """Computes the balance snapshot for one session's participants."""
    total_buy_ins = ZERO
    total_cash_out = ZERO
    active: list[int] = []

    for participant in participants:
        total_buy_ins += total_buy_in(participant)
        if participant.status in FINISHED_STATUSES:
            total_cash_out += participant.current_stack
        elif participant.status == PlayerStatus.ACTIVE:
            active.append(participant.id)

    return BalanceSnapshot(
        total_buy_ins=total_buy_ins,
        total_cash_out=total_cash_out,
        active_player_ids=tuple(active),
    )


def overpaid_warning(snapshot: BalanceSnapshot) -> dict:
    """Builds the OVERPAID_LEDGER warning for a snapshot with a negative shortfall."""
    return {
        "code": WarningCode.OVERPAID_LEDGER,
        "message": (
            f"Cash-outs ({snapshot.total_cash_out}) already exceed buy-ins "
            f"({snapshot.total_buy_ins}) by {-snapshot.shortfall}. The required "
            f"cash-out was clamped to 0; check earlier cash-out entries."
        ),
    }


# ── Data access ────────────────────────────────────────────────────────────

def get_participants(
        session_id: int,
        session: Session,
        for_update: bool = False,
) -> list[PlayerSession]:
    """
    Returns every PlayerSession of a game session with its ledger loaded.

    for_update=True takes row locks on the participant set (SELECT ... FOR
    UPDATE; SQLite ignores it). Leave/bust use this so two players cannot
    both conclude they are the last one at the table.
    """
    stmt = (
        select(PlayerSession)
        .where(PlayerSession.session_id == session_id)
        .options(selectinload(PlayerSession.transactions))
        .order_by(PlayerSession.id)
    )
    if for_update:
        stmt = stmt.with_for_update()
    return list(session.execute(stmt).scalars().all())


def preview_required_cash_out(
        session_id: int,
        session: Session,
        player_id: int | None = None,
        player_session_id: int | None = None,
) -> tuple[dict, list[dict]]:
    """
    Balance hint for the leave dialog.

    The participant is identified either by `player_id` or by
    `player_session_id`. Returns ({"is_last_player": False}, []) unless that
    participant is the only ACTIVE one, in which case the required cash-out
    and the totals are included. Never raises for an existing session.
    """
    from pokerledger.app.services.game_session_service import get_session_or_404

    get_session_or_404(session_id, session)
    participants = get_participants(session_id, session)
    snapshot = compute_balance(participants)

    active = [p for p in participants if p.id in snapshot.active_player_ids]
    if len(active) != 1:
        return {"is_last_player": False}, []

    last = active[0]
    if player_session_id is not None:
        is_match = last.id == player_session_id
    else:
        is_match = last.player_id == player_id
    if not is_match:
        return {"is_last_player": False}, []

    warnings = [overpaid_warning(snapshot)] if snapshot.is_overpaid else []
    return {
        "is_last_player": True,
        "player_session_id": last.id,
        "required_cash_out": snapshot.required_cash_out,
        "total_buy_ins": snapshot.total_buy_ins,
        "total_cash_out": snapshot.total_cash_out,
    }, warnings
