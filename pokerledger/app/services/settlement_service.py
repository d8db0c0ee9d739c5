"""
services/settlement_service.py — Session settlement: discount, cost split, records.

calculate_settlement() is the canonical settlement algorithm. It is pure: it
takes each finished player's profit/loss and returns one SettlementLine per
player. The order of rounding is part of the contract — hosts compare the
numbers against earlier nights, so they must be reproducible exactly.

  1. discount  = round(|pl| * pct / 100)
  2. adjusted  = round(pl - discount)   if pl > 0
                 round(pl + discount)   if pl < 0
                 0 (and discount = 0)   if pl == 0
  3. winners   = players with adjusted > 0
     total     = Σ adjusted over winners
  4. winner:   share = round(cost * adjusted / total)
               final = round(adjusted - share)
  5. others:   share = 0, final = adjusted

`round` is half-up (ties away from zero) to the rounding unit, applied at
each step; no extra precision is carried between steps. The finals therefore
sum to roughly, not exactly, minus the session cost. That drift is accepted.

Preconditions for a session settlement (enforced by the DB-facing functions):
  SESSION_NOT_COMPLETE (409)  — session.status must be COMPLETED
  PLAYERS_STILL_ACTIVE (409)  — every participant must be CASHED_OUT or BUSTED

Advisory warnings (never block):
  LEDGER_IMBALANCE          — winners' profit and losers' loss differ by > 0.01
  UNALLOCATED_SESSION_COST  — a cost was given but there is no winner to pay it

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from pokerledger.app.errors import AppError, ErrorCode, WarningCode
from pokerledger.app.models.game_session import GameSession, SessionStatus
from pokerledger.app.models.settlement import SettlementRecord, SettlementRecordLine
from pokerledger.app.money import ZERO, round_to_unit, to_money
from pokerledger.app.services import balance_service
from pokerledger.app.services.game_session_service import (
    get_session_or_404,
    require_host_or_admin,
)

DEFAULT_ROUNDING_UNIT = Decimal("1")
IMBALANCE_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class PlayerResult:
    """A finished player's outcome, the input to the calculator."""
    player_id: int
    profit_loss: Decimal


@dataclass(frozen=True)
class SettlementLine:
    player_id: int
    original_profit_loss: Decimal
    discount_amount: Decimal
    adjusted_profit_loss: Decimal
    session_cost_share: Decimal
    final_amount: Decimal

    def to_dict(self) -> dict:
        return asdict(self)


# ── Pure algorithm ─────────────────────────────────────────────────────────

def apply_discount(
        profit_loss: Decimal,
        discount_percent: Decimal,
        unit: Decimal = DEFAULT_ROUNDING_UNIT,
) -> tuple[Decimal, Decimal]:
    """
    Shrinks a profit or a loss toward zero by discount_percent.

    Returns (discount_amount, adjusted_profit_loss). Winners and losers are
    discounted symmetrically; a break-even player is left untouched.
    """
    if profit_loss == ZERO:
        return ZERO, ZERO

    discount = round_to_unit(abs(profit_loss) * discount_percent / Decimal("100"), unit)
    if profit_loss > ZERO:
        return discount, round_to_unit(profit_loss - discount, unit)
    return discount, round_to_unit(profit_loss + discount, unit)


def calculate_settlement(
        results: list[PlayerResult],
        session_cost: Decimal,
        discount_percent: Decimal = Decimal("0"),
        unit: Decimal = DEFAULT_ROUNDING_UNIT,
) -> list[SettlementLine]:
    """
    Canonical settlement calculation. Output order follows `results`.

    Only adjusted winners carry the session cost, in proportion to their
    adjusted profit. With no adjusted winner the cost is not distributed
    (every share is 0); callers surface that via settlement_warnings().
    """
    adjusted: list[tuple[PlayerResult, Decimal, Decimal]] = []
    for result in results:
        discount, adj = apply_discount(result.profit_loss, discount_percent, unit)
        adjusted.append((result, discount, adj))

    adjusted_total_profit = sum((adj for _, _, adj in adjusted if adj > ZERO), ZERO)

    lines: list[SettlementLine] = []
    for result, discount, adj in adjusted:
        if adj > ZERO:
            # adjusted_total_profit > 0 whenever a winner exists.
            share = round_to_unit(session_cost * adj / adjusted_total_profit, unit)
            final = round_to_unit(adj - share, unit)
        else:
            share = ZERO
            final = adj

        lines.append(SettlementLine(
            player_id=result.player_id,
            original_profit_loss=to_money(result.profit_loss),
            discount_amount=discount,
            adjusted_profit_loss=adj,
            session_cost_share=share,
            final_amount=final,
        ))
    return lines


def settlement_warnings(
        results: list[PlayerResult],
        lines: list[SettlementLine],
        session_cost: Decimal,
) -> list[dict]:
    """
    Advisory checks on a settlement run.

    LEDGER_IMBALANCE compares the ORIGINAL profits and losses: the
    calculation still proceeds, but the numbers rest on cash-outs that do not
    add up.
    """
    warnings: list[dict] = []

    total_profit = sum((r.profit_loss for r in results if r.profit_loss > ZERO), ZERO)
    total_loss = sum((-r.profit_loss for r in results if r.profit_loss < ZERO), ZERO)
    difference = abs(total_profit - total_loss)
    if difference > IMBALANCE_TOLERANCE:
        warnings.append({
            "code": WarningCode.LEDGER_IMBALANCE,
            "message": (
                f"Settlement imbalance: total profit {total_profit} vs total loss "
                f"{total_loss} (difference {difference}). Adjust cash-out amounts "
                f"for an accurate settlement."
            ),
            "difference": str(difference),
        })

    if session_cost > ZERO and not any(line.adjusted_profit_loss > ZERO for line in lines):
        warnings.append({
            "code": WarningCode.UNALLOCATED_SESSION_COST,
            "message": (
                f"Session cost {session_cost} was not distributed: no player has "
                f"a profit after the discount."
            ),
        })

    return warnings


def is_imbalanced(warnings: list[dict]) -> bool:
    return any(w["code"] == WarningCode.LEDGER_IMBALANCE for w in warnings)


# ── DB-facing service functions ────────────────────────────────────────────

def _require_settleable(game_session: GameSession, participants: list) -> None:
    if game_session.status != SessionStatus.COMPLETED:
        raise AppError(
            ErrorCode.SESSION_NOT_COMPLETE,
            f"Session {game_session.id} is {game_session.status.value}; it must be "
            f"COMPLETED before it can be settled.",
            409,
        )

    active = [p for p in participants if p.is_active]
    if active:
        raise AppError(
            ErrorCode.PLAYERS_STILL_ACTIVE,
            f"{len(active)} player(s) in session {game_session.id} are still "
            f"active. Every player must cash out before settlement.",
            409,
            details={"active_player_session_ids": [p.id for p in active]},
        )


def player_results(participants: list) -> list[PlayerResult]:
    """Profit/loss of every finished participant: current_stack - total buy-in."""
    return [
        PlayerResult(
            player_id=p.player_id,
            profit_loss=p.current_stack - balance_service.total_buy_in(p),
        )
        for p in participants
        if p.is_finished
    ]


def calculate_session_settlement(
        session_id: int,
        data: dict,
        session: Session,
        unit: Decimal = DEFAULT_ROUNDING_UNIT,
) -> tuple[list[SettlementLine], list[dict]]:
    """
    Runs the calculator over a completed session's ledger.

    Args:
        data: Validated dict from CalculateSettlementSchema.
              Keys: session_cost (Decimal), discount_percent (Decimal, optional).

    Returns:
        (lines, warnings). Nothing is persisted.
    """
    game_session = get_session_or_404(session_id, session)
    participants = balance_service.get_participants(session_id, session)
    _require_settleable(game_session, participants)

    session_cost: Decimal = data["session_cost"]
    discount_percent: Decimal = data.get("discount_percent") or Decimal("0")

    results = player_results(participants)
    lines = calculate_settlement(results, session_cost, discount_percent, unit)
    return lines, settlement_warnings(results, lines, session_cost)


def save_settlement(
        session_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> SettlementRecord:
    """
    Stores a settlement as the session's record, replacing any earlier one.

    Args:
        data: Validated dict from SaveSettlementSchema.
              Keys: session_cost, discount_percent, imbalanced (bool, optional),
              lines (list of line dicts).

    Raises:
        SESSION_NOT_COMPLETE (409)
        PLAYER_NOT_IN_SESSION (422) — a line names a player who never joined.
    """
    game_session = get_session_or_404(session_id, session, for_update=True)
    require_host_or_admin(game_session, caller_id, session)

    if game_session.status != SessionStatus.COMPLETED:
        raise AppError(
            ErrorCode.SESSION_NOT_COMPLETE,
            f"Session {session_id} is {game_session.status.value}; only a COMPLETED "
            f"session's settlement can be saved.",
            409,
        )

    participant_ids = {p.player_id for p in balance_service.get_participants(session_id, session)}
    for line in data["lines"]:
        if line["player_id"] not in participant_ids:
            raise AppError(
                ErrorCode.PLAYER_NOT_IN_SESSION,
                f"Player {line['player_id']} did not play in session {session_id}.",
                422,
                field="lines",
            )

    existing = get_settlement_record(session_id, session)
    if existing is not None:
        session.delete(existing)
        session.flush()  # the unique session_id must be free before re-inserting

    record = SettlementRecord(
        session_id=session_id,
        session_cost=data["session_cost"],
        discount_percent=data.get("discount_percent") or Decimal("0"),
        imbalanced=data.get("imbalanced", False),
        saved_by_player_id=caller_id,
        lines=[
            SettlementRecordLine(
                position=index,
                player_id=line["player_id"],
                original_profit_loss=line["original_profit_loss"],
                discount_amount=line.get("discount_amount") or ZERO,
                adjusted_profit_loss=line.get("adjusted_profit_loss", line["original_profit_loss"]),
                session_cost_share=line.get("session_cost_share") or ZERO,
                final_amount=line["final_amount"],
            )
            for index, line in enumerate(data["lines"])
        ],
    )
    session.add(record)

    # Keep the session's stored cost in step with what was settled.
    game_session.session_cost = record.session_cost
    game_session.discount_percent = record.discount_percent
    session.flush()
    return record


def get_settlement_record(session_id: int, session: Session) -> SettlementRecord | None:
    """Returns the saved settlement for a session, or None if never saved."""
    stmt = select(SettlementRecord).where(SettlementRecord.session_id == session_id)
    return session.execute(stmt).scalar_one_or_none()


def get_settlement(session_id: int, session: Session) -> SettlementRecord | None:
    """Read side of GET /sessions/:id/settlement. SESSION_NOT_FOUND for unknown ids."""
    get_session_or_404(session_id, session)
    return get_settlement_record(session_id, session)
