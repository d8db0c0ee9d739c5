"""
serializers.py — ORM object → plain dict conversion for JSON output.

Monetary values stay Decimal here; the app's JSON provider renders them as
strings. Timestamps are ISO-8601.
"""

from __future__ import annotations

from pokerledger.app.models.game_session import GameSession
from pokerledger.app.models.player_session import PlayerSession
from pokerledger.app.models.settlement import SettlementRecord
from pokerledger.app.models.transaction import Transaction


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_transaction(t: Transaction) -> dict:
    return {
        "id": t.id,
        "player_session_id": t.player_session_id,
        "type": t.type.value,
        "amount": t.amount,
        "note": t.note,
        "created_at": _iso(t.created_at),
    }


def serialize_player_session(ps: PlayerSession) -> dict:
    from pokerledger.app.services.balance_service import total_buy_in

    buy_in = total_buy_in(ps)
    return {
        "id": ps.id,
        "session_id": ps.session_id,
        "player_id": ps.player_id,
        "player_name": ps.player.name if ps.player is not None else None,
        "status": ps.status.value,
        "joined_at": _iso(ps.joined_at),
        "left_at": _iso(ps.left_at),
        "initial_buy_in": ps.initial_buy_in,
        "current_stack": ps.current_stack,
        "total_buy_in": buy_in,
        # Only meaningful once the player has left the table.
        "profit_loss": ps.current_stack - buy_in if ps.is_finished else None,
    }


def serialize_session(gs: GameSession) -> dict:
    return {
        "id": gs.id,
        "host_id": gs.host_id,
        "date": _iso(gs.date),
        "location": gs.location,
        "game_type": gs.game_type,
        "min_buy_in": gs.min_buy_in,
        "status": gs.status.value,
        "session_cost": gs.session_cost,
        "discount_percent": gs.discount_percent,
        "created_at": _iso(gs.created_at),
    }


def serialize_settlement_record(record: SettlementRecord) -> dict:
    return {
        "session_id": record.session_id,
        "session_cost": record.session_cost,
        "discount_percent": record.discount_percent,
        "imbalanced": record.imbalanced,
        "saved_by_player_id": record.saved_by_player_id,
        "saved_at": _iso(record.saved_at),
        "lines": [
            {
                "player_id": line.player_id,
                "player_name": line.player.name if line.player is not None else None,
                "original_profit_loss": line.original_profit_loss,
                "discount_amount": line.discount_amount,
                "adjusted_profit_loss": line.adjusted_profit_loss,
                "session_cost_share": line.session_cost_share,
                "final_amount": line.final_amount,
            }
            for line in record.lines
        ],
    }
