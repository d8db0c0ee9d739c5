"""
models/transaction.py — Ledger Transaction table definition.

Append-only. Rows are never updated or deleted; a correction is a new row.
No business logic. No imports from services or routes.

  BUY_IN   — written exactly once, when the player joins.
  REBUY    — chips added while ACTIVE, or the extra buy-in on a rejoin.
  CASH_OUT — written each time the player leaves the table (amount may be 0).
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pokerledger.app.extensions import db
from pokerledger.app.models.game_session import _enum_values


class TransactionType(str, enum.Enum):
    BUY_IN   = "BUY_IN"
    REBUY    = "REBUY"
    CASH_OUT = "CASH_OUT"


# Transaction types that count toward a player's total buy-in.
BUY_IN_TYPES = frozenset({TransactionType.BUY_IN, TransactionType.REBUY})


class Transaction(db.Model):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE RESTRICT: ledger rows are never removed.
    player_session_id: Mapped[int] = mapped_column(
        ForeignKey("player_sessions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    type: Mapped[TransactionType] = mapped_column(
        Enum(
            TransactionType,
            name="transaction_type_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    note: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    player_session: Mapped["PlayerSession"] = relationship(  # noqa: F821
        "PlayerSession",
        back_populates="transactions",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Transaction id={self.id} "
            f"player_session_id={self.player_session_id} "
            f"type={self.type} "
            f"amount={self.amount}>"
        )
