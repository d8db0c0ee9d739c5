"""
models/settlement.py — SettlementRecord and SettlementRecordLine tables.

A SettlementRecord is the saved snapshot of one settlement calculation for a
session. There is at most one per session (UNIQUE(session_id)); saving again
replaces it, lines included. No history is retained.
No business logic. No imports from services or routes.

Key design points:
  - Money columns use Numeric(12, 2) — never Float.
  - Lines are owned by their record (cascade delete-orphan) and keep the
    order in which the calculator produced them (`position`).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pokerledger.app.extensions import db


class SettlementRecord(db.Model):
    __tablename__ = "settlement_records"

    __table_args__ = (
        UniqueConstraint("session_id", name="uq_settlement_records_session"),
        CheckConstraint("session_cost >= 0", name="ck_settlement_records_cost_non_negative"),
        CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="ck_settlement_records_discount_range",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    session_id: Mapped[int] = mapped_column(
        ForeignKey("game_sessions.id", ondelete="RESTRICT"),
        nullable=False,
    )

    session_cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    discount_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
    )

    # True when the ledger the settlement was computed from did not balance.
    imbalanced: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="0",
    )

    saved_by_player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="RESTRICT"),
        nullable=False,
    )

    saved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    lines: Mapped[list["SettlementRecordLine"]] = relationship(
        "SettlementRecordLine",
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="SettlementRecordLine.position",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<SettlementRecord id={self.id} "
            f"session_id={self.session_id} "
            f"cost={self.session_cost}>"
        )


class SettlementRecordLine(db.Model):
    __tablename__ = "settlement_record_lines"

    __table_args__ = (
        UniqueConstraint("record_id", "player_id", name="uq_settlement_lines_record_player"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE CASCADE: lines are owned by their record.
    record_id: Mapped[int] = mapped_column(
        ForeignKey("settlement_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="RESTRICT"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    original_profit_loss: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    adjusted_profit_loss: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    session_cost_share: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    final_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    record: Mapped[SettlementRecord] = relationship(
        "SettlementRecord",
        back_populates="lines",
    )

    player: Mapped["Player"] = relationship("Player")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<SettlementRecordLine record_id={self.record_id} "
            f"player_id={self.player_id} "
            f"final={self.final_amount}>"
        )
