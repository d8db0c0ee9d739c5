"""
models/player_session.py — PlayerSession table definition.

One row per (GameSession, Player) pair, created when the player joins and
reused when they rejoin. No business logic. No imports from services or routes.

Key design points:
  - `current_stack` is denormalised. Every mutation that changes it also
    appends a ledger Transaction in the same database transaction
    (see services/player_session_service.py).
  - UNIQUE(session_id, player_id): a player joins a session at most once.
  - BUSTED is a finished state with a stack of zero; settlement treats it
    like CASHED_OUT.
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
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pokerledger.app.extensions import db
from pokerledger.app.models.game_session import _enum_values


class PlayerStatus(str, enum.Enum):
    ACTIVE     = "ACTIVE"
    CASHED_OUT = "CASHED_OUT"
    BUSTED     = "BUSTED"


# Statuses whose stack counts as already cashed out.
FINISHED_STATUSES = frozenset({PlayerStatus.CASHED_OUT, PlayerStatus.BUSTED})


class PlayerSession(db.Model):
    __tablename__ = "player_sessions"

    __table_args__ = (
        UniqueConstraint("session_id", "player_id", name="uq_player_sessions_session_player"),
        CheckConstraint("initial_buy_in >= 0", name="ck_player_sessions_buy_in_non_negative"),
        CheckConstraint("current_stack >= 0", name="ck_player_sessions_stack_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    session_id: Mapped[int] = mapped_column(
        ForeignKey("game_sessions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # NULL while ACTIVE; set on leave/bust, cleared on rejoin.
    left_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    initial_buy_in: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    current_stack: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    status: Mapped[PlayerStatus] = mapped_column(
        Enum(
            PlayerStatus,
            name="player_status_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=PlayerStatus.ACTIVE,
        server_default=PlayerStatus.ACTIVE.value,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    game_session: Mapped["GameSession"] = relationship(  # noqa: F821
        "GameSession",
        back_populates="participants",
    )

    player: Mapped["Player"] = relationship(  # noqa: F821
        "Player",
        back_populates="player_sessions",
    )

    # Ledger entries in the order they were written.
    transactions: Mapped[list["Transaction"]] = relationship(  # noqa: F821
        "Transaction",
        back_populates="player_session",
        order_by="Transaction.id",
    )

    @property
    def is_active(self) -> bool:
        """True while the player is still at the table."""
        return self.status == PlayerStatus.ACTIVE

    @property
    def is_finished(self) -> bool:
        """True once the player has cashed out or busted."""
        return self.status in FINISHED_STATUSES

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<PlayerSession id={self.id} "
            f"session_id={self.session_id} "
            f"player_id={self.player_id} "
            f"stack={self.current_stack} "
            f"status={self.status}>"
        )
