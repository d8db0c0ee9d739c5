"""
models/game_session.py — GameSession table definition.

One row per poker night. No business logic. No imports from services or routes.

Key design points:
  - Money columns use Numeric(12, 2) — never Float.
  - `session_cost` is NULL until the host enters it; it may be set before the
    session is COMPLETED for previewing a settlement.
  - `discount_percent` is 0–100 and shrinks every player's profit or loss
    toward zero before the cost is distributed.
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


class SessionStatus(str, enum.Enum):
    ONGOING   = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values, not member names."""
    return [member.value for member in enum_cls]


class GameSession(db.Model):
    __tablename__ = "game_sessions"

    __table_args__ = (
        CheckConstraint("min_buy_in >= 0", name="ck_game_sessions_min_buy_in"),
        CheckConstraint(
            "session_cost IS NULL OR session_cost >= 0",
            name="ck_game_sessions_cost_non_negative",
        ),
        CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="ck_game_sessions_discount_range",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE RESTRICT: cannot delete a player who hosted sessions.
    host_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    location: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    game_type: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    min_buy_in: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    status: Mapped[SessionStatus] = mapped_column(
        Enum(
            SessionStatus,
            name="session_status_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=SessionStatus.ONGOING,
        server_default=SessionStatus.ONGOING.value,
    )

    session_cost: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )

    discount_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=Decimal("0"),
        server_default="0",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    host: Mapped["Player"] = relationship(  # noqa: F821
        "Player",
        back_populates="hosted_sessions",
    )

    participants: Mapped[list["PlayerSession"]] = relationship(  # noqa: F821
        "PlayerSession",
        back_populates="game_session",
        order_by="PlayerSession.id",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<GameSession id={self.id} "
            f"location={self.location!r} "
            f"status={self.status}>"
        )
