"""
models/player.py — Player table definition.

Players are owned by the player directory (account management lives outside
this service). The ledger only references them by id, and reads `is_admin`
for host-or-admin authorisation.
No business logic. No imports from services or routes.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pokerledger.app.extensions import db


class Player(db.Model):
    __tablename__ = "players"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_players_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Optional: quick-created players may have no email.
    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
    )

    is_admin: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="0",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    hosted_sessions: Mapped[list["GameSession"]] = relationship(  # noqa: F821
        "GameSession",
        back_populates="host",
    )

    player_sessions: Mapped[list["PlayerSession"]] = relationship(  # noqa: F821
        "PlayerSession",
        back_populates="player",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Player id={self.id} name={self.name!r}>"
