"""Initial schema — players, sessions, ledger and settlement records.

Revision: 001_initial_schema
Created:  2026-10-18

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  Tables in FK dependency order (players → game_sessions → player_sessions
  → transactions, settlement_records → settlement_record_lines), then indexes.

Status and type columns are VARCHAR with CHECK constraints rather than
PostgreSQL enum types; the models declare them with native_enum=False so
the same schema also runs on SQLite.

ON DELETE policies:
  game_sessions.host_id               → RESTRICT
  player_sessions.*                   → RESTRICT  (the ledger is never lost)
  transactions.player_session_id      → RESTRICT
  settlement_records.*                → RESTRICT
  settlement_record_lines.record_id   → CASCADE   (lines owned by record)
  settlement_record_lines.player_id   → RESTRICT
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration, no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:

    # ── players ────────────────────────────────────────────────────────────
    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_players"),
        sa.UniqueConstraint("email", name="uq_players_email"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_players_name_nonempty"),
    )

    # ── game_sessions ──────────────────────────────────────────────────────
    op.create_table(
        "game_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("host_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("game_type", sa.String(100), nullable=True),
        sa.Column("min_buy_in", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ONGOING"),
        sa.Column("session_cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_game_sessions"),
        sa.ForeignKeyConstraint(
            ["host_id"], ["players.id"],
            name="fk_game_sessions_host",
            ondelete="RESTRICT",
        ),
        sa.CheckConstraint("min_buy_in >= 0", name="ck_game_sessions_min_buy_in"),
        sa.CheckConstraint(
            "session_cost IS NULL OR session_cost >= 0",
            name="ck_game_sessions_cost_non_negative",
        ),
        sa.CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="ck_game_sessions_discount_range",
        ),
        sa.CheckConstraint(
            "status IN ('ONGOING', 'COMPLETED', 'CANCELLED')",
            name="ck_game_sessions_status",
        ),
    )

    # ── player_sessions ────────────────────────────────────────────────────
    # One row per (session, player). Rejoin reuses the row.
    op.create_table(
        "player_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("initial_buy_in", sa.Numeric(12, 2), nullable=False),
        sa.Column("current_stack", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.PrimaryKeyConstraint("id", name="pk_player_sessions"),
        sa.ForeignKeyConstraint(
            ["session_id"], ["game_sessions.id"],
            name="fk_player_sessions_session",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["player_id"], ["players.id"],
            name="fk_player_sessions_player",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("session_id", "player_id", name="uq_player_sessions_session_player"),
        sa.CheckConstraint("initial_buy_in >= 0", name="ck_player_sessions_buy_in_non_negative"),
        sa.CheckConstraint("current_stack >= 0", name="ck_player_sessions_stack_non_negative"),
        sa.CheckConstraint(
            "status IN ('ACTIVE', 'CASHED_OUT', 'BUSTED')",
            name="ck_player_sessions_status",
        ),
    )

    # ── transactions ───────────────────────────────────────────────────────
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_session_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_transactions"),
        sa.ForeignKeyConstraint(
            ["player_session_id"], ["player_sessions.id"],
            name="fk_transactions_player_session",
            ondelete="RESTRICT",
        ),
        sa.CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
        sa.CheckConstraint(
            "type IN ('BUY_IN', 'REBUY', 'CASH_OUT')",
            name="ck_transactions_type",
        ),
    )

    # ── settlement_records ─────────────────────────────────────────────────
    # At most one per session; re-saving deletes and re-inserts.
    op.create_table(
        "settlement_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("session_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("imbalanced", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("saved_by_player_id", sa.Integer(), nullable=False),
        sa.Column(
            "saved_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_settlement_records"),
        sa.ForeignKeyConstraint(
            ["session_id"], ["game_sessions.id"],
            name="fk_settlement_records_session",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["saved_by_player_id"], ["players.id"],
            name="fk_settlement_records_saved_by",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("session_id", name="uq_settlement_records_session"),
        sa.CheckConstraint("session_cost >= 0", name="ck_settlement_records_cost_non_negative"),
        sa.CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="ck_settlement_records_discount_range",
        ),
    )

    # ── settlement_record_lines ────────────────────────────────────────────
    op.create_table(
        "settlement_record_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("record_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("original_profit_loss", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("adjusted_profit_loss", sa.Numeric(12, 2), nullable=False),
        sa.Column("session_cost_share", sa.Numeric(12, 2), nullable=False),
        sa.Column("final_amount", sa.Numeric(12, 2), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_settlement_record_lines"),
        sa.ForeignKeyConstraint(
            ["record_id"], ["settlement_records.id"],
            name="fk_settlement_lines_record",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["player_id"], ["players.id"],
            name="fk_settlement_lines_player",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("record_id", "player_id", name="uq_settlement_lines_record_player"),
    )

    # ── Indexes ────────────────────────────────────────────────────────────
    op.create_index("idx_game_sessions_host", "game_sessions", ["host_id"])
    op.create_index("idx_player_sessions_session", "player_sessions", ["session_id"])
    op.create_index("idx_player_sessions_player", "player_sessions", ["player_id"])
    op.create_index("idx_transactions_player_session", "transactions", ["player_session_id"])
    op.create_index("idx_settlement_lines_record", "settlement_record_lines", ["record_id"])


def downgrade() -> None:
    """
    Drop all objects created in upgrade(), in reverse dependency order.

    For local development reset only. Prefer a corrective migration in
    production.
    """
    op.drop_index("idx_settlement_lines_record",     table_name="settlement_record_lines")
    op.drop_index("idx_transactions_player_session", table_name="transactions")
    op.drop_index("idx_player_sessions_player",      table_name="player_sessions")
    op.drop_index("idx_player_sessions_session",     table_name="player_sessions")
    op.drop_index("idx_game_sessions_host",          table_name="game_sessions")

    op.drop_table("settlement_record_lines")
    op.drop_table("settlement_records")
    op.drop_table("transactions")
    op.drop_table("player_sessions")
    op.drop_table("game_sessions")
    op.drop_table("players")
