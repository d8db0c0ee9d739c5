"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against TEST_DATABASE_URL when set (PostgreSQL), otherwise an
    in-memory SQLite database. Status columns are non-native enums, so the
    same models work on both.
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Players are not created over HTTP (registration lives in the club's auth
service). make_player() inserts them directly and auth_headers() mints the
same kind of bearer token that service issues.

Helper functions (not fixtures) are provided for common operations:
  - make_player(app, ...)       → player id
  - auth_headers(app, id)       → {"Authorization": "Bearer <token>"}
  - make_session(client, ...)   → session dict
  - join(...), add_chips(...), leave(...), set_status(...) → HTTP response

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy import text

from pokerledger.app import create_app
from pokerledger.app.extensions import db as _db
from pokerledger.app.models.player import Player


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """Creates the Flask application in 'testing' mode once for the entire test session."""
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows between tests in FK-safe order.

    Children first: settlement lines and ledger rows before the sessions and
    players they point at.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM settlement_record_lines"))
            conn.execute(text("DELETE FROM settlement_records"))
            conn.execute(text("DELETE FROM transactions"))
            conn.execute(text("DELETE FROM player_sessions"))
            conn.execute(text("DELETE FROM game_sessions"))
            conn.execute(text("DELETE FROM players"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def make_player(app, name: str = "alice", is_admin: bool = False) -> int:
    """Inserts a player row and returns its id."""
    with app.app_context():
        player = Player(name=name, email=f"{name}@test.com", is_admin=is_admin)
        _db.session.add(player)
        _db.session.commit()
        return player.id


def auth_headers(app, player_id: int, expires_in: timedelta = timedelta(minutes=15)) -> dict:
    """Returns the Authorization header dict for a token whose sub is player_id."""
    token = jwt.encode(
        {
            "sub": str(player_id),
            "exp": datetime.now(timezone.utc) + expires_in,
        },
        app.config["JWT_SECRET_KEY"],
        algorithm=app.config["JWT_ALGORITHM"],
    )
    return {"Authorization": f"Bearer {token}"}


def make_session(client, headers: dict, min_buy_in: str = "100", **extra) -> dict:
    """Creates an ONGOING session hosted by the token owner and returns its data dict."""
    payload = {
        "date": "2026-03-14T20:00:00+00:00",
        "location": "Back room",
        "min_buy_in": min_buy_in,
    }
    payload.update(extra)
    resp = client.post("/api/v1/sessions/", json=payload, headers=headers)
    assert resp.status_code == 201, f"make_session failed: {resp.get_json()}"
    return resp.get_json()["data"]


def join(client, headers: dict, session_id: int, player_id: int, buy_in: str = "100"):
    return client.post(
        f"/api/v1/sessions/{session_id}/players",
        json={"player_id": player_id, "buy_in": buy_in},
        headers=headers,
    )


def add_chips(client, headers: dict, session_id: int, player_session_id: int, amount: str):
    return client.post(
        f"/api/v1/sessions/{session_id}/players/{player_session_id}/chips",
        json={"amount": amount},
        headers=headers,
    )


def leave(client, headers: dict, session_id: int, player_session_id: int, amount: str):
    return client.post(
        f"/api/v1/sessions/{session_id}/players/{player_session_id}/leave",
        json={"leave_amount": amount},
        headers=headers,
    )


def set_status(client, headers: dict, session_id: int, status: str):
    return client.patch(
        f"/api/v1/sessions/{session_id}/status",
        json={"status": status},
        headers=headers,
    )
