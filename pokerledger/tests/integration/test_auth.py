"""
tests/integration/test_auth.py — Bearer token checks in require_auth.

Tokens are minted by the club's auth service; here they are minted with
PyJWT and the testing secret. Every protected route goes through the same
decorator, so GET /sessions/ stands in for all of them.

Error codes verified:
  TOKEN_MISSING (401), TOKEN_INVALID (401), TOKEN_EXPIRED (401)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from .conftest import auth_headers, make_player

URL = "/api/v1/sessions/"


def _error(resp) -> dict:
    return resp.get_json()["error"]


def test_valid_token_is_accepted(app, client):
    alice = make_player(app, "alice")
    resp = client.get(URL, headers=auth_headers(app, alice))
    assert resp.status_code == 200
    assert resp.get_json() == {"data": [], "warnings": []}


def test_missing_header_returns_token_missing(client):
    resp = client.get(URL)
    assert resp.status_code == 401
    assert _error(resp)["code"] == "TOKEN_MISSING"


def test_non_bearer_header_returns_token_invalid(client):
    resp = client.get(URL, headers={"Authorization": "Basic abc123"})
    assert resp.status_code == 401
    assert _error(resp)["code"] == "TOKEN_INVALID"


def test_bearer_without_token_returns_token_invalid(client):
    for header in ("Bearer", "Bearer ", "Bearer abc def"):
        resp = client.get(URL, headers={"Authorization": header})
        assert resp.status_code == 401, header
        assert _error(resp)["code"] == "TOKEN_INVALID"


def test_wrong_signature_returns_token_invalid(client):
    token = jwt.encode(
        {"sub": "1", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        "some-other-secret-that-is-long-enough",
        algorithm="HS256",
    )
    resp = client.get(URL, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert _error(resp)["code"] == "TOKEN_INVALID"


def test_expired_token_returns_token_expired(app, client):
    resp = client.get(URL, headers=auth_headers(app, 1, expires_in=timedelta(seconds=-30)))
    assert resp.status_code == 401
    assert _error(resp)["code"] == "TOKEN_EXPIRED"


def test_token_without_exp_is_rejected(app, client):
    token = jwt.encode({"sub": "1"}, app.config["JWT_SECRET_KEY"], algorithm="HS256")
    resp = client.get(URL, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert _error(resp)["code"] == "TOKEN_INVALID"


def test_non_numeric_sub_is_rejected(app, client):
    token = jwt.encode(
        {"sub": "alice", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        app.config["JWT_SECRET_KEY"],
        algorithm="HS256",
    )
    resp = client.get(URL, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert _error(resp)["code"] == "TOKEN_INVALID"
