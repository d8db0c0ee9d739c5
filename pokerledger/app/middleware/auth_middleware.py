"""
middleware/auth_middleware.py — Bearer-token check for every route.

Tokens are minted by the club's sign-in service and signed with the shared
JWT_SECRET_KEY. This module only verifies them: a token must carry `exp`
and `sub`, and `sub` is the Player id that the route hands to the service
layer as `caller_id`.

Whether that player may touch a given session (host, admin, or their own
seat) is decided in the services, which raise FORBIDDEN (403). Everything
raised here is a 401:
  TOKEN_MISSING  no Authorization header
  TOKEN_INVALID  not "Bearer <jwt>", bad signature, or unusable sub
  TOKEN_EXPIRED  exp in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from pokerledger.app.errors import AppError, ErrorCode


def require_auth(f: Callable) -> Callable:
    """Verifies the bearer token, then sets g.user_id (int) for the view."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _read_bearer_token() -> str:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token or " " in token.strip():
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )
    return token.strip()


def _authenticate_request() -> None:
    """
    Decodes the request's token and stores the caller's player id on g.

    Kept apart from the decorator so it can run inside a bare
    test_request_context().
    """
    token = _read_bearer_token()

    try:
        payload = jwt.decode(
            token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Sign in again to obtain a new one.",
            401,
        )
    except jwt.InvalidTokenError:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    try:
        g.user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The 'sub' claim in the access token is not a valid player ID.",
            401,
        )
