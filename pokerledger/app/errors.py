"""
errors.py — AppError base class and error code registry.

Every error returned by the PokerLedger API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Never conflate 401 (unauthenticated) with 403 (unauthorized).
  - When a rejection has a system-suggested corrective value (for example the
    required cash-out of the last active player), it travels in `details`.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
            details: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field    # which request field caused the error
        self.details     = details  # machine-readable corrective values

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    INVALID_AMOUNT             = "INVALID_AMOUNT"
    INVALID_STATUS             = "INVALID_STATUS"
    BELOW_MINIMUM_BUY_IN       = "BELOW_MINIMUM_BUY_IN"
    DUPLICATE_SETTLEMENT_PLAYER = "DUPLICATE_SETTLEMENT_PLAYER"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    SESSION_NOT_FOUND          = "SESSION_NOT_FOUND"
    PLAYER_NOT_FOUND           = "PLAYER_NOT_FOUND"
    PLAYER_SESSION_NOT_FOUND   = "PLAYER_SESSION_NOT_FOUND"

    # ── State Errors (409) ─────────────────────────────────────────────────
    # The transition is invalid for the current state. Re-fetch and retry.
    ALREADY_JOINED             = "ALREADY_JOINED"
    PLAYER_NOT_ACTIVE          = "PLAYER_NOT_ACTIVE"
    PLAYER_ALREADY_ACTIVE      = "PLAYER_ALREADY_ACTIVE"
    SESSION_NOT_ONGOING        = "SESSION_NOT_ONGOING"
    SESSION_NOT_COMPLETE       = "SESSION_NOT_COMPLETE"
    PLAYERS_STILL_ACTIVE       = "PLAYERS_STILL_ACTIVE"

    # ── Invariant Violations (422) ─────────────────────────────────────────
    # Chip conservation: the last active player must cash out with the
    # required amount. details.required_amount carries the correct value.
    BALANCE_VIOLATION          = "BALANCE_VIOLATION"
    PLAYER_NOT_IN_SESSION      = "PLAYER_NOT_IN_SESSION"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not the host or an admin
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"


# ── Warning Code Registry ──────────────────────────────────────────────────
#
# Warnings are returned alongside a 2xx response in the `warnings` array.
# They do not block the request but must be surfaced to a human.
# ──────────────────────────────────────────────────────────────────────────

class WarningCode:

    # Winners' total profit and losers' total loss differ by more than the
    # balance tolerance. The settlement is still computed.
    LEDGER_IMBALANCE         = "LEDGER_IMBALANCE"

    # More was cashed out than bought in; the required cash-out was clamped to 0.
    OVERPAID_LEDGER          = "OVERPAID_LEDGER"

    # A session cost was given but nobody has an adjusted profit to carry it.
    UNALLOCATED_SESSION_COST = "UNALLOCATED_SESSION_COST"

    # Cost/discount stored on a session that is not COMPLETED yet (preview only).
    SESSION_NOT_COMPLETED    = "SESSION_NOT_COMPLETED"
