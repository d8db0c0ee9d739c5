"""
Unit tests for service guards that do not need a real database.

The SQLAlchemy session is a MagicMock; session.get() is routed by model
class so each test controls exactly which rows "exist".
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from pokerledger.app.errors import AppError, ErrorCode
from pokerledger.app.models.game_session import GameSession, SessionStatus
from pokerledger.app.models.player import Player
from pokerledger.app.models.player_session import PlayerSession, PlayerStatus
from pokerledger.app.services import (
    game_session_service,
    player_session_service,
    settlement_service,
)


def _session_with(rows: dict) -> MagicMock:
    session = MagicMock()
    session.get.side_effect = lambda model, ident, **kwargs: rows.get(model)
    return session


def _game(status=SessionStatus.ONGOING, host_id=1, session_id=10):
    return SimpleNamespace(id=session_id, host_id=host_id, status=status, min_buy_in=Decimal("100"))


# ── game_session_service ───────────────────────────────────────────────────

def test_get_session_or_404_raises_session_not_found():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        game_session_service.get_session_or_404(99999, session)

    err = exc_info.value
    assert err.code == ErrorCode.SESSION_NOT_FOUND
    assert err.http_status == 404


def test_require_host_or_admin_allows_host_without_lookup():
    session = MagicMock()
    game_session_service.require_host_or_admin(_game(host_id=1), caller_id=1, session=session)
    session.get.assert_not_called()


def test_require_host_or_admin_allows_admin():
    session = _session_with({Player: SimpleNamespace(id=2, is_admin=True)})
    game_session_service.require_host_or_admin(_game(host_id=1), caller_id=2, session=session)


def test_require_host_or_admin_rejects_other_player():
    session = _session_with({Player: SimpleNamespace(id=2, is_admin=False)})

    with pytest.raises(AppError) as exc_info:
        game_session_service.require_host_or_admin(_game(host_id=1), caller_id=2, session=session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    assert exc_info.value.http_status == 403


def test_require_host_admin_or_self_allows_own_seat_without_lookup():
    session = MagicMock()
    game_session_service.require_host_admin_or_self(
        _game(host_id=1), player_id=2, caller_id=2, session=session,
    )
    session.get.assert_not_called()


def test_require_host_admin_or_self_rejects_other_seat():
    session = _session_with({Player: SimpleNamespace(id=2, is_admin=False)})

    with pytest.raises(AppError) as exc_info:
        game_session_service.require_host_admin_or_self(
            _game(host_id=1), player_id=3, caller_id=2, session=session,
        )

    assert exc_info.value.code == ErrorCode.FORBIDDEN


def test_create_session_requires_existing_host():
    session = _session_with({})

    with pytest.raises(AppError) as exc_info:
        game_session_service.create_session(5, {}, session)

    assert exc_info.value.code == ErrorCode.PLAYER_NOT_FOUND
    session.add.assert_not_called()


# ── player_session_service ─────────────────────────────────────────────────

def test_join_requires_ongoing_session():
    session = _session_with({GameSession: _game(status=SessionStatus.COMPLETED)})

    with pytest.raises(AppError) as exc_info:
        player_session_service.join_session(
            10, 1, {"player_id": 2, "buy_in": Decimal("100")}, session,
        )

    assert exc_info.value.code == ErrorCode.SESSION_NOT_ONGOING
    assert exc_info.value.http_status == 409


def test_add_chips_rejects_player_session_from_other_session():
    other = SimpleNamespace(id=3, session_id=77, status=PlayerStatus.ACTIVE, is_active=True)
    session = _session_with({GameSession: _game(), PlayerSession: other})

    with pytest.raises(AppError) as exc_info:
        player_session_service.add_chips(10, 3, 1, {"amount": Decimal("50")}, session)

    assert exc_info.value.code == ErrorCode.PLAYER_SESSION_NOT_FOUND


def test_add_chips_requires_active_player():
    cashed_out = SimpleNamespace(id=3, session_id=10, status=PlayerStatus.CASHED_OUT, is_active=False)
    session = _session_with({GameSession: _game(), PlayerSession: cashed_out})

    with pytest.raises(AppError) as exc_info:
        player_session_service.add_chips(10, 3, 1, {"amount": Decimal("50")}, session)

    assert exc_info.value.code == ErrorCode.PLAYER_NOT_ACTIVE


def test_add_chips_rejects_non_positive_amount():
    session = _session_with({GameSession: _game()})

    with pytest.raises(AppError) as exc_info:
        player_session_service.add_chips(10, 3, 1, {"amount": Decimal("0")}, session)

    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT
    assert exc_info.value.http_status == 400


@pytest.mark.parametrize("status", [SessionStatus.COMPLETED, SessionStatus.CANCELLED])
def test_add_chips_requires_ongoing_session(status):
    session = _session_with({GameSession: _game(status=status)})

    with pytest.raises(AppError) as exc_info:
        player_session_service.add_chips(10, 3, 1, {"amount": Decimal("50")}, session)

    assert exc_info.value.code == ErrorCode.SESSION_NOT_ONGOING
    assert exc_info.value.http_status == 409
    session.add.assert_not_called()


@pytest.mark.parametrize("status", [SessionStatus.COMPLETED, SessionStatus.CANCELLED])
def test_rejoin_requires_ongoing_session(status):
    left = SimpleNamespace(
        id=3, session_id=10, status=PlayerStatus.CASHED_OUT, is_active=False,
        current_stack=Decimal("80"), left_at="earlier",
    )
    session = _session_with({GameSession: _game(status=status), PlayerSession: left})

    with pytest.raises(AppError) as exc_info:
        player_session_service.rejoin_session(10, 3, 1, {}, session)

    assert exc_info.value.code == ErrorCode.SESSION_NOT_ONGOING
    assert left.status == PlayerStatus.CASHED_OUT


def test_rejoin_rejects_active_player():
    active = SimpleNamespace(id=3, session_id=10, status=PlayerStatus.ACTIVE, is_active=True)
    session = _session_with({GameSession: _game(), PlayerSession: active})

    with pytest.raises(AppError) as exc_info:
        player_session_service.rejoin_session(10, 3, 1, {}, session)

    assert exc_info.value.code == ErrorCode.PLAYER_ALREADY_ACTIVE


def test_rejoin_carries_stack_forward_without_rebuy_row():
    left = SimpleNamespace(
        id=3, session_id=10, status=PlayerStatus.CASHED_OUT, is_active=False,
        current_stack=Decimal("180.00"), left_at="earlier",
    )
    session = _session_with({GameSession: _game(), PlayerSession: left})

    result = player_session_service.rejoin_session(
        10, 3, 1, {"additional_buy_in": Decimal("0")}, session,
    )

    assert result.status == PlayerStatus.ACTIVE
    assert result.left_at is None
    assert result.current_stack == Decimal("180.00")
    session.add.assert_not_called()


# ── settlement_service ─────────────────────────────────────────────────────

def test_settlement_requires_completed_session():
    with pytest.raises(AppError) as exc_info:
        settlement_service._require_settleable(_game(status=SessionStatus.ONGOING), [])

    assert exc_info.value.code == ErrorCode.SESSION_NOT_COMPLETE
    assert exc_info.value.http_status == 409


def test_settlement_requires_everyone_to_have_left():
    participants = [
        SimpleNamespace(id=1, is_active=False),
        SimpleNamespace(id=2, is_active=True),
    ]

    with pytest.raises(AppError) as exc_info:
        settlement_service._require_settleable(_game(status=SessionStatus.COMPLETED), participants)

    err = exc_info.value
    assert err.code == ErrorCode.PLAYERS_STILL_ACTIVE
    assert err.details == {"active_player_session_ids": [2]}


def test_player_results_skip_active_rows():
    from pokerledger.app.models.transaction import TransactionType

    def _ps(player_id, stack, finished):
        return SimpleNamespace(
            player_id=player_id,
            current_stack=Decimal(stack),
            initial_buy_in=Decimal("100"),
            is_finished=finished,
            transactions=[SimpleNamespace(type=TransactionType.BUY_IN, amount=Decimal("100"))],
        )

    results = settlement_service.player_results([_ps(1, "150", True), _ps(2, "100", False)])

    assert results == [settlement_service.PlayerResult(1, Decimal("50"))]


def test_get_settlement_raises_for_unknown_session():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        settlement_service.get_settlement(99999, session)

    assert exc_info.value.code == ErrorCode.SESSION_NOT_FOUND
