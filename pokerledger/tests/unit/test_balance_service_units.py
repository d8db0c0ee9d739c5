"""
tests/unit/test_balance_service_units.py — Unit tests for balance_service.

What this file proves:
  - total_buy_in sums BUY_IN and REBUY rows across rejoin cycles
  - total_buy_in falls back to initial_buy_in for rows without a ledger
  - compute_balance counts CASHED_OUT and BUSTED stacks as cashed out
  - required cash-out is clamped at zero and flagged as overpaid

Participants are SimpleNamespace stand-ins: compute_balance and total_buy_in
only read attributes, so no database is involved.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

from pokerledger.app.errors import WarningCode
from pokerledger.app.models.player_session import PlayerStatus
from pokerledger.app.models.transaction import TransactionType
from pokerledger.app.services import balance_service

D = Decimal


def _tx(tx_type, amount):
    return SimpleNamespace(type=tx_type, amount=D(amount))


def _participant(ps_id, status, stack, *transactions, initial="100.00"):
    return SimpleNamespace(
        id=ps_id,
        status=status,
        current_stack=D(stack),
        initial_buy_in=D(initial),
        transactions=list(transactions),
    )


class TestTotalBuyIn:

    def test_sums_buy_in_and_rebuys(self):
        p = _participant(
            1, PlayerStatus.ACTIVE, "150.00",
            _tx(TransactionType.BUY_IN, "100.00"),
            _tx(TransactionType.REBUY, "50.00"),
        )
        assert balance_service.total_buy_in(p) == D("150.00")

    def test_ignores_cash_out_rows(self):
        p = _participant(
            1, PlayerStatus.ACTIVE, "80.00",
            _tx(TransactionType.BUY_IN, "100.00"),
            _tx(TransactionType.CASH_OUT, "120.00"),
            _tx(TransactionType.REBUY, "20.00"),
        )
        assert balance_service.total_buy_in(p) == D("120.00")

    def test_falls_back_to_initial_buy_in(self):
        p = _participant(1, PlayerStatus.ACTIVE, "100.00", initial="75.00")
        assert balance_service.total_buy_in(p) == D("75.00")


class TestComputeBalance:

    def test_last_player_must_close_the_gap(self):
        """A: 100 + 50 rebuy, still active. B: 100 in, cashed out 50."""
        a = _participant(
            1, PlayerStatus.ACTIVE, "150.00",
            _tx(TransactionType.BUY_IN, "100.00"),
            _tx(TransactionType.REBUY, "50.00"),
        )
        b = _participant(
            2, PlayerStatus.CASHED_OUT, "50.00",
            _tx(TransactionType.BUY_IN, "100.00"),
            _tx(TransactionType.CASH_OUT, "50.00"),
        )

        snapshot = balance_service.compute_balance([a, b])

        assert snapshot.total_buy_ins == D("250.00")
        assert snapshot.total_cash_out == D("50.00")
        assert snapshot.required_cash_out == D("200.00")
        assert snapshot.active_player_ids == (1,)
        assert snapshot.is_overpaid is False

    def test_busted_players_count_as_cashed_out(self):
        a = _participant(1, PlayerStatus.BUSTED, "0.00", _tx(TransactionType.BUY_IN, "100.00"))
        b = _participant(2, PlayerStatus.CASHED_OUT, "200.00", _tx(TransactionType.BUY_IN, "100.00"))

        snapshot = balance_service.compute_balance([a, b])

        assert snapshot.total_cash_out == D("200.00")
        assert snapshot.active_player_ids == ()
        assert snapshot.is_balanced is True

    def test_overpaid_ledger_is_clamped_to_zero(self):
        a = _participant(1, PlayerStatus.ACTIVE, "100.00", _tx(TransactionType.BUY_IN, "100.00"))
        b = _participant(2, PlayerStatus.CASHED_OUT, "250.00", _tx(TransactionType.BUY_IN, "100.00"))

        snapshot = balance_service.compute_balance([a, b])

        assert snapshot.shortfall == D("-50.00")
        assert snapshot.required_cash_out == D("0")
        assert snapshot.is_overpaid is True
        assert balance_service.overpaid_warning(snapshot)["code"] == WarningCode.OVERPAID_LEDGER

    def test_empty_session(self):
        snapshot = balance_service.compute_balance([])
        assert snapshot.total_buy_ins == D("0")
        assert snapshot.required_cash_out == D("0")
        assert snapshot.active_player_ids == ()
