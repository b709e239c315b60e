"""Tests for FIFO lot matching.

These cover lot ordering, commission handling, quantity conservation and
the refusal to sell more than is held.
"""

from datetime import date
from decimal import Decimal

import pytest

from invest_ledger.errors import InsufficientPositionError
from invest_ledger.fifo import match_lots


class TestFifoOrdering:
    def test_oldest_lot_is_consumed_first(self, fifo_example):
        result = match_lots(fifo_example)

        first, second = result.realized_gains
        assert (first.buy_lot_ref, first.quantity, first.buy_price_avg) == ("b1", Decimal(100), Decimal(10))
        assert (second.buy_lot_ref, second.quantity, second.buy_price_avg) == ("b2", Decimal(50), Decimal(12))
        assert first.gain_abs == Decimal(500)
        assert second.gain_abs == Decimal(150)
        assert result.total_realized_gain == Decimal(650)

    def test_remaining_lot_keeps_its_cost(self, fifo_example):
        result = match_lots(fifo_example)

        assert len(result.open_positions) == 1
        lot = result.open_positions[0]
        assert lot.origin_transaction_id == "b2"
        assert lot.quantity == Decimal(50)
        assert lot.buy_price == Decimal(12)
        assert result.position.quantity == Decimal(50)
        assert result.position.buy_price == Decimal(12)

    def test_unsorted_input_is_processed_by_date(self, fifo_example):
        result = match_lots(list(reversed(fifo_example)))

        assert [g.buy_lot_ref for g in result.realized_gains] == ["b1", "b2"]

    def test_same_date_keeps_input_order(self, tx):
        day = date(2024, 1, 1)
        result = match_lots([tx("b", day, "BUY", 10, 5), tx("s", day, "SELL", 10, 6)])
        assert result.open_positions == []

        with pytest.raises(InsufficientPositionError):
            match_lots([tx("s", day, "SELL", 10, 6), tx("b", day, "BUY", 10, 5)])

    def test_each_record_carries_the_sell_date_and_currency(self, tx):
        result = match_lots(
            [
                tx("b", date(2024, 1, 1), "BUY", 10, 5, currency="EUR"),
                tx("s", date(2024, 6, 1), "SELL", 4, 6, currency="EUR"),
            ]
        )

        gain = result.realized_gains[0]
        assert gain.date == date(2024, 6, 1)
        assert gain.sell_transaction_id == "s"
        assert gain.currency == "EUR"


class TestCommissions:
    def test_commissions_enter_the_gain(self, tx):
        result = match_lots(
            [
                tx("b", date(2024, 1, 1), "BUY", 10, 100, commission=10),
                tx("s", date(2024, 2, 1), "SELL", 10, 110, commission=20),
            ]
        )

        gain = result.realized_gains[0]
        # net sell 108 per unit against a unit cost of 101
        assert gain.gain_abs == Decimal(70)
        assert gain.gain_percent == Decimal(70) / Decimal(1010) * 100
        assert gain.buy_commission_paid == Decimal(10)
        assert gain.sell_commission == Decimal(20)

    def test_sell_commission_is_prorated_across_lots(self, tx):
        result = match_lots(
            [
                tx("b1", date(2024, 1, 1), "BUY", 100, 10),
                tx("b2", date(2024, 2, 1), "BUY", 100, 12),
                tx("s1", date(2024, 3, 1), "SELL", 150, 15, commission=30),
            ]
        )

        assert [g.sell_commission for g in result.realized_gains] == [Decimal(20), Decimal(10)]
        assert [g.gain_abs for g in result.realized_gains] == [Decimal(480), Decimal(140)]

    def test_open_lot_commission_is_prorated(self, tx):
        result = match_lots(
            [
                tx("b", date(2024, 1, 1), "BUY", 100, 10, commission=50),
                tx("s", date(2024, 2, 1), "SELL", 60, 11),
            ]
        )

        lot = result.open_positions[0]
        assert lot.quantity == Decimal(40)
        assert lot.buy_commission == Decimal(20)
        assert lot.cost_basis == Decimal(420)

    def test_zero_cost_basis_gives_zero_percent(self, tx):
        result = match_lots(
            [
                tx("b", date(2024, 1, 1), "BUY", 10, 0),
                tx("s", date(2024, 2, 1), "SELL", 10, 5),
            ]
        )

        assert result.realized_gains[0].gain_abs == Decimal(50)
        assert result.realized_gains[0].gain_percent == Decimal(0)


class TestPositionSummary:
    def test_weighted_average_over_lots(self, tx):
        result = match_lots(
            [
                tx("b1", date(2024, 1, 1), "BUY", 100, 10, commission=10),
                tx("b2", date(2024, 2, 1), "BUY", 300, 14, commission=30),
            ]
        )

        position = result.position
        assert position.quantity == Decimal(400)
        assert position.buy_price == Decimal(13)
        assert position.buy_commission == Decimal("0.1")
        assert position.date == date(2024, 1, 1)
        assert position.cost_basis == Decimal(5240)

    def test_no_position_when_flat(self, tx):
        result = match_lots(
            [
                tx("b", date(2024, 1, 1), "BUY", 10, 5),
                tx("s", date(2024, 2, 1), "SELL", 10, 6),
            ]
        )

        assert result.open_positions == []
        assert result.position is None

    def test_empty_input(self):
        result = match_lots([])

        assert result.realized_gains == []
        assert result.position is None
        assert result.open_quantity == Decimal(0)


class TestConservation:
    def test_realized_plus_open_equals_bought(self, tx):
        transactions = [
            tx("b1", date(2024, 1, 1), "BUY", "12.5", 10),
            tx("s1", date(2024, 1, 5), "SELL", 7, 11),
            tx("b2", date(2024, 2, 1), "BUY", 30, 9),
            tx("s2", date(2024, 3, 1), "SELL", "20.5", 12),
            tx("b3", date(2024, 4, 1), "BUY", 4, 8),
            tx("s3", date(2024, 5, 1), "SELL", 3, 10),
        ]
        result = match_lots(transactions)

        bought = sum(t.quantity for t in transactions if t.side.value == "BUY")
        realized = sum(g.quantity for g in result.realized_gains)
        assert realized + result.open_quantity == bought
        assert realized == Decimal("30.5")


class TestOversell:
    def test_oversell_raises_with_details(self, tx):
        with pytest.raises(InsufficientPositionError) as excinfo:
            match_lots(
                [
                    tx("b", date(2024, 1, 1), "BUY", 10, 5),
                    tx("s", date(2024, 2, 1), "SELL", 15, 6),
                ],
                instrument="AL30",
            )

        error = excinfo.value
        assert error.instrument == "AL30"
        assert error.transaction_id == "s"
        assert error.unsatisfied_quantity == Decimal(5)
        assert "AL30" in str(error)

    def test_sell_without_any_buy(self, tx):
        with pytest.raises(InsufficientPositionError):
            match_lots([tx("s", date(2024, 2, 1), "SELL", 1, 6)])

    def test_inputs_are_not_mutated(self, fifo_example):
        before = list(fifo_example)
        match_lots(fifo_example)
        assert fifo_example == before
        assert fifo_example[0].quantity == Decimal(100)


class TestTransactionValidation:
    @pytest.mark.parametrize(
        "quantity,price,commission",
        [(0, 10, 0), (-1, 10, 0), (1, -10, 0), (1, 10, -1)],
    )
    def test_rejects_invalid_values(self, tx, quantity, price, commission):
        with pytest.raises(ValueError):
            tx("x", date(2024, 1, 1), "BUY", quantity, price, commission=commission)
