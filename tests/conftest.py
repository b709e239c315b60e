from datetime import date
from decimal import Decimal

import pytest

from invest_ledger.data_models import Side, Transaction


def make_tx(tx_id, day, side, quantity, price, commission="0", currency="USD"):
    return Transaction(
        id=tx_id,
        date=day,
        side=Side(side),
        quantity=Decimal(str(quantity)),
        price=Decimal(str(price)),
        commission=Decimal(str(commission)),
        currency=currency,
    )


@pytest.fixture
def tx():
    """Factory for transactions with string/number shorthand."""
    return make_tx


@pytest.fixture
def fifo_example(tx):
    """Two buys at 10 and 12, then a sell of 150 at 15."""
    return [
        tx("b1", date(2024, 1, 1), "BUY", 100, 10),
        tx("b2", date(2024, 2, 1), "BUY", 100, 12),
        tx("s1", date(2024, 3, 1), "SELL", 150, 15),
    ]
