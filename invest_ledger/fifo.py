"""First-in-first-out lot matching.

Each BUY opens a lot whose unit cost is its price plus the commission spread
over its units. Each SELL consumes the oldest lots first and produces one
``RealizedGain`` per lot it touches. Whatever is left once all transactions
have been replayed is the open position of the instrument.
"""

from __future__ import annotations

from collections import deque
from decimal import Decimal
from typing import Deque, Iterable, List, Optional

from .data_models import FifoResult, Lot, OpenPosition, PositionSummary, RealizedGain, Side, Transaction
from .errors import InsufficientPositionError

_ZERO = Decimal("0")


def _sort_transactions(transactions: Iterable[Transaction]) -> List[Transaction]:
    # sorted() is stable: same-date transactions keep their input order
    return sorted(transactions, key=lambda t: t.date)


def _open_lot(tx: Transaction) -> Lot:
    return Lot(
        origin_transaction_id=tx.id,
        date=tx.date,
        quantity=tx.quantity,
        price=tx.price,
        commission_per_unit=tx.commission / tx.quantity,
        currency=tx.currency,
    )


def _consume(lots: Deque[Lot], sell: Transaction, instrument: Optional[str]) -> List[RealizedGain]:
    """Match ``sell`` against the oldest lots, mutating ``lots`` in place."""
    available = sum((lot.quantity for lot in lots), _ZERO)
    if sell.quantity > available:
        raise InsufficientPositionError(instrument, sell.id, sell.quantity - available)

    net_sell_price = sell.price - sell.commission / sell.quantity
    remaining = sell.quantity
    gains: List[RealizedGain] = []
    while remaining > 0:
        lot = lots[0]
        consumed = min(remaining, lot.quantity)
        cost_basis = lot.unit_cost * consumed
        gain_abs = net_sell_price * consumed - cost_basis
        gain_percent = gain_abs / cost_basis * 100 if cost_basis else _ZERO
        gains.append(
            RealizedGain(
                buy_lot_ref=lot.origin_transaction_id,
                sell_transaction_id=sell.id,
                date=sell.date,
                quantity=consumed,
                buy_price_avg=lot.price,
                buy_commission_paid=lot.commission_per_unit * consumed,
                sell_price=sell.price,
                sell_commission=sell.commission * consumed / sell.quantity,
                gain_abs=gain_abs,
                gain_percent=gain_percent,
                currency=sell.currency,
            )
        )
        lot.quantity -= consumed
        remaining -= consumed
        if lot.quantity == 0:
            lots.popleft()
    return gains


def summarize_lots(lots: Iterable[OpenPosition]) -> Optional[PositionSummary]:
    """Collapse open lots into a single weighted-average position.

    Returns ``None`` when nothing is held.
    """
    lots = list(lots)
    quantity = sum((p.quantity for p in lots), _ZERO)
    if quantity <= 0:
        return None
    weighted_price = sum((p.quantity * p.buy_price for p in lots), _ZERO)
    total_commission = sum((p.buy_commission for p in lots), _ZERO)
    return PositionSummary(
        quantity=quantity,
        buy_price=weighted_price / quantity,
        buy_commission=total_commission / quantity,
        date=min(p.date for p in lots),
        currency=lots[0].currency,
    )


def match_lots(transactions: Iterable[Transaction], instrument: Optional[str] = None) -> FifoResult:
    """Replay the transactions of one instrument and match sells FIFO.

    Parameters
    ----------
    transactions: Iterable[Transaction]
        All transactions of a single instrument, in any order. They are
        processed by ascending date; same-date transactions keep their input
        order.
    instrument: Optional[str]
        Name used in error messages.

    Returns
    -------
    FifoResult
        Realized gains in the order they occurred, the remaining lots oldest
        first and their weighted-average summary.

    Raises
    ------
    InsufficientPositionError
        If a SELL exceeds the units held at that point.
    """
    lots: Deque[Lot] = deque()
    realized: List[RealizedGain] = []
    for tx in _sort_transactions(transactions):
        if tx.side is Side.BUY:
            lots.append(_open_lot(tx))
        elif tx.side is Side.SELL:
            realized.extend(_consume(lots, tx, instrument))
        else:
            raise ValueError(f"Unknown transaction side: {tx.side}")

    open_positions = [
        OpenPosition(
            origin_transaction_id=lot.origin_transaction_id,
            date=lot.date,
            quantity=lot.quantity,
            buy_price=lot.price,
            buy_commission=lot.commission_per_unit * lot.quantity,
            currency=lot.currency,
        )
        for lot in lots
    ]
    return FifoResult(
        open_positions=open_positions,
        realized_gains=realized,
        position=summarize_lots(open_positions),
    )
