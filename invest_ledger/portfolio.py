"""Portfolio-level analytics built on the ledger primitives.

This module combines lot matching, cashflow projection and XIRR into the
figures a dashboard shows: returns per instrument and for the whole
portfolio, the theoretical yield at today's price, unrealized P&L of the open
lots and how much of the projected cash has already been collected. It also
decides which instruments get a projected schedule at all and isolates the
failure of one instrument from the rest of a batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .data_models import CashflowRow, CashflowType, FifoResult, Flow, Instrument, Side, Transaction
from .engine import FALLBACK_WINDOW_MONTHS, project_cashflows
from .errors import LedgerError, MissingTermsError
from .fifo import match_lots
from .xirr import xirr_from_flows

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


@dataclass(frozen=True)
class UnrealizedGain:
    quantity: Decimal
    cost_basis: Decimal
    market_value: Decimal
    gain_abs: Decimal
    gain_percent: Decimal


@dataclass(frozen=True)
class CollectionSummary:
    """Projected cash split into what was collected and what is still due."""

    capital_collected: Decimal
    interest_collected: Decimal
    capital_receivable: Decimal
    interest_receivable: Decimal

    @property
    def total_receivable(self) -> Decimal:
        return self.capital_receivable + self.interest_receivable


@dataclass
class InstrumentReport:
    instrument: Instrument
    fifo: FifoResult
    cashflows: List[CashflowRow]
    xirr: Optional[float]


@dataclass
class PortfolioReport:
    reports: Dict[str, InstrumentReport] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    consolidated_xirr: Optional[float] = None


def transaction_flows(transactions: Iterable[Transaction]) -> List[Flow]:
    """Turn trades into flows: a BUY pays out price and commission, a SELL
    brings in its proceeds net of commission."""
    flows: List[Flow] = []
    for tx in transactions:
        if tx.side is Side.BUY:
            flows.append(Flow(date=tx.date, amount=-(tx.gross_amount + tx.commission)))
        elif tx.side is Side.SELL:
            flows.append(Flow(date=tx.date, amount=tx.gross_amount - tx.commission))
        else:
            raise ValueError(f"Unknown transaction side: {tx.side}")
    return flows


def cashflow_flows(rows: Iterable[CashflowRow], after: Optional[date] = None) -> List[Flow]:
    """Projected payments as inflows, optionally only those dated after ``after``."""
    return [Flow(date=r.date, amount=r.amount) for r in rows if after is None or r.date > after]


def _chronological(flows: Iterable[Flow]) -> List[Flow]:
    return sorted(flows, key=lambda f: f.date)


def investment_xirr(transactions: Iterable[Transaction], rows: Iterable[CashflowRow]) -> Optional[float]:
    """Annualized return of trading an instrument and collecting its payments."""
    return xirr_from_flows(_chronological(transaction_flows(transactions) + cashflow_flows(rows)))


def market_yield(quantity: Decimal, price: Decimal, rows: Iterable[CashflowRow], as_of: date) -> Optional[float]:
    """Yield of buying ``quantity`` at ``price`` on ``as_of`` and holding to maturity.

    Only rows dated after ``as_of`` count. Returns ``None`` when nothing is
    held, the price is unknown or no payment is left.
    """
    if quantity <= 0 or price <= 0:
        return None
    future = cashflow_flows(rows, after=as_of)
    if not future:
        return None
    return xirr_from_flows([Flow(date=as_of, amount=-(quantity * price))] + _chronological(future))


def unrealized_gain(result: FifoResult, market_price: Decimal) -> UnrealizedGain:
    """Mark the open lots of ``result`` to ``market_price``."""
    quantity = result.open_quantity
    cost_basis = sum((p.cost_basis for p in result.open_positions), _ZERO)
    market_value = quantity * market_price
    gain_abs = market_value - cost_basis
    gain_percent = gain_abs / cost_basis * 100 if cost_basis else _ZERO
    return UnrealizedGain(
        quantity=quantity,
        cost_basis=cost_basis,
        market_value=market_value,
        gain_abs=gain_abs,
        gain_percent=gain_percent,
    )


def collection_summary(rows: Iterable[CashflowRow], as_of: date) -> CollectionSummary:
    """Split rows into collected (dated on or before ``as_of``) and receivable."""
    totals = {
        (CashflowType.AMORTIZATION, True): _ZERO,
        (CashflowType.INTEREST, True): _ZERO,
        (CashflowType.AMORTIZATION, False): _ZERO,
        (CashflowType.INTEREST, False): _ZERO,
    }
    for row in rows:
        totals[(row.type, row.date <= as_of)] += row.amount
    return CollectionSummary(
        capital_collected=totals[(CashflowType.AMORTIZATION, True)],
        interest_collected=totals[(CashflowType.INTEREST, True)],
        capital_receivable=totals[(CashflowType.AMORTIZATION, False)],
        interest_receivable=totals[(CashflowType.INTEREST, False)],
    )


def generate_cashflows(
    instrument: Instrument,
    account_for_sells: bool = False,
    fallback_window_months: int = FALLBACK_WINDOW_MONTHS,
) -> List[CashflowRow]:
    """Project the payments of ``instrument``; equity-like instruments have none.

    Raises
    ------
    MissingTermsError
        If a scheduled instrument comes without contract terms.
    """
    if not instrument.instrument_type.has_schedule:
        return []
    if instrument.terms is None:
        raise MissingTermsError(instrument.ticker, ["maturity_date", "frequency_months"])
    return project_cashflows(
        instrument.terms,
        instrument.transactions,
        account_for_sells=account_for_sells,
        fallback_window_months=fallback_window_months,
        instrument=instrument.ticker,
    )


def process_portfolio(
    instruments: Iterable[Instrument],
    account_for_sells: bool = False,
    fallback_window_months: int = FALLBACK_WINDOW_MONTHS,
) -> PortfolioReport:
    """Match lots and project payments for every instrument.

    An instrument whose data is inconsistent (an oversell, missing terms, a
    runaway schedule) is logged and reported in ``errors``; the others are
    processed normally. The consolidated XIRR covers the instruments that
    succeeded.
    """
    report = PortfolioReport()
    all_flows: List[Flow] = []
    for instrument in instruments:
        try:
            fifo = match_lots(instrument.transactions, instrument=instrument.ticker)
            rows = generate_cashflows(instrument, account_for_sells, fallback_window_months)
        except LedgerError as exc:
            logger.warning("Skipping %s: %s", instrument.ticker, exc)
            report.errors[instrument.id] = str(exc)
            continue
        flows = transaction_flows(instrument.transactions) + cashflow_flows(rows)
        all_flows.extend(flows)
        report.reports[instrument.id] = InstrumentReport(
            instrument=instrument,
            fifo=fifo,
            cashflows=rows,
            xirr=xirr_from_flows(_chronological(flows)),
        )
    report.consolidated_xirr = xirr_from_flows(_chronological(all_flows))
    return report
