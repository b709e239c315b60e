"""Output helpers for the investment ledger.

This module renders lots, realized gains, projected cashflows and return
figures as simple tab-separated tables on standard output.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .data_models import CashflowRow, FifoResult
from .portfolio import CollectionSummary, PortfolioReport, UnrealizedGain
from .utils import format_date_key


def format_rate(rate: Optional[float]) -> str:
    """Render an annual rate as a percentage, or ``n/a`` when indeterminate."""
    if rate is None:
        return "n/a"
    return f"{rate * 100:.2f}%"


def print_positions(result: FifoResult) -> None:
    """Print the realized gains and the open lots of a FIFO match."""
    print("Realized gains")
    print("-" * 72)
    print("\t".join(["Date", "Sell", "Lot", "Qty", "BuyPrice", "SellPrice", "Gain", "Gain%"]))
    for g in result.realized_gains:
        print(
            "\t".join(
                [
                    format_date_key(g.date),
                    g.sell_transaction_id,
                    g.buy_lot_ref,
                    f"{g.quantity:.4f}",
                    f"{g.buy_price_avg:.4f}",
                    f"{g.sell_price:.4f}",
                    f"{g.gain_abs:.2f}",
                    f"{g.gain_percent:.2f}",
                ]
            )
        )
    print(f"Total realized     : {result.total_realized_gain:.2f}")
    print()
    print("Open lots")
    print("-" * 72)
    print("\t".join(["Date", "Lot", "Qty", "BuyPrice", "Commission", "CostBasis"]))
    for p in result.open_positions:
        print(
            "\t".join(
                [
                    format_date_key(p.date),
                    p.origin_transaction_id,
                    f"{p.quantity:.4f}",
                    f"{p.buy_price:.4f}",
                    f"{p.buy_commission:.2f}",
                    f"{p.cost_basis:.2f}",
                ]
            )
        )
    position = result.position
    if position is not None:
        print(f"Position           : {position.quantity:.4f} @ {position.buy_price:.4f} {position.currency}")
        print(f"Held since         : {format_date_key(position.date)}")
    else:
        print("Position           : none")
    print("-" * 72)


def print_unrealized(gain: UnrealizedGain) -> None:
    print(f"Market value       : {gain.market_value:.2f}")
    print(f"Cost basis         : {gain.cost_basis:.2f}")
    print(f"Unrealized gain    : {gain.gain_abs:.2f} ({gain.gain_percent:.2f}%)")


def print_cashflows(rows: Iterable[CashflowRow]) -> None:
    """Print projected cashflow rows as a table."""
    print("\t".join(["Date", "Type", "Amount", "Currency", "Residual", "Description"]))
    for row in rows:
        print(
            "\t".join(
                [
                    format_date_key(row.date),
                    row.type.value,
                    f"{row.amount:.2f}",
                    row.currency,
                    f"{row.capital_residual:.2f}",
                    row.description,
                ]
            )
        )


def print_collection(summary: CollectionSummary) -> None:
    print(f"Capital collected  : {summary.capital_collected:.2f}")
    print(f"Interest collected : {summary.interest_collected:.2f}")
    print(f"Capital receivable : {summary.capital_receivable:.2f}")
    print(f"Interest receivable: {summary.interest_receivable:.2f}")
    print(f"Total receivable   : {summary.total_receivable:.2f}")


def print_portfolio(report: PortfolioReport) -> None:
    """Print one line per instrument followed by the consolidated return."""
    print("Portfolio")
    print("=" * 72)
    print(f"{'Ticker':12s} {'Open qty':>14s} {'Realized':>14s} {'Payments':>9s} {'XIRR':>10s}")
    for item in report.reports.values():
        print(
            f"{item.instrument.ticker:12s} {item.fifo.open_quantity:14.4f} "
            f"{item.fifo.total_realized_gain:14.2f} {len(item.cashflows):9d} {format_rate(item.xirr):>10s}"
        )
    for instrument_id, message in report.errors.items():
        print(f"{instrument_id:12s} ERROR {message}")
    print("=" * 72)
    print(f"Consolidated XIRR  : {format_rate(report.consolidated_xirr)}")
