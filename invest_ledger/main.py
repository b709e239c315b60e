"""Command-line interface for the investment ledger.

This module uses the ``click`` library to implement a multi-command interface.
Users can match lots FIFO to see positions and realized gains, project the
interest and amortization payments of a bond, compute the XIRR of a list of
flows or process a whole portfolio. Inputs are JSON or CSV files; results are
printed to the terminal or exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import click

from .config import LedgerSettings, configure_logging
from .data_models import (
    AmortizationEntry,
    AmortizationType,
    CashflowRow,
    FifoResult,
    Flow,
    Instrument,
    InstrumentTerms,
    InstrumentType,
    Side,
    Transaction,
)
from .engine import project_cashflows
from .errors import LedgerError
from .fifo import match_lots
from .formatter import (
    format_rate,
    print_cashflows,
    print_collection,
    print_portfolio,
    print_positions,
    print_unrealized,
)
from .portfolio import collection_summary, process_portfolio, unrealized_gain
from .utils import decimal_from_str, format_date_key, parse_date
from .xirr import xirr_from_flows


def parse_percent(value: Any) -> Decimal:
    """Parse a rate given either as a fraction ("0.08") or a percentage ("8", "8%")."""
    text = str(value).strip()
    if text.endswith("%"):
        text = text[:-1]
    try:
        p = decimal_from_str(text)
    except ValueError:
        raise click.BadParameter(f"Invalid percentage: {value}")
    # If the user enters a number like 8, treat it as 8%
    if p > 1:
        p = p / 100
    return p


def _decimal(record: Mapping[str, Any], key: str, default: Optional[str] = None) -> Decimal:
    raw = record.get(key)
    if raw in (None, ""):
        if default is None:
            raise click.BadParameter(f"Missing field '{key}' in {dict(record)}")
        raw = default
    try:
        return decimal_from_str(str(raw))
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def _date(record: Mapping[str, Any], key: str, required: bool = True) -> Optional[date]:
    raw = record.get(key)
    if raw in (None, ""):
        if required:
            raise click.BadParameter(f"Missing field '{key}' in {dict(record)}")
        return None
    try:
        return parse_date(raw)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def parse_transaction(record: Mapping[str, Any], index: int = 0) -> Transaction:
    """Build a ``Transaction`` from a JSON object or CSV row.

    ``side`` may also be given as ``type``. Transactions without an id are
    numbered by their position in the input.
    """
    side_raw = str(record.get("side") or record.get("type") or "").strip().upper()
    try:
        side = Side(side_raw)
    except ValueError:
        raise click.BadParameter(f"Transaction side must be BUY or SELL; got {side_raw!r}")
    try:
        return Transaction(
            id=str(record.get("id") or f"tx-{index + 1}"),
            date=_date(record, "date"),
            side=side,
            quantity=_decimal(record, "quantity"),
            price=_decimal(record, "price"),
            commission=_decimal(record, "commission", "0"),
            currency=str(record.get("currency") or "USD").upper(),
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def parse_terms(record: Mapping[str, Any]) -> InstrumentTerms:
    """Build ``InstrumentTerms`` from a JSON object.

    Maturity and frequency may be absent here; the projector reports them.
    """
    kind_raw = str(record.get("amortization_type") or "BULLET").strip().upper()
    try:
        kind = AmortizationType(kind_raw)
    except ValueError:
        raise click.BadParameter(f"Amortization type must be BULLET, LINEAR or CUSTOM; got {kind_raw!r}")
    frequency = record.get("frequency_months")
    try:
        frequency = int(frequency) if frequency not in (None, "") else None
    except (TypeError, ValueError):
        raise click.BadParameter(f"Invalid frequency_months: {frequency}")
    schedule = [
        AmortizationEntry(payment_date=_date(entry, "payment_date"), percentage=parse_percent(entry.get("percentage")))
        for entry in record.get("custom_schedule") or []
    ]
    return InstrumentTerms(
        maturity_date=_date(record, "maturity_date", required=False),
        frequency_months=frequency,
        coupon_rate=parse_percent(record.get("coupon_rate") or "0"),
        amortization_type=kind,
        emission_date=_date(record, "emission_date", required=False),
        custom_schedule=schedule,
        currency=str(record.get("currency") or "USD").upper(),
    )


def parse_flow(record: Mapping[str, Any]) -> Flow:
    return Flow(date=_date(record, "date"), amount=_decimal(record, "amount"))


def parse_instrument(record: Mapping[str, Any]) -> Instrument:
    """Build an ``Instrument`` with its terms and transactions from a JSON object."""
    type_raw = str(record.get("type") or record.get("instrument_type") or "BOND").strip().upper()
    try:
        instrument_type = InstrumentType(type_raw)
    except ValueError:
        raise click.BadParameter(f"Unknown instrument type: {type_raw}")
    ticker = str(record.get("ticker") or record.get("id") or "")
    if not ticker:
        raise click.BadParameter("Instrument needs a ticker or an id")
    currency = str(record.get("currency") or "USD").upper()
    terms = None
    if record.get("terms"):
        terms = parse_terms({"currency": currency, **record["terms"]})
    return Instrument(
        id=str(record.get("id") or ticker),
        ticker=ticker,
        instrument_type=instrument_type,
        currency=currency,
        transactions=[parse_transaction(r, i) for i, r in enumerate(record.get("transactions") or [])],
        terms=terms,
    )


def load_records(path: Path, key: str) -> List[Dict[str, Any]]:
    """Read a list of records from a JSON or CSV file.

    JSON files may hold either a bare list or an object with the list under
    ``key``.
    """
    suffix = path.suffix.lower()
    if suffix == ".json":
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get(key, [])
        if not isinstance(data, list):
            raise click.BadParameter(f"Expected a list of {key} in {path}")
        return data
    if suffix == ".csv":
        with path.open("r", newline="", encoding="utf-8") as f:
            return list(csv.DictReader(f))
    raise click.BadParameter("Unsupported input format; use .json or .csv")


def load_transactions(path: Path) -> List[Transaction]:
    return [parse_transaction(r, i) for i, r in enumerate(load_records(path, "transactions"))]


def cashflow_to_dict(row: CashflowRow) -> Dict[str, Any]:
    return {
        "date": format_date_key(row.date),
        "type": row.type.value,
        "amount": float(row.amount),
        "currency": row.currency,
        "description": row.description,
        "capital_residual": float(row.capital_residual),
    }


def fifo_to_dict(result: FifoResult) -> Dict[str, Any]:
    """Convert a FIFO match into JSON-serialisable dictionaries."""
    position = result.position
    return {
        "realized_gains": [
            {
                "buy_lot_ref": g.buy_lot_ref,
                "sell_transaction_id": g.sell_transaction_id,
                "date": format_date_key(g.date),
                "quantity": float(g.quantity),
                "buy_price_avg": float(g.buy_price_avg),
                "buy_commission_paid": float(g.buy_commission_paid),
                "sell_price": float(g.sell_price),
                "sell_commission": float(g.sell_commission),
                "gain_abs": float(g.gain_abs),
                "gain_percent": float(g.gain_percent),
                "currency": g.currency,
            }
            for g in result.realized_gains
        ],
        "open_positions": [
            {
                "origin_transaction_id": p.origin_transaction_id,
                "date": format_date_key(p.date),
                "quantity": float(p.quantity),
                "buy_price": float(p.buy_price),
                "buy_commission": float(p.buy_commission),
                "currency": p.currency,
            }
            for p in result.open_positions
        ],
        "position": None
        if position is None
        else {
            "quantity": float(position.quantity),
            "buy_price": float(position.buy_price),
            "buy_commission": float(position.buy_commission),
            "date": format_date_key(position.date),
            "currency": position.currency,
        },
        "total_realized_gain": float(result.total_realized_gain),
    }


def export_cashflows_to_json(path: Path, rows: Iterable[CashflowRow]) -> None:
    with path.open("w", encoding="utf-8") as f:
        json.dump({"cashflows": [cashflow_to_dict(r) for r in rows]}, f, indent=2)


def export_cashflows_to_csv(path: Path, rows: Iterable[CashflowRow]) -> None:
    """Export cashflow rows to a CSV file."""
    header = ["Date", "Type", "Amount", "Currency", "Capital_Residual", "Description"]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for r in rows:
            writer.writerow(
                [
                    format_date_key(r.date),
                    r.type.value,
                    float(r.amount),
                    r.currency,
                    float(r.capital_residual),
                    r.description,
                ]
            )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug messages to stderr")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """An investment ledger: FIFO positions, bond cashflows and XIRR."""
    try:
        settings = LedgerSettings.from_env()
    except ValueError as exc:
        raise click.ClickException(str(exc))
    configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = settings


@cli.command()
@click.argument("tx_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--instrument", "instrument", help="Instrument name used in messages")
@click.option("--price", "price", help="Current market price, to value the open lots")
@click.option("--output", "output", type=str, help="Output file path (.json)")
def positions(tx_file: Path, instrument: Optional[str], price: Optional[str], output: Optional[str]) -> None:
    """Match sells against buys FIFO and show realized gains and open lots."""
    transactions = load_transactions(tx_file)
    try:
        result = match_lots(transactions, instrument=instrument)
    except LedgerError as exc:
        raise click.ClickException(str(exc))
    gain = None
    if price:
        try:
            gain = unrealized_gain(result, decimal_from_str(price))
        except ValueError as exc:
            raise click.BadParameter(str(exc))
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Positions export must use .json extension")
        data = fifo_to_dict(result)
        if gain is not None:
            data["unrealized_gain"] = float(gain.gain_abs)
        with path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        click.echo(f"Positions exported to {path}")
    else:
        print_positions(result)
        if gain is not None:
            print_unrealized(gain)


@cli.command()
@click.argument("terms_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("tx_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--account-for-sells/--buy-only",
    "account_for_sells",
    default=None,
    help="Net out sells when computing holdings on each coupon date (default from settings: buy-only)",
)
@click.option("--as-of", "as_of", help="Split payments into collected and receivable at this date (YYYY-MM-DD)")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.pass_obj
def cashflows(
    settings: LedgerSettings,
    terms_file: Path,
    tx_file: Path,
    account_for_sells: Optional[bool],
    as_of: Optional[str],
    output: Optional[str],
) -> None:
    """Project the interest and amortization payments of a bond or note."""
    with terms_file.open("r", encoding="utf-8") as f:
        terms = parse_terms(json.load(f))
    transactions = load_transactions(tx_file)
    if account_for_sells is None:
        account_for_sells = settings.account_for_sells
    try:
        rows = project_cashflows(
            terms,
            transactions,
            account_for_sells=account_for_sells,
            fallback_window_months=settings.fallback_window_months,
            instrument=terms_file.stem,
        )
    except LedgerError as exc:
        raise click.ClickException(str(exc))
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_cashflows_to_json(path, rows)
        elif path.suffix.lower() == ".csv":
            export_cashflows_to_csv(path, rows)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Cashflows exported to {path}")
        return
    print_cashflows(rows)
    if as_of:
        try:
            cutoff = parse_date(as_of)
        except ValueError as exc:
            raise click.BadParameter(str(exc))
        print_collection(collection_summary(rows, cutoff))


@cli.command()
@click.argument("flows_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def xirr(flows_file: Path) -> None:
    """Compute the annualized return of dated flows (negative = paid out)."""
    flows = [parse_flow(r) for r in load_records(flows_file, "flows")]
    click.echo(f"XIRR: {format_rate(xirr_from_flows(flows))}")


@cli.command()
@click.argument("portfolio_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--account-for-sells/--buy-only", "account_for_sells", default=None)
@click.pass_obj
def portfolio(settings: LedgerSettings, portfolio_file: Path, account_for_sells: Optional[bool]) -> None:
    """Process every instrument of a portfolio file and show consolidated returns.

    Instruments with inconsistent data are reported and skipped.
    """
    instruments = [parse_instrument(r) for r in load_records(portfolio_file, "instruments")]
    if account_for_sells is None:
        account_for_sells = settings.account_for_sells
    report = process_portfolio(
        instruments,
        account_for_sells=account_for_sells,
        fallback_window_months=settings.fallback_window_months,
    )
    print_portfolio(report)


if __name__ == "__main__":
    cli()
