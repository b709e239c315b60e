"""Cashflow projection engine for instruments with a repayment schedule.

This module builds the issuer's coupon calendar for a bond or note, spreads
the repayment of face value over it (bullet, linear or a custom schedule) and
turns it into the interest and amortization payments a holder receives given
their transaction history. Results are returned as a list of ``CashflowRow``
objects; nothing is persisted here.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, getcontext
from typing import Iterable, List, Optional, Sequence

from .data_models import (
    AmortizationType,
    CashflowRow,
    CashflowType,
    InstrumentTerms,
    PeriodFactor,
    Side,
    Transaction,
)
from .errors import MissingTermsError, ScheduleOverflowError
from .utils import add_months, days_between, format_date_key, same_year_month

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)

# Upper bound on coupon periods; 500 monthly coupons is over 40 years.
MAX_SCHEDULE_PERIODS = 500

# How far back the calendar goes when the emission date is unknown.
FALLBACK_WINDOW_MONTHS = 24

DAYS_PER_YEAR = Decimal(365)

_ZERO = Decimal("0")
_ONE = Decimal("1")


def _require_terms(terms: InstrumentTerms, instrument: Optional[str]) -> None:
    missing = []
    if terms.maturity_date is None:
        missing.append("maturity_date")
    if not terms.frequency_months or terms.frequency_months <= 0:
        missing.append("frequency_months")
    if missing:
        raise MissingTermsError(instrument, missing)


def build_payment_dates(
    terms: InstrumentTerms,
    fallback_window_months: int = FALLBACK_WINDOW_MONTHS,
    instrument: Optional[str] = None,
) -> List[date]:
    """Return the coupon dates of an instrument in ascending order.

    Dates are generated backwards from maturity, each one ``frequency_months``
    before the previous, so a month end clamped once (Aug 31 to Feb 28) stays
    clamped further back. The walk stops once the next date would fall before
    the emission date, or before ``maturity - fallback_window_months`` when
    the emission date is unknown; a date landing exactly on that boundary is
    kept. Maturity is always part of the schedule.
    """
    _require_terms(terms, instrument)
    maturity = terms.maturity_date
    step = terms.frequency_months
    stop = terms.emission_date or add_months(maturity, -fallback_window_months)

    dates: List[date] = []
    current = maturity
    for _ in range(MAX_SCHEDULE_PERIODS):
        dates.append(current)
        previous = add_months(current, -step)
        if previous < stop:
            break
        current = previous
    else:
        raise ScheduleOverflowError(instrument, MAX_SCHEDULE_PERIODS)
    dates.reverse()
    return dates


def _bullet(count: int) -> List[Decimal]:
    factors = [_ZERO] * count
    factors[-1] = _ONE
    return factors


def _linear(count: int) -> List[Decimal]:
    part = _ONE / Decimal(count)
    factors = [part] * count
    # last period takes the rounding remainder so the factors add up to one
    factors[-1] = _ONE - part * (count - 1)
    return factors


def _custom(dates: Sequence[date], terms: InstrumentTerms, instrument: Optional[str]) -> List[Decimal]:
    factors = [_ZERO] * len(dates)
    matched = 0
    for entry in terms.custom_schedule:
        index = next((i for i, d in enumerate(dates) if same_year_month(d, entry.payment_date)), None)
        if index is None:
            logger.warning(
                "No coupon period matches amortization entry %s for %s; entry ignored",
                format_date_key(entry.payment_date),
                instrument or "instrument",
            )
            continue
        factors[index] += entry.percentage
        matched += 1
    if not matched:
        logger.warning(
            "No custom amortization entries matched for %s; repaying at maturity",
            instrument or "instrument",
        )
        return _bullet(len(dates))
    return factors


def compute_period_factors(
    dates: Sequence[date],
    terms: InstrumentTerms,
    instrument: Optional[str] = None,
) -> List[PeriodFactor]:
    """Assign an amortization factor to every coupon date and roll the residual.

    The residual at the start of a period is the fraction of face value on
    which that period's interest accrues. It begins at one and falls by each
    period's amortization, never below zero.
    """
    if not dates:
        return []
    kind = terms.amortization_type
    if kind is AmortizationType.BULLET:
        factors = _bullet(len(dates))
    elif kind is AmortizationType.LINEAR:
        factors = _linear(len(dates))
    elif kind is AmortizationType.CUSTOM:
        factors = _custom(dates, terms, instrument)
    else:
        raise ValueError(f"Unknown amortization type: {kind}")

    periods: List[PeriodFactor] = []
    residual = _ONE
    for dt, factor in zip(dates, factors):
        periods.append(PeriodFactor(date=dt, amortization_factor=factor, residual_factor_at_start=residual))
        residual = max(_ZERO, residual - factor)
    return periods


def holdings_on(transactions: Iterable[Transaction], on: date, account_for_sells: bool = False) -> Decimal:
    """Units held on ``on``.

    By default only BUYs dated on or before ``on`` are counted, which is how
    projections have always been computed; SELLs are subtracted only when
    ``account_for_sells`` is set.
    """
    total = _ZERO
    for tx in transactions:
        if tx.date > on:
            continue
        if tx.side is Side.BUY:
            total += tx.quantity
        elif account_for_sells:
            total -= tx.quantity
    return total


def project_cashflows(
    terms: InstrumentTerms,
    transactions: Iterable[Transaction],
    account_for_sells: bool = False,
    fallback_window_months: int = FALLBACK_WINDOW_MONTHS,
    instrument: Optional[str] = None,
) -> List[CashflowRow]:
    """Project the interest and amortization payments owed to a holder.

    Parameters
    ----------
    terms: InstrumentTerms
        Contract terms of the instrument. ``maturity_date`` and
        ``frequency_months`` are required.
    transactions: Iterable[Transaction]
        The holder's transactions on the instrument.
    account_for_sells: bool
        Subtract SELLs when computing the holdings on each coupon date.
    fallback_window_months: int
        Length of the calendar when the emission date is unknown.
    instrument: Optional[str]
        Name used in log messages and errors.

    Returns
    -------
    List[CashflowRow]
        For every coupon date on which the holder owns units, an INTEREST row
        (when interest is positive) followed by an AMORTIZATION row (when
        principal is repaid).

    Raises
    ------
    MissingTermsError
        If maturity or frequency are absent.
    ScheduleOverflowError
        If the coupon calendar exceeds ``MAX_SCHEDULE_PERIODS``.
    """
    transactions = list(transactions)
    dates = build_payment_dates(terms, fallback_window_months, instrument)
    periods = compute_period_factors(dates, terms, instrument)
    rate = terms.coupon_rate

    rows: List[CashflowRow] = []
    for i, period in enumerate(periods):
        holdings = holdings_on(transactions, period.date, account_for_sells)
        if holdings <= 0:
            continue

        if i > 0:
            previous = periods[i - 1].date
        else:
            previous = terms.emission_date or add_months(period.date, -terms.frequency_months)
        days = max(0, days_between(previous, period.date))

        residual = period.residual_factor_at_start
        capital_residual = holdings * period.residual_factor_at_end
        interest = holdings * residual * rate * Decimal(days) / DAYS_PER_YEAR
        amortization = holdings * period.amortization_factor

        if interest > 0:
            rows.append(
                CashflowRow(
                    date=period.date,
                    amount=interest,
                    currency=terms.currency,
                    type=CashflowType.INTEREST,
                    description=f"Interest ({residual * 100:.0f}% residual value)",
                    capital_residual=capital_residual,
                )
            )
        if amortization > 0:
            rows.append(
                CashflowRow(
                    date=period.date,
                    amount=amortization,
                    currency=terms.currency,
                    type=CashflowType.AMORTIZATION,
                    description=f"Amortization ({period.amortization_factor * 100:.2f}%)",
                    capital_residual=capital_residual,
                )
            )
    return rows
