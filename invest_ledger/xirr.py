"""Internal rate of return for irregularly dated cash flows (XIRR).

The rate solves ``sum(a_i / (1 + r) ** (t_i / 365)) == 0`` where ``t_i`` is the
number of days between the first flow and flow ``i``. Newton-Raphson is run
from a fixed list of seeds because a single starting guess can diverge or land
on a meaningless root.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .data_models import Flow
from .utils import days_between

logger = logging.getLogger(__name__)

XIRR_SEEDS: Tuple[float, ...] = (0.05, 0.1, 0.01, -0.1, 0.2)
MAX_ITERATIONS = 200
DERIVATIVE_FLOOR = 1e-12
STEP_TOLERANCE = 1e-9
NPV_TOLERANCE = 1e-4
RESULT_DECIMALS = 10

Number = Union[int, float, Decimal]


def _npv(rate: float, amounts: Sequence[float], years: Sequence[float]) -> float:
    return sum(a / (1 + rate) ** t for a, t in zip(amounts, years))


def _npv_derivative(rate: float, amounts: Sequence[float], years: Sequence[float]) -> float:
    return sum(-t * a / (1 + rate) ** (t + 1) for a, t in zip(amounts, years))


def _newton(seed: float, amounts: Sequence[float], years: Sequence[float]) -> Optional[float]:
    """Run Newton-Raphson from ``seed``; return the rate if it prices the flows to zero."""
    rate = seed
    try:
        for _ in range(MAX_ITERATIONS):
            slope = _npv_derivative(rate, amounts, years)
            if abs(slope) < DERIVATIVE_FLOOR:
                break
            new_rate = rate - _npv(rate, amounts, years) / slope
            if not math.isfinite(new_rate) or new_rate <= -1:
                return None
            if abs(new_rate - rate) < STEP_TOLERANCE:
                rate = new_rate
                break
            rate = new_rate
        if math.isfinite(rate) and abs(_npv(rate, amounts, years)) < NPV_TOLERANCE:
            return rate
    except (OverflowError, ZeroDivisionError):
        return None
    return None


def solve_xirr(amounts: Sequence[Number], dates: Sequence[date]) -> Optional[float]:
    """Return the annualized rate of return of the flows, or ``None``.

    ``None`` means the rate is indeterminate: fewer than two flows, amounts
    and dates of different lengths, flows that are all of one sign, or no seed
    converging. The function never raises for such input.

    >>> from datetime import date
    >>> solve_xirr([-100, 110], [date(2023, 1, 1), date(2024, 1, 1)])
    0.1
    """
    if len(amounts) < 2 or len(amounts) != len(dates):
        return None
    values: List[float] = [float(a) for a in amounts]
    if not any(v > 0 for v in values) or not any(v < 0 for v in values):
        return None

    start = dates[0]
    years = [days_between(start, d) / 365 for d in dates]

    for seed in XIRR_SEEDS:
        rate = _newton(seed, values, years)
        if rate is not None:
            return round(rate, RESULT_DECIMALS)
    logger.debug("XIRR did not converge for %d flows", len(values))
    return None


def xirr_from_flows(flows: Iterable[Flow]) -> Optional[float]:
    """Convenience wrapper around :func:`solve_xirr` for ``Flow`` objects."""
    flows = list(flows)
    return solve_xirr([f.amount for f in flows], [f.date for f in flows])
