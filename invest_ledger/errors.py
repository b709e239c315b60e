"""Exceptions raised by the ledger calculations.

All of them derive from ``LedgerError`` (itself a ``ValueError``) so callers
that already guard input handling with ``except ValueError`` keep working.
Each error concerns a single instrument; batch callers catch it, log it and
move on to the next instrument.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional, Sequence


class LedgerError(ValueError):
    """Base class for per-instrument calculation failures."""


class InsufficientPositionError(LedgerError):
    """A SELL consumes more units than the open lots hold."""

    def __init__(self, instrument: Optional[str], transaction_id: str, unsatisfied_quantity: Decimal) -> None:
        self.instrument = instrument
        self.transaction_id = transaction_id
        self.unsatisfied_quantity = unsatisfied_quantity
        super().__init__(
            f"Sell {transaction_id} on {instrument or 'instrument'} exceeds the open position "
            f"by {unsatisfied_quantity}"
        )


class MissingTermsError(LedgerError):
    """Contract terms required for a payment schedule are absent."""

    def __init__(self, instrument: Optional[str], missing_fields: Sequence[str]) -> None:
        self.instrument = instrument
        self.missing_fields = tuple(missing_fields)
        super().__init__(
            f"{instrument or 'Instrument'} is missing required terms: {', '.join(self.missing_fields)}"
        )


class ScheduleOverflowError(LedgerError):
    """The payment schedule walk did not terminate within the period limit."""

    def __init__(self, instrument: Optional[str], max_periods: int) -> None:
        self.instrument = instrument
        self.max_periods = max_periods
        super().__init__(
            f"Payment schedule for {instrument or 'instrument'} exceeds {max_periods} periods"
        )
