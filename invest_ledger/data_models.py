"""Data models for the investment ledger.

This module defines the enumerations and dataclasses used by the ledger:
transactions, the lots they open, realized gain and open position records,
instrument contract terms and the cashflow rows projected from them. Using
dataclasses makes it easy to construct, inspect and serialize these
structures. Monetary values and quantities are ``Decimal``.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class AmortizationType(str, Enum):
    """How the face value of an instrument is repaid."""

    BULLET = "BULLET"  # everything at maturity
    LINEAR = "LINEAR"  # equal parts every period
    CUSTOM = "CUSTOM"  # explicit payment dates and percentages


class CashflowType(str, Enum):
    INTEREST = "INTEREST"
    AMORTIZATION = "AMORTIZATION"


class CashflowStatus(str, Enum):
    PROJECTED = "PROJECTED"
    PAID = "PAID"


class InstrumentType(str, Enum):
    BOND = "BOND"
    CORPORATE_BOND = "CORPORATE_BOND"
    NOTE = "NOTE"
    TREASURY = "TREASURY"
    STOCK = "STOCK"
    ETF = "ETF"
    CEDEAR = "CEDEAR"
    EQUITY = "EQUITY"
    FCI = "FCI"

    @property
    def has_schedule(self) -> bool:
        """Whether the instrument pays contractual interest and principal."""
        return self in (
            InstrumentType.BOND,
            InstrumentType.CORPORATE_BOND,
            InstrumentType.NOTE,
            InstrumentType.TREASURY,
        )


@dataclass(frozen=True)
class Transaction:
    """A BUY or SELL of an instrument.

    Attributes
    ----------
    id: str
        Identifier of the transaction in the caller's records.
    date: date
        Trade date. Transactions are matched in ascending date order.
    side: Side
        ``Side.BUY`` opens a lot, ``Side.SELL`` consumes lots.
    quantity: Decimal
        Number of units traded (nominal value for bonds). Always positive.
    price: Decimal
        Price per unit, already converted to the ledger currency.
    commission: Decimal
        Total commission paid for the whole transaction.
    """

    id: str
    date: date
    side: Side
    quantity: Decimal
    price: Decimal
    commission: Decimal = Decimal("0")
    currency: str = "USD"

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"Transaction {self.id}: quantity must be positive")
        if self.price < 0:
            raise ValueError(f"Transaction {self.id}: price cannot be negative")
        if self.commission < 0:
            raise ValueError(f"Transaction {self.id}: commission cannot be negative")

    @property
    def gross_amount(self) -> Decimal:
        return self.quantity * self.price


@dataclass
class Lot:
    """Units still held from a single BUY.

    The quantity is reduced by SELLs but never increased. ``price`` and
    ``commission_per_unit`` are kept apart so records can report them
    separately; together they make up the unit cost.
    """

    origin_transaction_id: str
    date: date
    quantity: Decimal
    price: Decimal
    commission_per_unit: Decimal
    currency: str

    @property
    def unit_cost(self) -> Decimal:
        return self.price + self.commission_per_unit


@dataclass(frozen=True)
class RealizedGain:
    """Result of a SELL consuming (part of) one lot.

    ``buy_commission_paid`` and ``sell_commission`` are the commissions
    prorated to ``quantity``. ``gain_percent`` is relative to the cost basis
    of the consumed units, commissions included.
    """

    buy_lot_ref: str
    sell_transaction_id: str
    date: date
    quantity: Decimal
    buy_price_avg: Decimal
    buy_commission_paid: Decimal
    sell_price: Decimal
    sell_commission: Decimal
    gain_abs: Decimal
    gain_percent: Decimal
    currency: str


@dataclass(frozen=True)
class OpenPosition:
    """The remaining units of one lot after all SELLs were matched."""

    origin_transaction_id: str
    date: date
    quantity: Decimal
    buy_price: Decimal
    buy_commission: Decimal  # prorated to the remaining units
    currency: str

    @property
    def cost_basis(self) -> Decimal:
        return self.quantity * self.buy_price + self.buy_commission


@dataclass(frozen=True)
class PositionSummary:
    """Weighted-average view of all open lots of an instrument."""

    quantity: Decimal
    buy_price: Decimal
    buy_commission: Decimal  # weighted average per unit
    date: date  # oldest remaining lot
    currency: str

    @property
    def cost_basis(self) -> Decimal:
        return self.quantity * (self.buy_price + self.buy_commission)


@dataclass
class FifoResult:
    open_positions: List[OpenPosition]
    realized_gains: List[RealizedGain]
    position: Optional[PositionSummary] = None

    @property
    def open_quantity(self) -> Decimal:
        return sum((p.quantity for p in self.open_positions), Decimal("0"))

    @property
    def total_realized_gain(self) -> Decimal:
        return sum((g.gain_abs for g in self.realized_gains), Decimal("0"))


@dataclass(frozen=True)
class AmortizationEntry:
    """A single entry of a custom amortization schedule.

    Attributes
    ----------
    payment_date: date
        Date the issuer repays principal. Only its year and month are used to
        find the matching coupon period.
    percentage: Decimal
        Fraction of the original face value repaid, e.g. ``Decimal("0.25")``
        for 25 %.
    """

    payment_date: date
    percentage: Decimal


@dataclass
class InstrumentTerms:
    """Contract terms of an instrument with a repayment schedule.

    ``maturity_date`` and ``frequency_months`` are optional here because they
    come from external records that may be incomplete; the projector refuses
    to run without them.
    """

    maturity_date: Optional[date]
    frequency_months: Optional[int]
    coupon_rate: Decimal = Decimal("0")  # annual, as a fraction (0.08 = 8 %)
    amortization_type: AmortizationType = AmortizationType.BULLET
    emission_date: Optional[date] = None
    custom_schedule: List[AmortizationEntry] = field(default_factory=list)
    currency: str = "USD"


@dataclass(frozen=True)
class PeriodFactor:
    """Amortization and outstanding face value for one coupon date."""

    date: date
    amortization_factor: Decimal
    residual_factor_at_start: Decimal

    @property
    def residual_factor_at_end(self) -> Decimal:
        return max(Decimal("0"), self.residual_factor_at_start - self.amortization_factor)


@dataclass(frozen=True)
class CashflowRow:
    """A projected payment to the holder.

    ``capital_residual`` is the holder's face value still outstanding once the
    payment date has passed.
    """

    date: date
    amount: Decimal
    currency: str
    type: CashflowType
    description: str
    capital_residual: Decimal


@dataclass(frozen=True)
class Flow:
    """A dated amount for return calculations: negative out, positive in."""

    date: date
    amount: Decimal


@dataclass
class Instrument:
    """An instrument with everything needed to process it in a batch."""

    id: str
    ticker: str
    instrument_type: InstrumentType
    currency: str
    transactions: List[Transaction]
    terms: Optional[InstrumentTerms] = None
