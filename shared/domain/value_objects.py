"""
Common Value Objects

Value objects used across multiple domains:
- Money: Represents monetary amounts with currency, always cent-rounded
- RentalPeriod: Represents a pickup-to-return range of timestamps
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from shared.domain.base import ValueObject

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

def to_decimal(value) -> Decimal:
    """Convert int/str/Decimal to Decimal; floats go through str to avoid binary noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f"Not a numeric amount: {value!r}") from exc

def round_cents(value) -> Decimal:
    """Round half-up to the cent."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)

@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Immutable; the amount is rounded to the cent on construction so
    every intermediate result is already a valid ledger amount.
    """
    amount: Decimal
    currency: str = 'CAD'

    def __post_init__(self):
        object.__setattr__(self, 'amount', round_cents(self.amount))
        if not self.currency:
            raise ValueError("Currency is required")

    @classmethod
    def from_cents(cls, cents: int, currency: str = 'CAD') -> 'Money':
        return cls(Decimal(int(cents)) / 100, currency)

    @property
    def cents(self) -> int:
        """Integer minor units, as payment processors expect."""
        return int((self.amount * 100).to_integral_value(rounding=ROUND_HALF_UP))

    def __str__(self):
        return f"{self.amount:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"

@dataclass(frozen=True)
class RentalPeriod(ValueObject):
    """
    Rental period value object

    Represents a range from start_at (inclusive) to end_at (exclusive).
    Used by the pricing engine to count billable days.
    """
    start_at: datetime
    end_at: datetime

    def __post_init__(self):
        if self.start_at >= self.end_at:
            raise ValueError(f"Start ({self.start_at}) must be before end ({self.end_at})")

    @property
    def rental_days(self) -> int:
        """Billable days: elapsed time over 24h rounded up, minimum one."""
        whole_days, remainder = divmod(self.end_at - self.start_at, timedelta(days=1))
        return max(1, whole_days + (1 if remainder else 0))

    def __str__(self):
        return f"{self.start_at.isoformat()} - {self.end_at.isoformat()}"

    def __repr__(self):
        return f"RentalPeriod({self.start_at!r}, {self.end_at!r})"
