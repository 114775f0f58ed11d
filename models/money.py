"""
Fixed-precision money types.

Money is the only type used for business logic and persistence. It is always
expressed in the base currency, so arithmetic can never mix currencies.
DisplayAmount is derived from Money for presentation and has no arithmetic.
"""

from decimal import Decimal, ROUND_HALF_UP

from pydantic import BaseModel, ConfigDict, field_validator

import config

CENT = Decimal("0.01")
RATE_PRECISION = Decimal("0.000001")


def to_decimal(value) -> Decimal:
    """
    Convert int/str/float/Decimal to Decimal without binary float drift.

    Floats are routed through str() so 19.99 stays 19.99 instead of
    19.989999999999998436805981327779591083526611328125.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_cents(value) -> Decimal:
    """Round half-up to whole cents."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class Money(BaseModel):
    """
    Amount in the base currency, always rounded to cents.

    Example:
        >>> Money.of("19.99") * 3
        Money(amount=Decimal('59.97'), currency='USD')
        >>> (Money.of(10) - Money.of(25)).floor_zero()
        Money(amount=Decimal('0.00'), currency='USD')
    """
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    currency: str = config.BASE_CURRENCY

    @field_validator('amount', mode='before')
    @classmethod
    def normalize_amount(cls, v):
        return quantize_cents(v)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        if v.upper() != config.BASE_CURRENCY:
            raise ValueError(f"Money must be in base currency {config.BASE_CURRENCY}, got {v}")
        return v.upper()

    @classmethod
    def of(cls, value) -> "Money":
        return cls(amount=value)

    @classmethod
    def zero(cls) -> "Money":
        return cls(amount=Decimal("0"))

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(amount=self.amount + other.amount)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(amount=self.amount - other.amount)

    def __mul__(self, factor) -> "Money":
        if isinstance(factor, Money):
            return NotImplemented
        return Money(amount=self.amount * to_decimal(factor))

    __rmul__ = __mul__

    def __lt__(self, other: "Money") -> bool:
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        return self.amount >= other.amount

    def percent(self, percentage) -> "Money":
        """Return `percentage`% of this amount, e.g. Money.of(120).percent(10) == Money.of(12)."""
        return Money(amount=self.amount * to_decimal(percentage) / Decimal(100))

    def floor_zero(self) -> "Money":
        return self if self.amount >= 0 else Money.zero()

    def is_zero(self) -> bool:
        return self.amount == 0

    def is_positive(self) -> bool:
        return self.amount > 0

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"


def money_sum(amounts) -> Money:
    return sum(amounts, Money.zero())


class DisplayAmount(BaseModel):
    """
    Presentation-only amount in the shopper's currency.

    Recomputed on every render from the latest rate; never persisted as a
    settlement value and never fed back into pricing.
    """
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    currency: str
    symbol: str
    rate: Decimal

    @property
    def formatted(self) -> str:
        return f"{self.symbol}{self.amount:.2f}"
