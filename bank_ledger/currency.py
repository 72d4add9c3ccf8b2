"""
Money Module

Decimal money values with currency precision for every balance, amount and
interest figure in the ledger. NEVER uses float for monetary values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from dataclasses import dataclass
from typing import Union
from enum import Enum
import re

# Set global decimal context for financial precision
getcontext().prec = 28


class Currency(Enum):
    """ISO 4217 currency codes with precision info"""
    BWP = ("BWP", 2)  # Botswana Pula, 2 decimal places

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision


AmountLike = Union["Money", Decimal, int, float, str]


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation with currency and proper precision.
    Amounts are rounded half-up to the currency precision on creation.
    """
    amount: Decimal
    currency: Currency = Currency.BWP

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))

        rounded = self.amount.quantize(
            Decimal('0.1') ** self.currency.precision,
            rounding=ROUND_HALF_UP
        )
        object.__setattr__(self, 'amount', rounded)

    @classmethod
    def zero(cls, currency: Currency = Currency.BWP) -> 'Money':
        return cls(Decimal('0'), currency)

    @classmethod
    def of(cls, value: AmountLike, currency: Currency = Currency.BWP) -> 'Money':
        """Coerce a Money, Decimal, int, float or string into Money"""
        if isinstance(value, Money):
            return value
        return cls(parse_amount(value), currency)

    def _check_currency(self, other: 'Money') -> None:
        if self.currency != other.currency:
            raise ValueError(f"Cannot combine {self.currency.code} and {other.currency.code}")

    def __add__(self, other: 'Money') -> 'Money':
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, multiplier: Decimal) -> 'Money':
        if not isinstance(multiplier, Decimal):
            multiplier = Decimal(str(multiplier))
        return Money(self.amount * multiplier, self.currency)

    def __neg__(self) -> 'Money':
        return Money(-self.amount, self.currency)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return False
        return self.amount == other.amount and self.currency == other.currency

    def __hash__(self) -> int:
        return hash((self.amount, self.currency))

    def __lt__(self, other: 'Money') -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        self._check_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        self._check_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        self._check_currency(other)
        return self.amount >= other.amount

    def is_zero(self) -> bool:
        return self.amount == Decimal('0')

    def is_positive(self) -> bool:
        return self.amount > Decimal('0')

    def is_negative(self) -> bool:
        return self.amount < Decimal('0')

    def to_string(self) -> str:
        """Format for display, e.g. 'BWP 1,500.00'"""
        return f"{self.currency.code} {self.amount:,.{self.currency.precision}f}"

    def __str__(self) -> str:
        return self.to_string()


def decimal_from_string(value: str) -> Decimal:
    """
    Convert user-entered text to Decimal, tolerating a currency prefix,
    whitespace and thousands separators.

    Raises:
        ValueError: If the text is not a number
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    clean_value = re.sub(r'(?i)^\s*(bwp|p)\s*', '', value).strip()
    clean_value = clean_value.replace(',', '')
    if not re.fullmatch(r'[+-]?(\d+(\.\d*)?|\.\d+)', clean_value):
        raise ValueError(f"Cannot convert '{value}' to Decimal")

    return Decimal(clean_value)


def parse_amount(value: AmountLike) -> Decimal:
    """
    Turn service input into a finite Decimal.

    Floats go through str() so 0.1 stays 0.1. Booleans are rejected even
    though they are ints.
    """
    if isinstance(value, Money):
        return value.amount
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Cannot convert {value!r} to an amount")
    if isinstance(value, str):
        result = decimal_from_string(value)
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Cannot convert {value!r} to an amount")
    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    return result
