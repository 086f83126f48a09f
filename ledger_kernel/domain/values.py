"""
Values -- Immutable monetary value object.

Responsibility:
    Provides Money, the fixed-precision amount used by every arithmetic step
    of intake, posting, balance application and period closing.  Replaces
    raw Decimal / float wherever an amount appears in domain or service logic.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imports only ledger_kernel.db.types (precision constants) and
    ledger_kernel.exceptions.

Invariants enforced:
    - No floating point: floats are converted through str() before they
      reach Decimal, so binary drift never enters an amount.
    - Fixed precision: equality, hashing and str() all work on the amount
      rounded to MONEY_DECIMAL_PLACES with ROUND_HALF_UP.

Failure modes:
    - InvalidAmountError on unparsable input, NaN / Infinity, booleans, or
      amounts too large for the NUMERIC money column.

Audit relevance:
    Batch balance checks compare Money sums, so two batches that differ only
    below the second decimal place are treated identically everywhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable

from ledger_kernel.db.types import (
    DEFAULT_ROUNDING,
    MONEY_DECIMAL_PLACES,
    MONEY_PRECISION,
    round_money,
)
from ledger_kernel.exceptions import InvalidAmountError

_ZERO = Decimal("0")

# Integer digits that fit a NUMERIC(MONEY_PRECISION, MONEY_DECIMAL_PLACES) column
MAX_INTEGER_DIGITS = MONEY_PRECISION - MONEY_DECIMAL_PLACES
_MONEY_LIMIT = Decimal(10) ** MAX_INTEGER_DIGITS


@dataclass(frozen=True, slots=True, eq=False)
class Money:
    """
    Fixed-precision monetary amount (single currency).

    Contract:
        Construct through Money.of(); the raw constructor requires a finite
        Decimal.

    Guarantees:
        - Immutable and hashable.
        - Two values are equal when they are equal after rounding to two
          decimal places.
        - Arithmetic never rounds implicitly; call round() or rely on the
          storage boundary (MoneyNumeric) to quantize.
    """

    amount: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal) or not self.amount.is_finite():
            raise InvalidAmountError(self.amount, "amount must be a finite Decimal")

    @classmethod
    def of(cls, value: Money | Decimal | int | str | float | None) -> Money:
        """
        Parse a value into Money.

        None and empty / blank strings become zero.  Floats go through str()
        first.  Anything that does not parse, or that needs more than
        MAX_INTEGER_DIGITS integer digits, raises InvalidAmountError.
        """
        if isinstance(value, Money):
            return value
        if value is None:
            return cls(_ZERO)
        if isinstance(value, bool):
            raise InvalidAmountError(value, "booleans are not amounts")
        if isinstance(value, Decimal):
            parsed = value
        elif isinstance(value, (int, float)):
            try:
                parsed = Decimal(str(value))
            except (InvalidOperation, ValueError) as exc:
                raise InvalidAmountError(value) from exc
        elif isinstance(value, str):
            text = value.strip().replace(",", "")
            if not text:
                return cls(_ZERO)
            try:
                parsed = Decimal(text)
            except (InvalidOperation, ValueError) as exc:
                raise InvalidAmountError(value) from exc
        else:
            raise InvalidAmountError(value, f"unsupported type {type(value).__name__}")

        if not parsed.is_finite():
            raise InvalidAmountError(value, "amount must be finite")
        out_of_range = f"amount exceeds {MAX_INTEGER_DIGITS} integer digits"
        if parsed and parsed.adjusted() >= MAX_INTEGER_DIGITS:
            raise InvalidAmountError(value, out_of_range)
        try:
            rounded = round_money(parsed)
        except InvalidOperation as exc:
            raise InvalidAmountError(value, out_of_range) from exc
        if rounded.copy_abs() >= _MONEY_LIMIT:
            raise InvalidAmountError(value, out_of_range)
        return cls(parsed)

    @classmethod
    def zero(cls) -> Money:
        return cls(_ZERO)

    @classmethod
    def sum(cls, values: Iterable[Money | Decimal | int | str | None]) -> Money:
        """Sum any iterable of Money-coercible values."""
        total = _ZERO
        for value in values:
            total += cls.of(value).amount
        return cls(total)

    @property
    def is_zero(self) -> bool:
        return self.rounded_amount == _ZERO

    @property
    def is_positive(self) -> bool:
        return self.rounded_amount > _ZERO

    @property
    def is_negative(self) -> bool:
        return self.rounded_amount < _ZERO

    @property
    def rounded_amount(self) -> Decimal:
        return round_money(self.amount, MONEY_DECIMAL_PLACES, DEFAULT_ROUNDING)

    def round(self) -> Money:
        """Return a new Money rounded to two places, ROUND_HALF_UP."""
        return Money(self.rounded_amount)

    def as_display(self) -> float:
        """Rounded amount as a float. For display only, never for arithmetic."""
        return float(self.rounded_amount)

    def split_signed(self) -> tuple[Money, Money]:
        """
        Split a signed amount into (credit_part, debit_part).

        A positive amount lands on the credit side, a negative one on the
        debit side as its absolute value.  The other side is zero.
        """
        rounded = self.round()
        if rounded.amount > _ZERO:
            return rounded, Money.zero()
        if rounded.amount < _ZERO:
            return Money.zero(), -rounded
        return Money.zero(), Money.zero()

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount + other.amount)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount - other.amount)

    def __neg__(self) -> Money:
        return Money(-self.amount)

    def __abs__(self) -> Money:
        return Money(abs(self.amount))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.rounded_amount == other.rounded_amount

    def __hash__(self) -> int:
        return hash(self.rounded_amount)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.rounded_amount < other.rounded_amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.rounded_amount <= other.rounded_amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.rounded_amount > other.rounded_amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.rounded_amount >= other.rounded_amount

    def __str__(self) -> str:
        return str(self.rounded_amount)

    def __repr__(self) -> str:
        return f"Money({str(self.rounded_amount)!r})"
