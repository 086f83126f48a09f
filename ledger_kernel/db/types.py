"""
Module: ledger_kernel.db.types
Responsibility: Column types and rounding helpers for monetary values.
    Centralizes precision and rounding so that every model and service uses
    identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Fixed precision: MONEY_DECIMAL_PLACES is the canonical scale of every
      stored amount.  round_money() is the ONLY sanctioned rounding function.
    - No floats anywhere in the kernel.  All amounts are Decimal.

Failure modes:
    - decimal.InvalidOperation if a non-numeric value reaches the storage
      boundary (callers convert through domain.values.Money first).
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator

MONEY_DECIMAL_PLACES = 2
MONEY_PRECISION = 18
DEFAULT_ROUNDING = ROUND_HALF_UP

# Account numbers, including the tombstone suffix added on soft-delete
AccountNumber = Annotated[str, String(80)]

# Batch reference numbers
ReferenceNumber = Annotated[str, String(40)]


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the configured number of decimal places.

    This is the ONLY sanctioned rounding function for monetary values.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "0"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


class MoneyNumeric(TypeDecorator):
    """
    Fixed-scale monetary column.

    NUMERIC(18, 2) on PostgreSQL.  SQLite has no exact decimal storage, so
    there the value travels as its canonical string form and is parsed back
    into a Decimal on load.  Every bound value is rounded with round_money().
    """

    impl = Numeric(MONEY_PRECISION, MONEY_DECIMAL_PLACES, asdecimal=True)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(40))
        return dialect.type_descriptor(
            Numeric(MONEY_PRECISION, MONEY_DECIMAL_PLACES, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        rounded = round_money(Decimal(value))
        if dialect.name == "sqlite":
            return str(rounded)
        return rounded

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return round_money(Decimal(str(value)))
