"""
Module: ledger_kernel.models.period_result
Responsibility: ORM persistence for the yearly net result (revenue minus
    expense) booked against the equity account.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One row per year (unique constraint).
    - is_closed is one-way: once True, PeriodClosingService and
      AccountService refuse to change the amount or the linked equity
      account's accumulation fields.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import MoneyNumeric


class PeriodResult(TrackedBase):
    """Net result of one year and the equity account that carries it."""

    __tablename__ = "period_results"
    __table_args__ = (UniqueConstraint("year", name="uq_period_result_year"),)

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    # Signed: positive is a surplus, negative a deficit
    amount: Mapped[Decimal] = mapped_column(MoneyNumeric(), nullable=False)

    account_detail_number: Mapped[str] = mapped_column(String(80), nullable=False)
    account_general_number: Mapped[str] = mapped_column(String(80), nullable=False)

    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        state = "closed" if self.is_closed else "open"
        return f"<PeriodResult {self.year}: {self.amount} ({state})>"
