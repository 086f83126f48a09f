"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries: the per Detail account,
    per date aggregates produced by a posting run.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One row per (Detail account, ledger_date) per posting run; the sum of
      total_debit / total_credit over a run equals the ledger amounts that
      produced it.
    - account_detail_number / account_general_number are soft foreign keys
      by account number.  The database does not enforce them; every reader
      resolves the number among active accounts and raises
      AccountDetailNotFoundError when it does not resolve.
    - posting_status PENDING means "aggregated, balances not applied";
      POSTED means the Detail account balances include these totals.

Audit relevance:
    Journal entries are the only input to balance application.  A PENDING
    entry may be deleted by unposting; a POSTED one must be reverted first.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase
from ledger_kernel.db.types import MoneyNumeric
from ledger_kernel.models.ledger import PostingStatus


class JournalEntry(TrackedBase):
    """Aggregated debit/credit totals for one Detail account on one date."""

    __tablename__ = "journal_entries"
    __table_args__ = (
        Index("idx_journal_date_status", "ledger_date", "posting_status"),
        Index("idx_journal_detail_number", "account_detail_number"),
    )

    account_detail_number: Mapped[str] = mapped_column(String(80), nullable=False)
    account_general_number: Mapped[str] = mapped_column(String(80), nullable=False)

    total_debit: Mapped[Decimal] = mapped_column(
        MoneyNumeric(),
        nullable=False,
        default=Decimal("0.00"),
    )
    total_credit: Mapped[Decimal] = mapped_column(
        MoneyNumeric(),
        nullable=False,
        default=Decimal("0.00"),
    )

    ledger_date: Mapped[date] = mapped_column(Date, nullable=False)

    posting_status: Mapped[PostingStatus] = mapped_column(
        String(10),
        nullable=False,
        default=PostingStatus.PENDING.value,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_posted(self) -> bool:
        return self.posting_status == PostingStatus.POSTED

    def __repr__(self) -> str:
        return (
            f"<JournalEntry {self.account_detail_number} {self.ledger_date} "
            f"D={self.total_debit} C={self.total_credit} [{self.posting_status}]>"
        )
