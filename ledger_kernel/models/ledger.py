"""
Module: ledger_kernel.models.ledger
Responsibility: ORM persistence for ledger batches and their individual
    movement lines (ledger entries).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - ledger_batches.reference_number is UNIQUE: the database-level guard
      against two batches sharing a reference.
    - amount is stored at 2 decimal places and is always > 0 (service check
      plus CHECK constraint).
    - posted_at is NULL unless posting_status is POSTED.
    - Per batch, the debit total equals the credit total (enforced by
      LedgerService before insert; totals are denormalized on the batch).

Failure modes:
    - IntegrityError on duplicate reference_number (mapped to
      ReferenceCollisionError by LedgerService).

Audit relevance:
    Ledger entries are the source movements.  POSTED rows are never deleted;
    PENDING rows may be hard-deleted by batch.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import MoneyNumeric

if TYPE_CHECKING:
    from ledger_kernel.models.account import AccountDetail, AccountGeneral


class TransactionType(str, Enum):
    """Movement side of a ledger line."""

    DEBIT = "debit"
    CREDIT = "credit"


class LedgerType(str, Enum):
    """Optional cash classification of a ledger line."""

    CASH_IN = "cash_in"
    CASH_OUT = "cash_out"


class PostingStatus(str, Enum):
    """Posting status shared by ledger entries and journal entries."""

    PENDING = "pending"
    POSTED = "posted"


class LedgerBatch(TrackedBase):
    """
    A set of ledger lines submitted together under one reference number.

    Guarantees:
        - reference_number is unique across all batches.
        - total_debit == total_credit at insert time.
    """

    __tablename__ = "ledger_batches"
    __table_args__ = (
        UniqueConstraint("reference_number", name="uq_ledger_batch_reference"),
    )

    reference_number: Mapped[str] = mapped_column(String(40), nullable=False)

    line_count: Mapped[int] = mapped_column(Integer, nullable=False)

    total_debit: Mapped[Decimal] = mapped_column(MoneyNumeric(), nullable=False)
    total_credit: Mapped[Decimal] = mapped_column(MoneyNumeric(), nullable=False)

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="batch",
        order_by="LedgerEntry.line_index",
    )

    def __repr__(self) -> str:
        return f"<LedgerBatch {self.reference_number}: {self.line_count} lines>"


class LedgerEntry(TrackedBase):
    """
    A single debit or credit movement against a Detail account.

    Contract:
        account_general_id must be the parent of account_detail_id; intake
        checks this for every line before insert.
    """

    __tablename__ = "ledger_entries"
    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_ledger_entry_amount_positive"),
        Index("idx_ledger_entry_date_status", "ledger_date", "posting_status"),
        Index("idx_ledger_entry_reference", "reference_number"),
        Index("idx_ledger_entry_detail", "account_detail_id"),
        Index("idx_ledger_entry_general", "account_general_id"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_batches.id"),
        nullable=False,
    )

    reference_number: Mapped[str] = mapped_column(String(40), nullable=False)

    # Position of the line in the submitted batch
    line_index: Mapped[int] = mapped_column(Integer, nullable=False)

    amount: Mapped[Decimal] = mapped_column(MoneyNumeric(), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    account_detail_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts_detail.id"),
        nullable=False,
    )
    account_general_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts_general.id"),
        nullable=False,
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        String(10),
        nullable=False,
    )

    ledger_type: Mapped[LedgerType | None] = mapped_column(
        String(10),
        nullable=True,
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

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    batch: Mapped[LedgerBatch] = relationship(back_populates="entries")

    account_detail: Mapped["AccountDetail"] = relationship()
    account_general: Mapped["AccountGeneral"] = relationship()

    @property
    def is_posted(self) -> bool:
        return self.posting_status == PostingStatus.POSTED

    @property
    def is_debit(self) -> bool:
        return self.transaction_type == TransactionType.DEBIT

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.reference_number}#{self.line_index} "
            f"{self.transaction_type} {self.amount} [{self.posting_status}]>"
        )
