"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the two-level chart of accounts: General
    (parent) accounts and the Detail (child) accounts that ledger lines post to.
Architecture position: Kernel > Models.  May import from db/ and the pure
    domain.accounts module only.

Invariants enforced:
    - account_number is unique per table.  Active accounts never share a
      number because soft-delete rewrites the stored number to its tombstone
      form before setting deleted_at.
    - A Detail account always references exactly one General account
      (account_general_id is NOT NULL with a foreign key).
    - amount_credit / amount_debit change only by delta through
      AccountService; accumulation_amount_* is overwritten only by period
      closing.

Failure modes:
    - IntegrityError from the database on a duplicate stored number (the
      service checks first and raises AccountNumberExistsError).

Audit relevance:
    Balance columns are the realized result of posting.  Every change is
    stamped with updated_by_id through TrackedBase.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import MoneyNumeric
from ledger_kernel.domain.accounts import AccountState, parse_account_state


class AccountCategory(str, Enum):
    """Account category (statement section)."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class ReportType(str, Enum):
    """Report grouping: balance sheet or result (profit and loss)."""

    BALANCE_SHEET = "balance_sheet"
    RESULT = "result"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


class AccountBase(TrackedBase):
    """
    Columns shared by General and Detail accounts.

    Guarantees:
        - Balances default to 0.00 and are never NULL.
        - deleted_at is NULL for active accounts.
    """

    __abstract__ = True

    account_number: Mapped[str] = mapped_column(String(80), nullable=False)

    account_name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_category: Mapped[AccountCategory] = mapped_column(
        String(20),
        nullable=False,
    )

    report_type: Mapped[ReportType] = mapped_column(
        String(20),
        nullable=False,
    )

    normal_balance: Mapped[NormalBalance] = mapped_column(
        String(10),
        nullable=False,
    )

    # Cumulative balances (delta-only)
    amount_credit: Mapped[Decimal] = mapped_column(
        MoneyNumeric(),
        nullable=False,
        default=Decimal("0.00"),
    )
    amount_debit: Mapped[Decimal] = mapped_column(
        MoneyNumeric(),
        nullable=False,
        default=Decimal("0.00"),
    )

    # Period totals (overwritten by period closing only)
    accumulation_amount_credit: Mapped[Decimal] = mapped_column(
        MoneyNumeric(),
        nullable=False,
        default=Decimal("0.00"),
    )
    accumulation_amount_debit: Mapped[Decimal] = mapped_column(
        MoneyNumeric(),
        nullable=False,
        default=Decimal("0.00"),
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    deleted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    tombstone_suffix: Mapped[str | None] = mapped_column(String(16), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT

    @property
    def is_credit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.CREDIT

    @property
    def is_result_account(self) -> bool:
        return self.report_type == ReportType.RESULT

    @property
    def state(self) -> AccountState:
        """Lifecycle state as a tagged value (ActiveAccount / DeletedAccount)."""
        return parse_account_state(
            self.account_number,
            deleted=self.deleted_at is not None,
            tombstone_suffix=self.tombstone_suffix,
        )


class AccountGeneral(AccountBase):
    """A General (parent) account.  Ledger lines never post to it directly."""

    __tablename__ = "accounts_general"
    __table_args__ = (
        UniqueConstraint("account_number", name="uq_account_general_number"),
        Index("idx_account_general_deleted", "deleted_at"),
    )

    details: Mapped[list["AccountDetail"]] = relationship(
        back_populates="general",
    )

    def __repr__(self) -> str:
        return f"<AccountGeneral {self.account_number}: {self.account_name}>"


class AccountDetail(AccountBase):
    """A Detail (child) account: the target of ledger lines and journal entries."""

    __tablename__ = "accounts_detail"
    __table_args__ = (
        UniqueConstraint("account_number", name="uq_account_detail_number"),
        Index("idx_account_detail_general", "account_general_id"),
        Index("idx_account_detail_deleted", "deleted_at"),
    )

    account_general_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts_general.id"),
        nullable=False,
    )

    general: Mapped[AccountGeneral] = relationship(back_populates="details")

    def __repr__(self) -> str:
        return f"<AccountDetail {self.account_number}: {self.account_name}>"
