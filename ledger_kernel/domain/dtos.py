"""
DTOs -- Immutable data transfer objects for the ledger kernel.

Responsibility:
    Defines the structures that cross the kernel boundary: LedgerLineSpec
    (intake input) and the result objects returned by every operation of the
    engine facade.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  from_model() class methods are
    boundary converters invoked from services and selectors only.

Invariants enforced:
    - Services return DTOs, never ORM rows, so a committed result cannot be
      mutated through a stale session.
    - Money fields are Money value objects; to_dict() renders them as
      two-place strings.

Data flow:
    LedgerLineSpec -> BatchResult -> PostingResult -> BalanceApplicationResult
    -> NetResultCalculation / PeriodCloseResult
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from ledger_kernel.domain.values import Money

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalEntry as JournalEntryModel
    from ledger_kernel.models.ledger import LedgerEntry as LedgerEntryModel
    from ledger_kernel.models.period_result import PeriodResult as PeriodResultModel


def _enum_value(value: Any) -> Any:
    # String columns hold either the raw value (loaded) or the enum (pending flush)
    return value.value if isinstance(value, Enum) else value


def _plain(value: Any) -> Any:
    if isinstance(value, Money):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class _Serializable:
    """Mixin: JSON-friendly dict of a frozen dataclass."""

    def to_dict(self) -> dict[str, Any]:
        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerLineSpec(_Serializable):
    """
    One proposed ledger line.

    Accounts are addressed by number.  ``amount`` is parsed with Money.of()
    during intake, so strings, ints and Decimals are all accepted.
    """

    account_detail_number: str
    account_general_number: str
    transaction_type: str
    amount: Any
    ledger_date: date
    description: str | None = None
    ledger_type: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LedgerLineSpec:
        ledger_date = data["ledger_date"]
        if isinstance(ledger_date, str):
            ledger_date = date.fromisoformat(ledger_date)
        return cls(
            account_detail_number=str(data["account_detail_number"]),
            account_general_number=str(data["account_general_number"]),
            transaction_type=str(data["transaction_type"]).lower(),
            amount=data["amount"],
            ledger_date=ledger_date,
            description=data.get("description"),
            ledger_type=data.get("ledger_type"),
        )


@dataclass(frozen=True)
class BatchResult(_Serializable):
    """Outcome of a successful batch submission."""

    reference_number: str
    count: int
    total_debit: Money
    total_credit: Money
    entry_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class BatchDeletionResult(_Serializable):
    reference_number: str
    deleted_count: int


# ---------------------------------------------------------------------------
# Posting / unposting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PostingResult(_Serializable):
    """Summary of a posting run for one date."""

    ledger_date: date
    posted_count: int
    group_count: int
    posted_at: datetime
    journal_entry_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class UnpostingResult(_Serializable):
    """Summary of an unposting run for one date."""

    ledger_date: date
    unposted_count: int
    deleted_groups: int
    unposted_at: datetime


# ---------------------------------------------------------------------------
# Balance application / reversal
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountBalanceChange(_Serializable):
    """New balances of one Detail account and the deltas that produced them."""

    account_number: str
    account_name: str
    amount_credit: Money
    amount_debit: Money
    delta_credit: Money
    delta_debit: Money


@dataclass(frozen=True)
class BalanceApplicationResult(_Serializable):
    target_date: date
    updated_accounts: tuple[AccountBalanceChange, ...]
    entry_count: int
    applied_at: datetime


@dataclass(frozen=True)
class BalanceReversalResult(_Serializable):
    target_date: date
    reverted_accounts: tuple[AccountBalanceChange, ...]
    entry_count: int
    reverted_at: datetime


# ---------------------------------------------------------------------------
# Period closing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PeriodResultInfo(_Serializable):
    """Read-only view of a stored Period Result."""

    id: UUID
    year: int
    amount: Money
    account_detail_number: str
    account_general_number: str
    is_closed: bool
    closed_at: datetime | None = None

    @classmethod
    def from_model(cls, model: PeriodResultModel) -> PeriodResultInfo:
        return cls(
            id=model.id,
            year=model.year,
            amount=Money.of(model.amount),
            account_detail_number=model.account_detail_number,
            account_general_number=model.account_general_number,
            is_closed=model.is_closed,
            closed_at=model.closed_at,
        )


@dataclass(frozen=True)
class NetResultCalculation(_Serializable):
    """
    Preview of a year's net result.

    ``can_save`` is False when the year's Period Result exists and is closed,
    or when a closed Period Result of any year links the equity account.
    """

    year: int
    total_revenue: Money
    total_expense: Money
    net_result: Money
    accounts_processed: int
    existing: PeriodResultInfo | None = None
    can_save: bool = True


@dataclass(frozen=True)
class PeriodCloseResult(_Serializable):
    year: int
    net_result: Money
    operation: str
    period_result_id: UUID
    total_revenue: Money
    total_expense: Money


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerEntryView(_Serializable):
    id: UUID
    reference_number: str
    line_index: int
    amount: Money
    description: str | None
    account_detail_number: str
    account_general_number: str
    transaction_type: str
    ledger_type: str | None
    ledger_date: date
    posting_status: str
    posted_at: datetime | None

    @classmethod
    def from_model(cls, model: LedgerEntryModel) -> LedgerEntryView:
        return cls(
            id=model.id,
            reference_number=model.reference_number,
            line_index=model.line_index,
            amount=Money.of(model.amount),
            description=model.description,
            account_detail_number=model.account_detail.account_number,
            account_general_number=model.account_general.account_number,
            transaction_type=_enum_value(model.transaction_type),
            ledger_type=_enum_value(model.ledger_type),
            ledger_date=model.ledger_date,
            posting_status=_enum_value(model.posting_status),
            posted_at=model.posted_at,
        )


@dataclass(frozen=True)
class LedgerBatchView(_Serializable):
    reference_number: str
    line_count: int
    total_debit: Money
    total_credit: Money
    created_at: datetime | None
    entries: tuple[LedgerEntryView, ...] = ()


@dataclass(frozen=True)
class JournalEntryView(_Serializable):
    id: UUID
    account_detail_number: str
    account_general_number: str
    total_debit: Money
    total_credit: Money
    ledger_date: date
    posting_status: str
    posted_at: datetime | None

    @classmethod
    def from_model(cls, model: JournalEntryModel) -> JournalEntryView:
        return cls(
            id=model.id,
            account_detail_number=model.account_detail_number,
            account_general_number=model.account_general_number,
            total_debit=Money.of(model.total_debit),
            total_credit=Money.of(model.total_credit),
            ledger_date=model.ledger_date,
            posting_status=_enum_value(model.posting_status),
            posted_at=model.posted_at,
        )


@dataclass(frozen=True)
class GeneralRollup(_Serializable):
    """Balances of a General account summed from its active Detail children."""

    account_number: str
    account_name: str
    detail_count: int
    amount_credit: Money
    amount_debit: Money
    detail_numbers: tuple[str, ...] = field(default_factory=tuple)
