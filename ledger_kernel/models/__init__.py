"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import (
    AccountBase,
    AccountCategory,
    AccountDetail,
    AccountGeneral,
    NormalBalance,
    ReportType,
)
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.models.ledger import (
    LedgerBatch,
    LedgerEntry,
    LedgerType,
    PostingStatus,
    TransactionType,
)
from ledger_kernel.models.period_result import PeriodResult

__all__ = [
    "AccountBase",
    "AccountCategory",
    "AccountDetail",
    "AccountGeneral",
    "NormalBalance",
    "ReportType",
    "JournalEntry",
    "LedgerBatch",
    "LedgerEntry",
    "LedgerType",
    "PostingStatus",
    "TransactionType",
    "PeriodResult",
]
