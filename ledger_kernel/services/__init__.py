"""Kernel services.  Every service flushes; only LedgerEngine commits."""

from ledger_kernel.services.account_service import AccountKind, AccountService
from ledger_kernel.services.balance_service import BalanceService
from ledger_kernel.services.ledger_engine import LedgerEngine
from ledger_kernel.services.ledger_service import LedgerService
from ledger_kernel.services.period_closing_service import PeriodClosingService
from ledger_kernel.services.posting_service import PostingService
from ledger_kernel.services.unposting_service import UnpostingService

__all__ = [
    "AccountKind",
    "AccountService",
    "BalanceService",
    "LedgerEngine",
    "LedgerService",
    "PeriodClosingService",
    "PostingService",
    "UnpostingService",
]
