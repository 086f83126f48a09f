"""Read-only selectors."""

from ledger_kernel.selectors.balance_selector import BalanceSelector
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector

__all__ = [
    "BaseSelector",
    "BalanceSelector",
    "JournalSelector",
    "LedgerSelector",
]
