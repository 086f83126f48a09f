"""
Typed exception hierarchy for the ledger kernel.

===============================================================================
HIERARCHY
===============================================================================

All exceptions inherit from LedgerKernelError:

    LedgerKernelError (base)
    |
    +-- LedgerValidationError            category = "validation"
    |   +-- AccountsNotFoundError
    |   +-- AccountRelationMismatchError
    |   +-- UnbalancedJournalError
    |   +-- InvalidAmountError
    |   +-- InvalidLedgerLineError
    |   +-- EmptyBatchError
    |   +-- NoResultAccountsError
    |
    +-- StateConflictError               category = "state_conflict"
    |   +-- AlreadyPostedError
    |   +-- NothingToPostError
    |   +-- CannotUnpostError
    |   +-- NothingToUnpostError
    |   +-- PeriodClosedError
    |   +-- ReferenceCollisionError
    |   +-- AccountNumberExistsError
    |   +-- LedgerEntryPostedError
    |   +-- TransactionConflictError
    |
    +-- LedgerIntegrityError             category = "integrity"
        +-- AccountDetailNotFoundError
        +-- HasDependentsError
        +-- AccountNotFoundError
        +-- EquityAccountNotFoundError
        +-- PeriodResultNotFoundError
        +-- BatchNotFoundError

===============================================================================
CONVENTIONS
===============================================================================

1. Every class has a ``code`` class attribute (machine readable, API safe)
   and inherits a ``category`` from its branch.  Callers catch by type and
   read attributes; they never parse messages.

2. All context is stored as public instance attributes so that the
   structured log formatter and the CLI can serialize it.

3. Validation errors carry the full detail list (every missing account,
   every mismatching line), never only the first offender.

4. Nothing in the kernel retries.  State conflicts are surfaced so the
   caller can decide; integrity errors abort the enclosing transaction.
===============================================================================
"""

from datetime import date
from decimal import Decimal
from typing import Any


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"
    category: str = "kernel"

    def to_dict(self) -> dict[str, Any]:
        """Serializable view: code, category, message and public attributes."""
        payload: dict[str, Any] = {
            "code": self.code,
            "category": self.category,
            "message": str(self),
        }
        for key, value in vars(self).items():
            if not key.startswith("_"):
                payload[key] = value
        return payload


# Validation errors


class LedgerValidationError(LedgerKernelError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"
    category: str = "validation"


class AccountsNotFoundError(LedgerValidationError):
    """One or more account numbers in a batch do not resolve to active accounts."""

    code: str = "ACCOUNTS_NOT_FOUND"

    def __init__(
        self,
        missing_detail_numbers: list[str],
        missing_general_numbers: list[str],
    ):
        self.missing_detail_numbers = sorted(missing_detail_numbers)
        self.missing_general_numbers = sorted(missing_general_numbers)
        parts = []
        if self.missing_detail_numbers:
            parts.append(f"detail={', '.join(self.missing_detail_numbers)}")
        if self.missing_general_numbers:
            parts.append(f"general={', '.join(self.missing_general_numbers)}")
        super().__init__(f"Accounts not found: {'; '.join(parts)}")


class AccountRelationMismatchError(LedgerValidationError):
    """
    One or more lines reference a Detail account whose parent is not the
    General account given on the same line.

    Each violation is a dict with ``line_index``, ``account_detail_number``,
    ``account_general_number`` and ``actual_general_number``.
    """

    code: str = "ACCOUNT_RELATION_MISMATCH"

    def __init__(self, violations: list[dict[str, Any]]):
        self.violations = violations
        super().__init__(
            f"{len(violations)} line(s) reference a detail account outside "
            f"the given general account"
        )


class UnbalancedJournalError(LedgerValidationError):
    """Batch debits do not equal credits."""

    code: str = "UNBALANCED_JOURNAL"

    def __init__(self, debit: Decimal, credit: Decimal):
        self.debit = debit
        self.credit = credit
        super().__init__(f"Unbalanced journal: debit={debit}, credit={credit}")


class InvalidAmountError(LedgerValidationError):
    """Amount cannot be parsed, or is not allowed where it is used."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: Any, reason: str = "not a valid amount"):
        self.value = repr(value)
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class InvalidLedgerLineError(LedgerValidationError):
    """A line field other than the amount holds an unknown value."""

    code: str = "INVALID_LEDGER_LINE"

    def __init__(self, line_index: int, field: str, value: Any):
        self.line_index = line_index
        self.field = field
        self.value = repr(value)
        super().__init__(f"Line {line_index}: invalid {field} {value!r}")


class EmptyBatchError(LedgerValidationError):
    """A batch must contain at least one line."""

    code: str = "EMPTY_BATCH"

    def __init__(self):
        super().__init__("Batch contains no lines")


class NoResultAccountsError(LedgerValidationError):
    """No active result-type Detail account exists to compute a net result."""

    code: str = "NO_RESULT_ACCOUNTS"

    def __init__(self, year: int):
        self.year = year
        super().__init__(f"No result accounts found to compute net result for {year}")


# State conflict errors


class StateConflictError(LedgerKernelError):
    """Base exception for operations refused by the current stored state."""

    code: str = "STATE_CONFLICT"
    category: str = "state_conflict"


class AlreadyPostedError(StateConflictError):
    """Posting for this date (or a later one) has already happened."""

    code: str = "ALREADY_POSTED"

    def __init__(self, ledger_date: date, reason: str = ""):
        self.ledger_date = ledger_date
        self.reason = reason
        message = f"Ledger already posted for {ledger_date.isoformat()}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NothingToPostError(StateConflictError):
    """No PENDING ledger lines exist for the date."""

    code: str = "NOTHING_TO_POST"

    def __init__(self, ledger_date: date):
        self.ledger_date = ledger_date
        super().__init__(f"No pending ledger entries for {ledger_date.isoformat()}")


class CannotUnpostError(StateConflictError):
    """Journal entries for the date have balances applied; revert those first."""

    code: str = "CANNOT_UNPOST"

    def __init__(self, ledger_date: date, posted_journal_count: int):
        self.ledger_date = ledger_date
        self.posted_journal_count = posted_journal_count
        super().__init__(
            f"Cannot unpost {ledger_date.isoformat()}: "
            f"{posted_journal_count} journal entr(ies) already have balances applied"
        )


class NothingToUnpostError(StateConflictError):
    """No POSTED ledger lines exist for the date."""

    code: str = "NOTHING_TO_UNPOST"

    def __init__(self, ledger_date: date):
        self.ledger_date = ledger_date
        super().__init__(f"No posted ledger entries for {ledger_date.isoformat()}")


class PeriodClosedError(StateConflictError):
    """The Period Result of the year is closed; nothing may change it."""

    code: str = "PERIOD_CLOSED"

    def __init__(self, year: int):
        self.year = year
        super().__init__(f"Period {year} is closed")


class ReferenceCollisionError(StateConflictError):
    """Generated batch reference number already exists; retry with a fresh one."""

    code: str = "REFERENCE_COLLISION"

    def __init__(self, reference_number: str):
        self.reference_number = reference_number
        super().__init__(f"Reference number already in use: {reference_number}")


class AccountNumberExistsError(StateConflictError):
    """An active account of the same kind already uses the number."""

    code: str = "ACCOUNT_NUMBER_EXISTS"

    def __init__(self, kind: str, account_number: str):
        self.kind = kind
        self.account_number = account_number
        super().__init__(f"Active {kind} account already exists: {account_number}")


class LedgerEntryPostedError(StateConflictError):
    """POSTED ledger lines can never be deleted."""

    code: str = "LEDGER_ENTRY_POSTED"

    def __init__(self, reference_number: str, posted_count: int):
        self.reference_number = reference_number
        self.posted_count = posted_count
        super().__init__(
            f"Batch {reference_number} has {posted_count} posted line(s) "
            f"and cannot be deleted"
        )


class TransactionConflictError(StateConflictError):
    """
    The database aborted the transaction because a concurrent writer touched
    the same rows.  Treat like AlreadyPostedError: the guard of the winning
    writer decides the outcome.
    """

    code: str = "TRANSACTION_CONFLICT"

    def __init__(self, operation: str, sqlstate: str | None = None):
        self.operation = operation
        self.sqlstate = sqlstate
        super().__init__(
            f"Concurrent transaction conflict during {operation} (sqlstate={sqlstate})"
        )


# Integrity errors


class LedgerIntegrityError(LedgerKernelError):
    """Base exception for stored state that does not line up."""

    code: str = "INTEGRITY_ERROR"
    category: str = "integrity"


class AccountDetailNotFoundError(LedgerIntegrityError):
    """A journal entry names a Detail account number that no longer resolves."""

    code: str = "ACCOUNT_DETAIL_NOT_FOUND"

    def __init__(self, account_number: str):
        self.account_number = account_number
        super().__init__(f"Detail account not found: {account_number}")


class HasDependentsError(LedgerIntegrityError):
    """Account cannot be deleted: ledger lines or Detail children reference it."""

    code: str = "HAS_DEPENDENTS"

    def __init__(self, account_number: str, ledger_count: int, child_count: int = 0):
        self.account_number = account_number
        self.ledger_count = ledger_count
        self.child_count = child_count
        super().__init__(
            f"Account {account_number} cannot be deleted: "
            f"{ledger_count} ledger entr(ies), {child_count} detail account(s)"
        )


class AccountNotFoundError(LedgerIntegrityError):
    """Account was not found among active accounts."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} account not found: {identifier}")


class EquityAccountNotFoundError(LedgerIntegrityError):
    """The configured equity Detail account receiving the net result is missing."""

    code: str = "EQUITY_ACCOUNT_NOT_FOUND"

    def __init__(self, account_number: str):
        self.account_number = account_number
        super().__init__(f"Equity account for net result not found: {account_number}")


class PeriodResultNotFoundError(LedgerIntegrityError):
    """No Period Result row exists for the year."""

    code: str = "PERIOD_RESULT_NOT_FOUND"

    def __init__(self, year: int):
        self.year = year
        super().__init__(f"Period result not found for {year}")


class BatchNotFoundError(LedgerIntegrityError):
    """No ledger batch exists with the reference number."""

    code: str = "BATCH_NOT_FOUND"

    def __init__(self, reference_number: str):
        self.reference_number = reference_number
        super().__init__(f"Ledger batch not found: {reference_number}")
