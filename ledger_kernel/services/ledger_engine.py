"""
LedgerEngine -- the kernel's external interface.

Responsibility:
    One facade exposing intake, posting, unposting, balance application and
    reversal, and period closing.  Each call owns its transaction: it opens a
    session from the configured factory, runs the service, commits on
    success and rolls back on any failure.

Architecture position:
    Kernel > Services -- the only class in the kernel that commits.
    Called by scripts/ledger_cli.py or any outer layer (HTTP, jobs).

Invariants enforced:
    - One operation == one database transaction.  A failed call leaves no
      trace: no half-posted date, no partially applied balances.
    - Every call runs inside LogContext.bind() with a fresh correlation id,
      the operation name and the acting user.

Failure modes:
    - Every LedgerKernelError raised by a service propagates unchanged after
      rollback.
    - PostgreSQL serialization failures and deadlocks (SQLSTATE 40001 and
      40P01) are re-raised as TransactionConflictError; callers treat it
      like AlreadyPostedError.

Audit relevance:
    Each call logs <operation>_completed or <operation>_failed with its
    duration.
"""

import time
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any, Callable, Sequence, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.domain.accounts import TOMBSTONE_MARKER
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    BalanceApplicationResult,
    BalanceReversalResult,
    BatchDeletionResult,
    BatchResult,
    GeneralRollup,
    JournalEntryView,
    LedgerBatchView,
    LedgerEntryView,
    LedgerLineSpec,
    NetResultCalculation,
    PeriodCloseResult,
    PeriodResultInfo,
    PostingResult,
    UnpostingResult,
)
from ledger_kernel.exceptions import TransactionConflictError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.selectors.balance_selector import BalanceSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.account_service import AccountKind, AccountService
from ledger_kernel.services.balance_service import BalanceService
from ledger_kernel.services.ledger_service import LedgerService, ReferenceFactory
from ledger_kernel.services.period_closing_service import (
    DEFAULT_EQUITY_ACCOUNT_NUMBER,
    PeriodClosingService,
)
from ledger_kernel.services.posting_service import PostingService
from ledger_kernel.services.unposting_service import UnpostingService

if TYPE_CHECKING:
    from ledger_config.schema import LedgerConfig

logger = get_logger("services.ledger_engine")

T = TypeVar("T")

CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


@dataclass
class _Services:
    accounts: AccountService
    ledger: LedgerService
    posting: PostingService
    unposting: UnpostingService
    balances: BalanceService
    closing: PeriodClosingService


class LedgerEngine:
    """
    Transaction-owning facade over the kernel services.

    Contract:
        Results are frozen DTOs, safe to use after the session is closed.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        reference_prefix: str = "REF",
        tombstone_marker: str = TOMBSTONE_MARKER,
        equity_account_number: str = DEFAULT_EQUITY_ACCOUNT_NUMBER,
        reference_factory: ReferenceFactory | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._reference_prefix = reference_prefix
        self._tombstone_marker = tombstone_marker
        self._equity_account_number = equity_account_number
        self._reference_factory = reference_factory

    @classmethod
    def from_config(
        cls,
        config: "LedgerConfig",
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
    ) -> "LedgerEngine":
        return cls(
            session_factory,
            clock=clock,
            reference_prefix=config.intake.reference_prefix,
            tombstone_marker=config.intake.tombstone_marker,
            equity_account_number=config.closing.equity_account_number,
        )

    # ------------------------------------------------------------------
    # Transaction boundary
    # ------------------------------------------------------------------

    def _services(self, session: Session) -> _Services:
        accounts = AccountService(session, self._clock, tombstone_marker=self._tombstone_marker)
        return _Services(
            accounts=accounts,
            ledger=LedgerService(
                session,
                self._clock,
                account_service=accounts,
                reference_prefix=self._reference_prefix,
                reference_factory=self._reference_factory,
            ),
            posting=PostingService(session, self._clock),
            unposting=UnpostingService(session, self._clock),
            balances=BalanceService(session, self._clock, account_service=accounts),
            closing=PeriodClosingService(
                session,
                self._clock,
                account_service=accounts,
                equity_account_number=self._equity_account_number,
            ),
        )

    def _run(
        self,
        operation: str,
        work: Callable[[Session, _Services], T],
        actor_id: UUID | None = None,
        ledger_date: date | None = None,
        read_only: bool = False,
    ) -> T:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            operation=operation,
            actor_id=str(actor_id) if actor_id else None,
            ledger_date=ledger_date.isoformat() if ledger_date else None,
        ):
            t0 = time.monotonic()
            session = self._session_factory()
            try:
                result = work(session, self._services(session))
                if read_only:
                    session.rollback()
                else:
                    session.commit()
            except DBAPIError as exc:
                session.rollback()
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                sqlstate = _sqlstate(exc)
                if sqlstate in CONFLICT_SQLSTATES:
                    logger.warning(
                        f"{operation}_conflict",
                        extra={"duration_ms": duration_ms, "sqlstate": sqlstate},
                    )
                    raise TransactionConflictError(operation, sqlstate) from exc
                logger.error(
                    f"{operation}_failed",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
                raise
            except Exception:
                session.rollback()
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.warning(
                    f"{operation}_failed",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
                raise
            finally:
                session.close()

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(f"{operation}_completed", extra={"duration_ms": duration_ms})
            return result

    # ------------------------------------------------------------------
    # Core interface
    # ------------------------------------------------------------------

    def submit_batch(
        self,
        lines: Sequence[LedgerLineSpec | dict[str, Any]],
        actor_id: UUID,
    ) -> BatchResult:
        return self._run(
            "submit_batch",
            lambda s, svc: svc.ledger.submit_batch(lines, actor_id),
            actor_id=actor_id,
        )

    def post_for_date(self, target_date: date, actor_id: UUID) -> PostingResult:
        return self._run(
            "post_for_date",
            lambda s, svc: svc.posting.post_for_date(target_date, actor_id),
            actor_id=actor_id,
            ledger_date=target_date,
        )

    def unpost_for_date(self, target_date: date, actor_id: UUID) -> UnpostingResult:
        return self._run(
            "unpost_for_date",
            lambda s, svc: svc.unposting.unpost_for_date(target_date, actor_id),
            actor_id=actor_id,
            ledger_date=target_date,
        )

    def apply_balances_up_to(
        self, target_date: date, actor_id: UUID
    ) -> BalanceApplicationResult:
        return self._run(
            "apply_balances",
            lambda s, svc: svc.balances.apply_balances_up_to(target_date, actor_id),
            actor_id=actor_id,
            ledger_date=target_date,
        )

    def revert_balances_for(
        self, target_date: date, actor_id: UUID
    ) -> BalanceReversalResult:
        return self._run(
            "revert_balances",
            lambda s, svc: svc.balances.revert_balances_for(target_date, actor_id),
            actor_id=actor_id,
            ledger_date=target_date,
        )

    def calculate_net_result(self, year: int) -> NetResultCalculation:
        return self._run(
            "calculate_net_result",
            lambda s, svc: svc.closing.calculate_net_result(year),
            read_only=True,
        )

    def close_period(self, year: int, actor_id: UUID) -> PeriodCloseResult:
        return self._run(
            "close_period",
            lambda s, svc: svc.closing.close_period(year, actor_id),
            actor_id=actor_id,
        )

    def lock_period(self, year: int, actor_id: UUID) -> PeriodResultInfo:
        return self._run(
            "lock_period",
            lambda s, svc: svc.closing.lock_period(year, actor_id),
            actor_id=actor_id,
        )

    # ------------------------------------------------------------------
    # Accounts and batches
    # ------------------------------------------------------------------

    def create_general_account(self, actor_id: UUID, **fields: Any) -> UUID:
        return self._run(
            "create_general_account",
            lambda s, svc: svc.accounts.create_general(actor_id=actor_id, **fields).id,
            actor_id=actor_id,
        )

    def create_detail_account(self, actor_id: UUID, **fields: Any) -> UUID:
        return self._run(
            "create_detail_account",
            lambda s, svc: svc.accounts.create_detail(actor_id=actor_id, **fields).id,
            actor_id=actor_id,
        )

    def soft_delete_account(
        self, kind: AccountKind | str, account_id: UUID, actor_id: UUID
    ) -> str:
        """Tombstone an account and return its new stored number."""
        return self._run(
            "soft_delete_account",
            lambda s, svc: svc.accounts.soft_delete(
                AccountKind(kind), account_id, actor_id
            ).stored_number,
            actor_id=actor_id,
        )

    def delete_pending_batch(
        self, reference_number: str, actor_id: UUID
    ) -> BatchDeletionResult:
        return self._run(
            "delete_pending_batch",
            lambda s, svc: svc.ledger.delete_pending_batch(reference_number, actor_id),
            actor_id=actor_id,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_ledger_entries(self, **filters: Any) -> list[LedgerEntryView]:
        return self._run(
            "list_ledger_entries",
            lambda s, svc: LedgerSelector(s).list_entries(**filters),
            read_only=True,
        )

    def get_batch(self, reference_number: str) -> LedgerBatchView:
        return self._run(
            "get_batch",
            lambda s, svc: LedgerSelector(s).get_batch(reference_number),
            read_only=True,
        )

    def list_journal_entries(
        self, ledger_date: date, posting_status: str | None = None
    ) -> list[JournalEntryView]:
        return self._run(
            "list_journal_entries",
            lambda s, svc: JournalSelector(s).list_by_date(ledger_date, posting_status),
            read_only=True,
            ledger_date=ledger_date,
        )

    def general_rollup(self, account_number: str | None = None) -> list[GeneralRollup]:
        return self._run(
            "general_rollup",
            lambda s, svc: BalanceSelector(s).general_rollup(account_number),
            read_only=True,
        )
