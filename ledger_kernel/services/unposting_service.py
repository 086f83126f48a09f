"""
UnpostingService -- exact inverse of PostingService for one date.

Responsibility:
    Returns a date's POSTED ledger lines to PENDING and deletes the PENDING
    journal aggregates of that date.

Architecture position:
    Kernel > Services -- imperative shell.  Called by LedgerEngine.unpost_for_date
    inside one transaction.  Journal entries whose balances were applied must
    first be reverted with BalanceService.revert_balances_for.

Invariants enforced:
    - Refused while any journal entry of the date is POSTED.
    - posted_at is cleared on every line returned to PENDING.
    - post_for_date followed by unpost_for_date leaves lines PENDING with no
      journal entries and account balances untouched.

Failure modes:
    - CannotUnpostError: journal entries of the date have balances applied.
    - NothingToUnpostError: no POSTED lines for the date.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import delete, func, select

from ledger_kernel.domain.dtos import UnpostingResult
from ledger_kernel.exceptions import CannotUnpostError, NothingToUnpostError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.models.ledger import LedgerEntry, PostingStatus
from ledger_kernel.services.base import BaseService

logger = get_logger("services.unposting")


class UnpostingService(BaseService):
    """Unposting Engine."""

    def unpost_for_date(self, target_date: date, actor_id: UUID) -> UnpostingResult:
        posted_journals = self.session.execute(
            select(func.count(JournalEntry.id)).where(
                JournalEntry.ledger_date == target_date,
                JournalEntry.posting_status == PostingStatus.POSTED.value,
            )
        ).scalar_one()
        if posted_journals:
            logger.warning(
                "unposting_rejected",
                extra={"target_date": target_date, "posted_journals": posted_journals},
            )
            raise CannotUnpostError(target_date, posted_journals)

        entries = list(
            self.session.execute(
                select(LedgerEntry).where(
                    LedgerEntry.ledger_date == target_date,
                    LedgerEntry.posting_status == PostingStatus.POSTED.value,
                    LedgerEntry.deleted_at.is_(None),
                )
            ).scalars()
        )
        if not entries:
            logger.info("nothing_to_unpost", extra={"target_date": target_date})
            raise NothingToUnpostError(target_date)

        for entry in entries:
            entry.posting_status = PostingStatus.PENDING.value
            entry.posted_at = None
            entry.updated_by_id = actor_id
        self.session.flush()

        deleted_groups = self.session.execute(
            delete(JournalEntry)
            .where(
                JournalEntry.ledger_date == target_date,
                JournalEntry.posting_status == PostingStatus.PENDING.value,
            )
            .execution_options(synchronize_session="fetch")
        ).rowcount

        unposted_at = self._clock.now()
        logger.info(
            "ledger_unposted",
            extra={
                "target_date": target_date,
                "unposted_count": len(entries),
                "deleted_groups": deleted_groups,
            },
        )
        return UnpostingResult(
            ledger_date=target_date,
            unposted_count=len(entries),
            deleted_groups=deleted_groups,
            unposted_at=unposted_at,
        )
