"""
PostingService -- aggregate a day's PENDING ledger lines into journal entries.

Responsibility:
    For one target date: guard against re-posting, load every PENDING line
    of the date, group the lines by Detail account, create one PENDING
    journal entry per group with its debit / credit totals, and flip the
    lines to POSTED.

Architecture position:
    Kernel > Services -- imperative shell.  Called by LedgerEngine.post_for_date
    inside one transaction.  Balance realization is a separate step
    (BalanceService.apply_balances_up_to).

Invariants enforced:
    - Forward only: no POSTED journal entry may exist on or before the target
      date, and no line of the target date may already be POSTED.
    - Sum of journal totals of the run == sum of the ledger amounts posted.
    - posted_at is stamped on every flipped line.

Failure modes:
    - AlreadyPostedError: guard triggered.
    - NothingToPostError: no PENDING lines for the date.

Audit relevance:
    ledger_posted logs the date, line count, group count and totals.
"""

from collections import OrderedDict
from datetime import date
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.domain.dtos import PostingResult
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import AlreadyPostedError, NothingToPostError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.models.ledger import LedgerEntry, PostingStatus, TransactionType
from ledger_kernel.services.base import BaseService

logger = get_logger("services.posting")


class _Group:
    """Running totals for one Detail account within a posting run."""

    __slots__ = ("detail_number", "general_number", "debit", "credit", "line_count")

    def __init__(self, detail_number: str, general_number: str):
        self.detail_number = detail_number
        self.general_number = general_number
        self.debit = Money.zero()
        self.credit = Money.zero()
        self.line_count = 0

    def add(self, entry: LedgerEntry) -> None:
        amount = Money.of(entry.amount)
        if entry.transaction_type == TransactionType.DEBIT:
            self.debit = self.debit + amount
        else:
            self.credit = self.credit + amount
        self.line_count += 1


class PostingService(BaseService):
    """Posting Engine: PENDING ledger lines -> PENDING journal aggregates."""

    def post_for_date(self, target_date: date, actor_id: UUID) -> PostingResult:
        """
        Post every PENDING ledger line dated ``target_date``.

        Postconditions:
            - One PENDING JournalEntry per Detail account with lines on the date.
            - Every loaded line is POSTED with posted_at set.
        """
        self._guard_not_posted(target_date)

        entries = list(
            self.session.execute(
                select(LedgerEntry)
                .where(
                    LedgerEntry.ledger_date == target_date,
                    LedgerEntry.posting_status == PostingStatus.PENDING.value,
                    LedgerEntry.deleted_at.is_(None),
                )
                .order_by(LedgerEntry.reference_number, LedgerEntry.line_index)
            ).scalars()
        )
        if not entries:
            logger.info("nothing_to_post", extra={"target_date": target_date})
            raise NothingToPostError(target_date)

        groups: OrderedDict[UUID, _Group] = OrderedDict()
        for entry in entries:
            group = groups.get(entry.account_detail_id)
            if group is None:
                group = _Group(
                    entry.account_detail.account_number,
                    entry.account_general.account_number,
                )
                groups[entry.account_detail_id] = group
            group.add(entry)

        posted_at = self._clock.now()

        journal_entries = []
        for group in groups.values():
            journal = JournalEntry(
                account_detail_number=group.detail_number,
                account_general_number=group.general_number,
                total_debit=group.debit.rounded_amount,
                total_credit=group.credit.rounded_amount,
                ledger_date=target_date,
                posting_status=PostingStatus.PENDING.value,
                posted_at=None,
                created_by_id=actor_id,
            )
            self.session.add(journal)
            journal_entries.append(journal)

        for entry in entries:
            entry.posting_status = PostingStatus.POSTED.value
            entry.posted_at = posted_at
            entry.updated_by_id = actor_id

        self.session.flush()

        total_debit = Money.sum(g.debit for g in groups.values())
        total_credit = Money.sum(g.credit for g in groups.values())
        logger.info(
            "ledger_posted",
            extra={
                "target_date": target_date,
                "posted_count": len(entries),
                "group_count": len(journal_entries),
                "total_debit": str(total_debit),
                "total_credit": str(total_credit),
            },
        )

        return PostingResult(
            ledger_date=target_date,
            posted_count=len(entries),
            group_count=len(journal_entries),
            posted_at=posted_at,
            journal_entry_ids=tuple(j.id for j in journal_entries),
        )

    def _guard_not_posted(self, target_date: date) -> None:
        posted_journals = self.session.execute(
            select(func.count(JournalEntry.id)).where(
                JournalEntry.ledger_date <= target_date,
                JournalEntry.posting_status == PostingStatus.POSTED.value,
            )
        ).scalar_one()
        if posted_journals:
            logger.warning(
                "posting_rejected_journal_posted",
                extra={"target_date": target_date, "posted_journals": posted_journals},
            )
            raise AlreadyPostedError(
                target_date,
                f"{posted_journals} journal entr(ies) on or before this date "
                f"have balances applied",
            )

        posted_lines = self.session.execute(
            select(func.count(LedgerEntry.id)).where(
                LedgerEntry.ledger_date == target_date,
                LedgerEntry.posting_status == PostingStatus.POSTED.value,
                LedgerEntry.deleted_at.is_(None),
            )
        ).scalar_one()
        if posted_lines:
            logger.warning(
                "posting_rejected_lines_posted",
                extra={"target_date": target_date, "posted_lines": posted_lines},
            )
            raise AlreadyPostedError(
                target_date, f"{posted_lines} ledger entr(ies) already posted"
            )
