"""
BalanceService -- realize journal aggregates into account balances, and back.

Responsibility:
    apply_balances_up_to() walks PENDING journal entries up to a date and
    increments the referenced Detail accounts by their totals, flipping the
    entries to POSTED.  revert_balances_for() is its inverse for a single
    date: decrement by the same totals and flip the entries back to PENDING.

Architecture position:
    Kernel > Services -- imperative shell.  Called by LedgerEngine inside one
    transaction.  All balance writes go through AccountService.

Invariants enforced:
    - Journal entries reference Detail accounts by number (soft foreign
      key).  Every number is resolved among active Detail accounts before
      the first balance changes; an unresolved number aborts the pass.
    - Balance changes are deltas only: revert(apply(x)) == x.
    - Reversal is refused for a year whose Period Result is closed, and any
      balance change to a closed year's equity account is refused.

Failure modes:
    - AccountDetailNotFoundError: journal names an unknown Detail number.
    - PeriodClosedError: closed year.
"""

from collections import OrderedDict
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.balances import BalancePair
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import (
    AccountBalanceChange,
    BalanceApplicationResult,
    BalanceReversalResult,
)
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import AccountDetailNotFoundError, PeriodClosedError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountDetail
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.models.ledger import PostingStatus
from ledger_kernel.models.period_result import PeriodResult
from ledger_kernel.services.account_service import AccountKind, AccountService
from ledger_kernel.services.base import BaseService

logger = get_logger("services.balance")


class _AccountTotals:
    __slots__ = ("debit", "credit", "by_date")

    def __init__(self):
        self.debit = Money.zero()
        self.credit = Money.zero()
        # ledger_date -> (credit, debit) so closed-year checks see every date
        self.by_date: OrderedDict[date, tuple[Money, Money]] = OrderedDict()

    def add(self, journal: JournalEntry) -> None:
        credit = Money.of(journal.total_credit)
        debit = Money.of(journal.total_debit)
        self.credit = self.credit + credit
        self.debit = self.debit + debit
        prev_credit, prev_debit = self.by_date.get(
            journal.ledger_date, (Money.zero(), Money.zero())
        )
        self.by_date[journal.ledger_date] = (prev_credit + credit, prev_debit + debit)


class BalanceService(BaseService):
    """Balance Application and its reversal."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        account_service: AccountService | None = None,
    ):
        super().__init__(session, clock)
        self._accounts = account_service or AccountService(session, self._clock)

    def apply_balances_up_to(
        self, target_date: date, actor_id: UUID
    ) -> BalanceApplicationResult:
        """Increment Detail balances from every PENDING journal entry on or before the date."""
        journals = list(
            self.session.execute(
                select(JournalEntry)
                .where(
                    JournalEntry.ledger_date <= target_date,
                    JournalEntry.posting_status == PostingStatus.PENDING.value,
                )
                .order_by(JournalEntry.ledger_date, JournalEntry.account_detail_number)
            ).scalars()
        )
        applied_at = self._clock.now()

        if not journals:
            logger.info("no_pending_journals", extra={"target_date": target_date})
            return BalanceApplicationResult(
                target_date=target_date,
                updated_accounts=(),
                entry_count=0,
                applied_at=applied_at,
            )

        totals = self._group(journals)
        accounts = self._resolve(totals.keys())

        changes = []
        for number, group in totals.items():
            account = accounts[number]
            new_pair = None
            for ledger_date, (credit, debit) in group.by_date.items():
                new_pair = self._accounts.increment_balances(
                    account, credit, debit, actor_id, as_of=ledger_date
                )
            changes.append(self._change(account, new_pair, group))

        for journal in journals:
            journal.posting_status = PostingStatus.POSTED.value
            journal.posted_at = applied_at
            journal.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "balances_applied",
            extra={
                "target_date": target_date,
                "entry_count": len(journals),
                "account_count": len(changes),
            },
        )
        return BalanceApplicationResult(
            target_date=target_date,
            updated_accounts=tuple(changes),
            entry_count=len(journals),
            applied_at=applied_at,
        )

    def revert_balances_for(
        self, target_date: date, actor_id: UUID
    ) -> BalanceReversalResult:
        """Decrement Detail balances by the POSTED journal entries of exactly this date."""
        closed = self.session.execute(
            select(PeriodResult.id).where(
                PeriodResult.year == target_date.year,
                PeriodResult.is_closed.is_(True),
            )
        ).first()
        if closed is not None:
            logger.warning(
                "balance_reversal_rejected_closed",
                extra={"target_date": target_date, "year": target_date.year},
            )
            raise PeriodClosedError(target_date.year)

        journals = list(
            self.session.execute(
                select(JournalEntry)
                .where(
                    JournalEntry.ledger_date == target_date,
                    JournalEntry.posting_status == PostingStatus.POSTED.value,
                )
                .order_by(JournalEntry.account_detail_number)
            ).scalars()
        )
        reverted_at = self._clock.now()

        if not journals:
            logger.info("no_posted_journals", extra={"target_date": target_date})
            return BalanceReversalResult(
                target_date=target_date,
                reverted_accounts=(),
                entry_count=0,
                reverted_at=reverted_at,
            )

        totals = self._group(journals)
        accounts = self._resolve(totals.keys())

        changes = []
        for number, group in totals.items():
            account = accounts[number]
            new_pair = self._accounts.decrement_balances(
                account, group.credit, group.debit, actor_id, as_of=target_date
            )
            changes.append(self._change(account, new_pair, group))

        for journal in journals:
            journal.posting_status = PostingStatus.PENDING.value
            journal.posted_at = None
            journal.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "balances_reverted",
            extra={
                "target_date": target_date,
                "entry_count": len(journals),
                "account_count": len(changes),
            },
        )
        return BalanceReversalResult(
            target_date=target_date,
            reverted_accounts=tuple(changes),
            entry_count=len(journals),
            reverted_at=reverted_at,
        )

    @staticmethod
    def _group(journals: list[JournalEntry]) -> OrderedDict[str, _AccountTotals]:
        totals: OrderedDict[str, _AccountTotals] = OrderedDict()
        for journal in journals:
            totals.setdefault(journal.account_detail_number, _AccountTotals()).add(journal)
        return totals

    def _resolve(self, numbers) -> dict[str, AccountDetail]:
        numbers = list(numbers)
        accounts = self._accounts.find_active_by_numbers(AccountKind.DETAIL, numbers)
        for number in numbers:
            if number not in accounts:
                logger.error("journal_account_not_found", extra={"account_number": number})
                raise AccountDetailNotFoundError(number)
        return accounts

    @staticmethod
    def _change(
        account: AccountDetail, new_pair: BalancePair, group: _AccountTotals
    ) -> AccountBalanceChange:
        return AccountBalanceChange(
            account_number=account.account_number,
            account_name=account.account_name,
            amount_credit=new_pair.credit,
            amount_debit=new_pair.debit,
            delta_credit=group.credit.round(),
            delta_debit=group.debit.round(),
        )
