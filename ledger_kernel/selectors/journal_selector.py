"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read access to journal aggregates.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Journal entries name their accounts by number.  With verify_accounts
      (the default) every Detail number is resolved among active Detail
      accounts and an unknown number raises AccountDetailNotFoundError.
"""

from datetime import date

from sqlalchemy import select

from ledger_kernel.domain.dtos import JournalEntryView
from ledger_kernel.exceptions import AccountDetailNotFoundError
from ledger_kernel.models.account import AccountDetail
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.models.ledger import PostingStatus
from ledger_kernel.selectors.base import BaseSelector


class JournalSelector(BaseSelector):
    """Journal entries by date and status."""

    def list_by_date(
        self,
        ledger_date: date,
        posting_status: PostingStatus | str | None = None,
        verify_accounts: bool = True,
    ) -> list[JournalEntryView]:
        stmt = select(JournalEntry).where(JournalEntry.ledger_date == ledger_date)
        if posting_status is not None:
            stmt = stmt.where(
                JournalEntry.posting_status == PostingStatus(posting_status).value
            )
        return self._load(stmt, verify_accounts)

    def list_pending_up_to(
        self, target_date: date, verify_accounts: bool = True
    ) -> list[JournalEntryView]:
        stmt = select(JournalEntry).where(
            JournalEntry.ledger_date <= target_date,
            JournalEntry.posting_status == PostingStatus.PENDING.value,
        )
        return self._load(stmt, verify_accounts)

    def _load(self, stmt, verify_accounts: bool) -> list[JournalEntryView]:
        stmt = stmt.order_by(JournalEntry.ledger_date, JournalEntry.account_detail_number)
        rows = list(self.session.execute(stmt).scalars())
        if verify_accounts and rows:
            self._verify({r.account_detail_number for r in rows})
        return [JournalEntryView.from_model(r) for r in rows]

    def _verify(self, numbers: set[str]) -> None:
        found = set(
            self.session.execute(
                select(AccountDetail.account_number).where(
                    AccountDetail.account_number.in_(numbers),
                    AccountDetail.deleted_at.is_(None),
                )
            ).scalars()
        )
        missing = sorted(numbers - found)
        if missing:
            raise AccountDetailNotFoundError(missing[0])
