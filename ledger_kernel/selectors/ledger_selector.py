"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read access to ledger lines and ledger batches.
Architecture position: Kernel > Selectors.
"""

from datetime import date

from sqlalchemy import select

from ledger_kernel.domain.dtos import LedgerBatchView, LedgerEntryView
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import BatchNotFoundError
from ledger_kernel.models.account import AccountDetail
from ledger_kernel.models.ledger import (
    LedgerBatch,
    LedgerEntry,
    PostingStatus,
    TransactionType,
)
from ledger_kernel.selectors.base import BaseSelector

DEFAULT_LIMIT = 100


class LedgerSelector(BaseSelector):
    """Filterable listing of ledger entries and batch lookup."""

    def list_entries(
        self,
        reference_number: str | None = None,
        posting_status: PostingStatus | str | None = None,
        transaction_type: TransactionType | str | None = None,
        account_detail_number: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        include_deleted: bool = False,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> list[LedgerEntryView]:
        """
        List ledger entries ordered by date, reference and line index.

        All filters are optional and combined with AND.  ``date_to`` is
        inclusive.
        """
        stmt = select(LedgerEntry)
        if not include_deleted:
            stmt = stmt.where(LedgerEntry.deleted_at.is_(None))
        if reference_number is not None:
            stmt = stmt.where(LedgerEntry.reference_number == reference_number)
        if posting_status is not None:
            stmt = stmt.where(
                LedgerEntry.posting_status == PostingStatus(posting_status).value
            )
        if transaction_type is not None:
            stmt = stmt.where(
                LedgerEntry.transaction_type == TransactionType(transaction_type).value
            )
        if account_detail_number is not None:
            stmt = stmt.join(
                AccountDetail, AccountDetail.id == LedgerEntry.account_detail_id
            ).where(AccountDetail.account_number == account_detail_number)
        if date_from is not None:
            stmt = stmt.where(LedgerEntry.ledger_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(LedgerEntry.ledger_date <= date_to)

        stmt = (
            stmt.order_by(
                LedgerEntry.ledger_date,
                LedgerEntry.reference_number,
                LedgerEntry.line_index,
            )
            .limit(limit)
            .offset(offset)
        )
        return [LedgerEntryView.from_model(e) for e in self.session.execute(stmt).scalars()]

    def get_batch(self, reference_number: str) -> LedgerBatchView:
        batch = self.session.execute(
            select(LedgerBatch).where(LedgerBatch.reference_number == reference_number)
        ).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(reference_number)

        return LedgerBatchView(
            reference_number=batch.reference_number,
            line_count=batch.line_count,
            total_debit=Money.of(batch.total_debit),
            total_credit=Money.of(batch.total_credit),
            created_at=batch.created_at,
            entries=tuple(LedgerEntryView.from_model(e) for e in batch.entries),
        )
