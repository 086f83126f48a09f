"""
LedgerService -- Bulk Ledger Intake and pending batch deletion.

Responsibility:
    Validates a batch of proposed ledger lines (amounts, account resolution,
    parent relation, double-entry balance), assigns a unique reference
    number and persists the batch and its lines as PENDING.

Architecture position:
    Kernel > Services -- imperative shell.  Called by LedgerEngine.submit_batch
    inside one transaction.

Invariants enforced:
    - Per batch, sum(debit) == sum(credit) to 2 decimal places.
    - Every line's Detail account is a child of the line's General account.
    - Reference numbers are unique (pre-check plus the ledger_batches unique
      constraint).
    - All or nothing: every check runs before the first insert, and a failing
      insert aborts the caller's transaction.
    - POSTED lines are never deleted.

Failure modes:
    - EmptyBatchError, InvalidAmountError, InvalidLedgerLineError
    - AccountsNotFoundError (every missing number, both kinds)
    - AccountRelationMismatchError (every violating line)
    - UnbalancedJournalError (both totals)
    - ReferenceCollisionError
    - BatchNotFoundError / LedgerEntryPostedError on deletion

Audit relevance:
    batch_submitted and batch_deleted are logged with the reference number,
    line count and totals.
"""

from datetime import datetime
from typing import Any, Callable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.accounts import generate_reference_number
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import BatchDeletionResult, BatchResult, LedgerLineSpec
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import (
    AccountRelationMismatchError,
    AccountsNotFoundError,
    BatchNotFoundError,
    EmptyBatchError,
    InvalidAmountError,
    InvalidLedgerLineError,
    LedgerEntryPostedError,
    ReferenceCollisionError,
    UnbalancedJournalError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.ledger import (
    LedgerBatch,
    LedgerEntry,
    LedgerType,
    PostingStatus,
    TransactionType,
)
from ledger_kernel.services.account_service import AccountKind, AccountService
from ledger_kernel.services.base import BaseService

logger = get_logger("services.ledger")

ReferenceFactory = Callable[[datetime, str], str]


class _ParsedLine:
    __slots__ = ("index", "spec", "amount", "transaction_type", "ledger_type")

    def __init__(self, index, spec, amount, transaction_type, ledger_type):
        self.index = index
        self.spec = spec
        self.amount = amount
        self.transaction_type = transaction_type
        self.ledger_type = ledger_type


class LedgerService(BaseService):
    """
    Ledger Entry Store and Bulk Intake.

    Contract:
        submit_batch() either persists every line of the batch as PENDING or
        raises before anything is inserted (reference collisions abort the
        caller's transaction at flush time).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        account_service: AccountService | None = None,
        reference_prefix: str = "REF",
        reference_factory: ReferenceFactory | None = None,
    ):
        super().__init__(session, clock)
        self._accounts = account_service or AccountService(session, self._clock)
        self._reference_prefix = reference_prefix
        self._reference_factory = reference_factory or generate_reference_number

    def submit_batch(
        self,
        lines: Sequence[LedgerLineSpec | dict[str, Any]],
        actor_id: UUID,
    ) -> BatchResult:
        """
        Validate and persist a batch of ledger lines as PENDING.

        Preconditions:
            - Lines are LedgerLineSpec instances or dicts accepted by
              LedgerLineSpec.from_dict().

        Postconditions:
            - One LedgerBatch row and len(lines) PENDING LedgerEntry rows
              share the returned reference number.
        """
        parsed = self._parse_lines(lines)

        # Step 1: resolve accounts
        detail_numbers = {p.spec.account_detail_number for p in parsed}
        general_numbers = {p.spec.account_general_number for p in parsed}
        details = self._accounts.find_active_by_numbers(AccountKind.DETAIL, detail_numbers)
        generals = self._accounts.find_active_by_numbers(AccountKind.GENERAL, general_numbers)

        missing_details = detail_numbers - details.keys()
        missing_generals = general_numbers - generals.keys()
        if missing_details or missing_generals:
            logger.warning(
                "batch_accounts_not_found",
                extra={
                    "missing_detail_numbers": sorted(missing_details),
                    "missing_general_numbers": sorted(missing_generals),
                },
            )
            raise AccountsNotFoundError(list(missing_details), list(missing_generals))

        # Step 2: detail -> general relation
        violations = []
        for p in parsed:
            detail = details[p.spec.account_detail_number]
            general = generals[p.spec.account_general_number]
            if detail.account_general_id != general.id:
                violations.append(
                    {
                        "line_index": p.index,
                        "account_detail_number": detail.account_number,
                        "account_general_number": general.account_number,
                        "actual_general_number": detail.general.account_number,
                    }
                )
        if violations:
            logger.warning(
                "batch_relation_mismatch",
                extra={"violation_count": len(violations)},
            )
            raise AccountRelationMismatchError(violations)

        # Step 3: double-entry balance
        total_debit = Money.sum(
            p.amount for p in parsed if p.transaction_type is TransactionType.DEBIT
        ).round()
        total_credit = Money.sum(
            p.amount for p in parsed if p.transaction_type is TransactionType.CREDIT
        ).round()
        if total_debit != total_credit:
            logger.warning(
                "batch_unbalanced",
                extra={"debit": str(total_debit), "credit": str(total_credit)},
            )
            raise UnbalancedJournalError(
                total_debit.rounded_amount, total_credit.rounded_amount
            )

        # Step 4: reference number
        now = self._clock.now()
        reference_number = self._reference_factory(now, self._reference_prefix)
        exists = self.session.execute(
            select(LedgerBatch.id).where(LedgerBatch.reference_number == reference_number)
        ).first()
        if exists is not None:
            logger.warning(
                "batch_reference_collision",
                extra={"reference_number": reference_number},
            )
            raise ReferenceCollisionError(reference_number)

        # Step 5: persist
        batch = LedgerBatch(
            reference_number=reference_number,
            line_count=len(parsed),
            total_debit=total_debit.amount,
            total_credit=total_credit.amount,
            created_by_id=actor_id,
        )
        self.session.add(batch)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # The batch row carries no foreign keys; only the reference can collide
            logger.warning(
                "batch_reference_collision",
                extra={"reference_number": reference_number},
            )
            raise ReferenceCollisionError(reference_number) from exc

        entries = []
        for p in parsed:
            detail = details[p.spec.account_detail_number]
            general = generals[p.spec.account_general_number]
            entry = LedgerEntry(
                batch_id=batch.id,
                reference_number=reference_number,
                line_index=p.index,
                amount=p.amount.rounded_amount,
                description=p.spec.description,
                account_detail_id=detail.id,
                account_general_id=general.id,
                transaction_type=p.transaction_type.value,
                ledger_type=p.ledger_type.value if p.ledger_type else None,
                ledger_date=p.spec.ledger_date,
                posting_status=PostingStatus.PENDING.value,
                posted_at=None,
                created_by_id=actor_id,
            )
            self.session.add(entry)
            entries.append(entry)
        self.session.flush()

        logger.info(
            "batch_submitted",
            extra={
                "reference_number": reference_number,
                "line_count": len(entries),
                "total_debit": str(total_debit),
                "total_credit": str(total_credit),
            },
        )

        return BatchResult(
            reference_number=reference_number,
            count=len(entries),
            total_debit=total_debit,
            total_credit=total_credit,
            entry_ids=tuple(e.id for e in entries),
        )

    def _parse_lines(
        self, lines: Sequence[LedgerLineSpec | dict[str, Any]]
    ) -> list[_ParsedLine]:
        if not lines:
            raise EmptyBatchError()

        parsed = []
        for index, line in enumerate(lines):
            spec = line if isinstance(line, LedgerLineSpec) else LedgerLineSpec.from_dict(line)

            amount = Money.of(spec.amount)
            if not amount.is_positive:
                raise InvalidAmountError(spec.amount, "amount must be greater than zero")

            try:
                transaction_type = TransactionType(str(spec.transaction_type).lower())
            except ValueError as exc:
                raise InvalidLedgerLineError(
                    index, "transaction_type", spec.transaction_type
                ) from exc

            ledger_type = None
            if spec.ledger_type is not None:
                try:
                    ledger_type = LedgerType(str(spec.ledger_type).lower())
                except ValueError as exc:
                    raise InvalidLedgerLineError(index, "ledger_type", spec.ledger_type) from exc

            parsed.append(_ParsedLine(index, spec, amount, transaction_type, ledger_type))
        return parsed

    def delete_pending_batch(self, reference_number: str, actor_id: UUID) -> BatchDeletionResult:
        """
        Hard-delete every line of a batch, and the batch itself, while all of
        its lines are still PENDING.
        """
        batch = self.session.execute(
            select(LedgerBatch)
            .where(LedgerBatch.reference_number == reference_number)
            .with_for_update()
        ).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(reference_number)

        entries = list(
            self.session.execute(
                select(LedgerEntry).where(LedgerEntry.batch_id == batch.id)
            ).scalars()
        )
        posted = [e for e in entries if e.posting_status == PostingStatus.POSTED]
        if posted:
            logger.warning(
                "batch_delete_rejected",
                extra={"reference_number": reference_number, "posted_count": len(posted)},
            )
            raise LedgerEntryPostedError(reference_number, len(posted))

        for entry in entries:
            self.session.delete(entry)
        self.session.flush()
        self.session.delete(batch)
        self.session.flush()

        logger.info(
            "batch_deleted",
            extra={
                "reference_number": reference_number,
                "deleted_count": len(entries),
                "deleted_by": str(actor_id),
            },
        )
        return BatchDeletionResult(reference_number=reference_number, deleted_count=len(entries))
