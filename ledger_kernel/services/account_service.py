"""
AccountService -- the Account Store: lookups, balance deltas and soft delete.

Responsibility:
    Single owner of account balance fields.  Resolves active General and
    Detail accounts by number or id, applies relative balance deltas,
    performs the one absolute accumulation write used by period closing, and
    soft-deletes accounts through the tombstone transition.

Architecture position:
    Kernel > Services -- imperative shell.  Called by LedgerService,
    BalanceService and PeriodClosingService inside their transaction.

Invariants enforced:
    - Cumulative balances change only by delta (BalancePair.apply/revert).
    - Mutated account rows are read SELECT ... FOR UPDATE.
    - Active account numbers are unique per kind: creation checks first,
      soft delete rewrites the number to its tombstone form.
    - Balance changes to the equity account of a closed year are refused.

Failure modes:
    - AccountNumberExistsError: number already used by an active account.
    - AccountNotFoundError: parent General (or a looked up account) missing.
    - HasDependentsError: soft delete of a referenced account.
    - PeriodClosedError: balance change on a closed year's equity account.
    - InvalidAmountError: unparsable delta.

Audit relevance:
    Every balance change logs old and new pairs with the acting user.
"""

from datetime import date
from enum import Enum
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.accounts import (
    TOMBSTONE_MARKER,
    ActiveAccount,
    DeletedAccount,
    tombstone,
)
from ledger_kernel.domain.balances import BalanceDelta, BalancePair
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    AccountNumberExistsError,
    HasDependentsError,
    PeriodClosedError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import (
    AccountBase,
    AccountCategory,
    AccountDetail,
    AccountGeneral,
    NormalBalance,
    ReportType,
)
from ledger_kernel.models.ledger import LedgerEntry
from ledger_kernel.models.period_result import PeriodResult
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account")


class AccountKind(str, Enum):
    GENERAL = "general"
    DETAIL = "detail"


_MODELS: dict[AccountKind, type[AccountBase]] = {
    AccountKind.GENERAL: AccountGeneral,
    AccountKind.DETAIL: AccountDetail,
}


def _kind_of(account: AccountBase) -> AccountKind:
    return AccountKind.DETAIL if isinstance(account, AccountDetail) else AccountKind.GENERAL


class AccountService(BaseService):
    """
    Account Store over the caller's session.

    Contract:
        Flush only.  Balance methods take an ORM row previously returned by
        one of the find methods and return the new BalancePair.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        tombstone_marker: str = TOMBSTONE_MARKER,
    ):
        super().__init__(session, clock)
        self._tombstone_marker = tombstone_marker

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_general(
        self,
        account_number: str,
        account_name: str,
        account_category: AccountCategory | str,
        report_type: ReportType | str,
        normal_balance: NormalBalance | str,
        actor_id: UUID,
    ) -> AccountGeneral:
        """Create an active General account."""
        self._ensure_number_free(AccountKind.GENERAL, account_number)
        account = AccountGeneral(
            account_number=account_number,
            account_name=account_name,
            account_category=AccountCategory(account_category).value,
            report_type=ReportType(report_type).value,
            normal_balance=NormalBalance(normal_balance).value,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()
        logger.info(
            "account_created",
            extra={"kind": AccountKind.GENERAL.value, "account_number": account_number},
        )
        return account

    def create_detail(
        self,
        account_number: str,
        account_name: str,
        account_general_number: str,
        actor_id: UUID,
        account_category: AccountCategory | str | None = None,
        report_type: ReportType | str | None = None,
        normal_balance: NormalBalance | str | None = None,
    ) -> AccountDetail:
        """
        Create an active Detail account under an active General account.

        Classification not given explicitly is inherited from the parent.
        """
        self._ensure_number_free(AccountKind.DETAIL, account_number)
        general = self.get_active_by_number(AccountKind.GENERAL, account_general_number)

        account = AccountDetail(
            account_number=account_number,
            account_name=account_name,
            account_category=AccountCategory(
                account_category or general.account_category
            ).value,
            report_type=ReportType(report_type or general.report_type).value,
            normal_balance=NormalBalance(normal_balance or general.normal_balance).value,
            account_general_id=general.id,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()
        logger.info(
            "account_created",
            extra={
                "kind": AccountKind.DETAIL.value,
                "account_number": account_number,
                "account_general_number": general.account_number,
            },
        )
        return account

    def _ensure_number_free(self, kind: AccountKind, account_number: str) -> None:
        if self.find_active_by_number(kind, account_number) is not None:
            raise AccountNumberExistsError(kind.value, account_number)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_active_by_number(
        self, kind: AccountKind, account_number: str
    ) -> AccountBase | None:
        model = _MODELS[AccountKind(kind)]
        return self.session.execute(
            select(model).where(
                model.account_number == account_number,
                model.deleted_at.is_(None),
            )
        ).scalar_one_or_none()

    def find_active_by_id(self, kind: AccountKind, account_id: UUID) -> AccountBase | None:
        model = _MODELS[AccountKind(kind)]
        return self.session.execute(
            select(model).where(
                model.id == account_id,
                model.deleted_at.is_(None),
            )
        ).scalar_one_or_none()

    def get_active_by_number(self, kind: AccountKind, account_number: str) -> AccountBase:
        account = self.find_active_by_number(kind, account_number)
        if account is None:
            raise AccountNotFoundError(AccountKind(kind).value, account_number)
        return account

    def find_active_by_numbers(
        self, kind: AccountKind, account_numbers: Iterable[str]
    ) -> dict[str, AccountBase]:
        """Resolve many numbers at once; missing numbers are simply absent."""
        numbers = set(account_numbers)
        if not numbers:
            return {}
        model = _MODELS[AccountKind(kind)]
        rows = self.session.execute(
            select(model).where(
                model.account_number.in_(numbers),
                model.deleted_at.is_(None),
            )
        ).scalars()
        return {row.account_number: row for row in rows}

    # ------------------------------------------------------------------
    # Balance mutation
    # ------------------------------------------------------------------

    def increment_balances(
        self,
        account: AccountBase,
        credit_delta,
        debit_delta,
        actor_id: UUID,
        as_of: date | None = None,
    ) -> BalancePair:
        """Add the deltas to the account's cumulative credit/debit balances."""
        delta = BalanceDelta.of(credit_delta, debit_delta)
        return self._change_balances(account, delta, actor_id, as_of, revert=False)

    def decrement_balances(
        self,
        account: AccountBase,
        credit_delta,
        debit_delta,
        actor_id: UUID,
        as_of: date | None = None,
    ) -> BalancePair:
        """Subtract the deltas from the account's cumulative balances."""
        delta = BalanceDelta.of(credit_delta, debit_delta)
        return self._change_balances(account, delta, actor_id, as_of, revert=True)

    def _change_balances(
        self,
        account: AccountBase,
        delta: BalanceDelta,
        actor_id: UUID,
        as_of: date | None,
        revert: bool,
    ) -> BalancePair:
        if as_of is not None:
            self._guard_closed_equity(account, as_of.year)

        locked = self._lock_row(account)
        current = BalancePair.of(locked.amount_credit, locked.amount_debit)
        new = current.revert(delta) if revert else current.apply(delta)

        locked.amount_credit = new.credit.amount
        locked.amount_debit = new.debit.amount
        locked.updated_by_id = actor_id
        self.session.flush()

        logger.debug(
            "account_balances_changed",
            extra={
                "account_number": locked.account_number,
                "direction": "decrement" if revert else "increment",
                "delta_credit": str(delta.credit),
                "delta_debit": str(delta.debit),
                "amount_credit": str(new.credit),
                "amount_debit": str(new.debit),
            },
        )
        return new

    def overwrite_accumulation(
        self,
        account: AccountBase,
        net_result: Money,
        actor_id: UUID,
    ) -> BalancePair:
        """
        Replace the accumulation pair with the split of a signed net result.

        The one absolute write in the Account Store.  Only PeriodClosingService
        calls it, after checking that the year is still open.  Refused once any
        closed Period Result links the account.
        """
        self._guard_frozen_accumulation(account)
        locked = self._lock_row(account)
        pair = BalancePair.from_net_result(net_result)
        locked.accumulation_amount_credit = pair.credit.amount
        locked.accumulation_amount_debit = pair.debit.amount
        locked.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "accumulation_overwritten",
            extra={
                "account_number": locked.account_number,
                "accumulation_credit": str(pair.credit),
                "accumulation_debit": str(pair.debit),
            },
        )
        return pair

    def _lock_row(self, account: AccountBase) -> AccountBase:
        model = type(account)
        return self.session.execute(
            select(model)
            .where(model.id == account.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()

    def _guard_closed_equity(self, account: AccountBase, year: int) -> None:
        if not isinstance(account, AccountDetail):
            return
        closed = self.session.execute(
            select(PeriodResult.id).where(
                PeriodResult.year == year,
                PeriodResult.is_closed.is_(True),
                PeriodResult.account_detail_number == account.account_number,
            )
        ).first()
        if closed is not None:
            logger.warning(
                "closed_period_balance_change_rejected",
                extra={"account_number": account.account_number, "year": year},
            )
            raise PeriodClosedError(year)

    def closed_year_linking(self, account_number: str) -> int | None:
        """Latest closed year whose Period Result links the account, if any."""
        return self.session.execute(
            select(PeriodResult.year)
            .where(
                PeriodResult.is_closed.is_(True),
                PeriodResult.account_detail_number == account_number,
            )
            .order_by(PeriodResult.year.desc())
        ).scalars().first()

    def _guard_frozen_accumulation(self, account: AccountBase) -> None:
        closed_year = self.closed_year_linking(account.account_number)
        if closed_year is not None:
            logger.warning(
                "closed_period_accumulation_change_rejected",
                extra={"account_number": account.account_number, "year": closed_year},
            )
            raise PeriodClosedError(closed_year)

    # ------------------------------------------------------------------
    # Soft delete
    # ------------------------------------------------------------------

    def soft_delete(
        self,
        kind: AccountKind,
        account_id: UUID,
        actor_id: UUID,
    ) -> DeletedAccount:
        """
        Tombstone an account: rewrite its number, then stamp deleted_at.

        Raises:
            AccountNotFoundError: No active account with this id.
            HasDependentsError: Ledger entries (or, for a General account,
                active Detail children) still reference it.
        """
        kind = AccountKind(kind)
        account = self.find_active_by_id(kind, account_id)
        if account is None:
            raise AccountNotFoundError(kind.value, str(account_id))

        ledger_column = (
            LedgerEntry.account_detail_id
            if kind is AccountKind.DETAIL
            else LedgerEntry.account_general_id
        )
        ledger_count = self.session.execute(
            select(func.count(LedgerEntry.id)).where(
                ledger_column == account.id,
                LedgerEntry.deleted_at.is_(None),
            )
        ).scalar_one()

        child_count = 0
        if kind is AccountKind.GENERAL:
            child_count = self.session.execute(
                select(func.count(AccountDetail.id)).where(
                    AccountDetail.account_general_id == account.id,
                    AccountDetail.deleted_at.is_(None),
                )
            ).scalar_one()

        if ledger_count or child_count:
            raise HasDependentsError(account.account_number, ledger_count, child_count)

        deleted = tombstone(
            ActiveAccount(account.account_number),
            marker=self._tombstone_marker,
        )
        account.account_number = deleted.stored_number
        account.tombstone_suffix = deleted.tombstone_suffix
        account.deleted_at = self._clock.now()
        account.deleted_by_id = actor_id
        account.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "account_soft_deleted",
            extra={
                "kind": kind.value,
                "original_number": deleted.original_number,
                "stored_number": deleted.stored_number,
            },
        )
        return deleted
