"""
PeriodClosingService -- yearly net result and its one-way lock.

Responsibility:
    Computes the net result (revenue minus expense) over result-type Detail
    accounts, stores it as the year's Period Result against the equity
    account, overwrites that account's accumulation pair with the signed
    result, and locks the year.

Architecture position:
    Kernel > Services -- imperative shell.  Called by LedgerEngine.

Invariants enforced:
    - Revenue: amount_credit of credit-normal result accounts.  Expense:
      amount_debit of debit-normal result accounts.  Balances are all-time
      cumulative; the year selects the Period Result row only.
    - One Period Result per year (upsert).
    - is_closed is one way.  Once set, close_period() and lock_period() fail
      and the equity account linked by the closed result keeps its
      accumulation pair for good.
    - The accumulation overwrite is the only absolute balance write.

Failure modes:
    - NoResultAccountsError: no active result-type Detail account.
    - PeriodClosedError: year already closed, or the equity account is
      linked by a closed Period Result of any year.
    - EquityAccountNotFoundError: configured equity Detail account missing.
    - PeriodResultNotFoundError: lock_period() before close_period().

Audit relevance:
    period_result_saved and period_locked log year, amount and actor.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import NetResultCalculation, PeriodCloseResult, PeriodResultInfo
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import (
    EquityAccountNotFoundError,
    NoResultAccountsError,
    PeriodClosedError,
    PeriodResultNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import AccountDetail, NormalBalance, ReportType
from ledger_kernel.models.period_result import PeriodResult
from ledger_kernel.services.account_service import AccountKind, AccountService
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period_closing")

DEFAULT_EQUITY_ACCOUNT_NUMBER = "3203"


class PeriodClosingService(BaseService):
    """Period Closing (net result) Engine."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        account_service: AccountService | None = None,
        equity_account_number: str = DEFAULT_EQUITY_ACCOUNT_NUMBER,
    ):
        super().__init__(session, clock)
        self._accounts = account_service or AccountService(session, self._clock)
        self._equity_account_number = equity_account_number

    def calculate_net_result(self, year: int) -> NetResultCalculation:
        """Compute revenue, expense and net result without writing anything."""
        accounts = list(
            self.session.execute(
                select(AccountDetail)
                .where(
                    AccountDetail.deleted_at.is_(None),
                    AccountDetail.report_type == ReportType.RESULT.value,
                )
                .order_by(AccountDetail.account_number)
            ).scalars()
        )
        if not accounts:
            raise NoResultAccountsError(year)

        revenue = Money.sum(
            a.amount_credit for a in accounts if a.normal_balance == NormalBalance.CREDIT
        ).round()
        expense = Money.sum(
            a.amount_debit for a in accounts if a.normal_balance == NormalBalance.DEBIT
        ).round()
        net = (revenue - expense).round()

        existing = self._find(year)
        existing_info = PeriodResultInfo.from_model(existing) if existing else None
        frozen_by_year = self._accounts.closed_year_linking(self._equity_account_number)
        can_save = (existing is None or not existing.is_closed) and frozen_by_year is None

        logger.debug(
            "net_result_calculated",
            extra={
                "year": year,
                "total_revenue": str(revenue),
                "total_expense": str(expense),
                "net_result": str(net),
                "accounts_processed": len(accounts),
            },
        )
        return NetResultCalculation(
            year=year,
            total_revenue=revenue,
            total_expense=expense,
            net_result=net,
            accounts_processed=len(accounts),
            existing=existing_info,
            can_save=can_save,
        )

    def close_period(self, year: int, actor_id: UUID) -> PeriodCloseResult:
        """
        Upsert the year's Period Result and overwrite the equity account's
        accumulation pair with the signed net result.
        """
        existing = self._find(year, for_update=True)
        if existing is not None and existing.is_closed:
            logger.warning("period_close_rejected", extra={"year": year})
            raise PeriodClosedError(year)

        calculation = self.calculate_net_result(year)

        equity = self._accounts.find_active_by_number(
            AccountKind.DETAIL, self._equity_account_number
        )
        if equity is None:
            raise EquityAccountNotFoundError(self._equity_account_number)

        net = calculation.net_result
        self._accounts.overwrite_accumulation(equity, net, actor_id)

        if existing is None:
            result = PeriodResult(
                year=year,
                amount=net.amount,
                account_detail_number=equity.account_number,
                account_general_number=equity.general.account_number,
                is_closed=False,
                created_by_id=actor_id,
            )
            self.session.add(result)
            operation = "created"
        else:
            result = existing
            result.amount = net.amount
            result.account_detail_number = equity.account_number
            result.account_general_number = equity.general.account_number
            result.updated_by_id = actor_id
            operation = "updated"
        self.session.flush()

        logger.info(
            "period_result_saved",
            extra={
                "year": year,
                "operation": operation,
                "net_result": str(net),
                "equity_account": equity.account_number,
            },
        )
        return PeriodCloseResult(
            year=year,
            net_result=net,
            operation=operation,
            period_result_id=result.id,
            total_revenue=calculation.total_revenue,
            total_expense=calculation.total_expense,
        )

    def lock_period(self, year: int, actor_id: UUID) -> PeriodResultInfo:
        """Set the one-way closed flag on the year's Period Result."""
        result = self._find(year, for_update=True)
        if result is None:
            raise PeriodResultNotFoundError(year)
        if result.is_closed:
            raise PeriodClosedError(year)

        result.is_closed = True
        result.closed_at = self._clock.now()
        result.closed_by_id = actor_id
        result.updated_by_id = actor_id
        self.session.flush()

        logger.info("period_locked", extra={"year": year, "amount": str(result.amount)})
        return PeriodResultInfo.from_model(result)

    def _find(self, year: int, for_update: bool = False) -> PeriodResult | None:
        stmt = select(PeriodResult).where(PeriodResult.year == year)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()
