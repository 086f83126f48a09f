"""
Module: ledger_kernel.selectors.balance_selector
Responsibility: Read-only roll-up of General account balances from their
    active Detail children.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Nothing is written back.  General accounts' own balance columns are
      not touched, so the delta-only mutation rule holds.
"""

from sqlalchemy import select

from ledger_kernel.domain.dtos import GeneralRollup
from ledger_kernel.domain.values import Money
from ledger_kernel.models.account import AccountDetail, AccountGeneral
from ledger_kernel.selectors.base import BaseSelector


class BalanceSelector(BaseSelector):

    def general_rollup(self, account_number: str | None = None) -> list[GeneralRollup]:
        """
        Sum Detail balances per active General account.

        General accounts without active children appear with zero totals.
        """
        stmt = select(AccountGeneral).where(AccountGeneral.deleted_at.is_(None))
        if account_number is not None:
            stmt = stmt.where(AccountGeneral.account_number == account_number)
        generals = list(
            self.session.execute(stmt.order_by(AccountGeneral.account_number)).scalars()
        )
        if not generals:
            return []

        details = self.session.execute(
            select(AccountDetail)
            .where(
                AccountDetail.account_general_id.in_([g.id for g in generals]),
                AccountDetail.deleted_at.is_(None),
            )
            .order_by(AccountDetail.account_number)
        ).scalars()

        children: dict = {g.id: [] for g in generals}
        for detail in details:
            children[detail.account_general_id].append(detail)

        return [
            GeneralRollup(
                account_number=g.account_number,
                account_name=g.account_name,
                detail_count=len(children[g.id]),
                amount_credit=Money.sum(d.amount_credit for d in children[g.id]).round(),
                amount_debit=Money.sum(d.amount_debit for d in children[g.id]).round(),
                detail_numbers=tuple(d.account_number for d in children[g.id]),
            )
            for g in generals
        ]
