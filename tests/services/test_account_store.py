"""
Account Store (AccountService).

Verifies:
- Creation of General and Detail accounts, with classification inherited
  from the parent General account
- Active numbers are unique per kind
- Balance deltas: increment / decrement are inverses and logged
- Soft delete rewrites the number to its tombstone form and frees it
- Soft delete is refused while ledger lines or Detail children reference
  the account
- The equity account of a closed year refuses balance changes
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.accounts import DeletedAccount
from ledger_kernel.domain.balances import BalancePair
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    AccountNumberExistsError,
    HasDependentsError,
    PeriodClosedError,
)
from ledger_kernel.models.account import AccountCategory, NormalBalance, ReportType
from ledger_kernel.models.period_result import PeriodResult
from ledger_kernel.services.account_service import AccountKind


class TestCreation:
    def test_detail_inherits_classification(self, account_service, chart, test_actor_id):
        detail = account_service.create_detail("4102", "Rental Revenue", chart.revenue_general, test_actor_id)
        assert detail.account_category == AccountCategory.REVENUE
        assert detail.report_type == ReportType.RESULT
        assert detail.normal_balance == NormalBalance.CREDIT
        assert detail.is_result_account
        assert detail.is_credit_normal
        assert detail.general.account_number == chart.revenue_general

    def test_detail_explicit_classification(self, account_service, chart, test_actor_id):
        detail = account_service.create_detail(
            "1103",
            "Petty Cash Contra",
            chart.cash_general,
            test_actor_id,
            normal_balance=NormalBalance.CREDIT,
        )
        assert detail.normal_balance == NormalBalance.CREDIT.value
        assert detail.account_category == AccountCategory.ASSET.value

    def test_new_accounts_start_at_zero(self, account_service, chart, test_actor_id):
        detail = account_service.create_detail("1104", "Safe", chart.cash_general, test_actor_id)
        assert Money.of(detail.amount_credit).is_zero
        assert Money.of(detail.amount_debit).is_zero
        assert Money.of(detail.accumulation_amount_credit).is_zero
        assert detail.is_active

    def test_duplicate_active_number_rejected(self, account_service, chart, test_actor_id):
        with pytest.raises(AccountNumberExistsError) as exc_info:
            account_service.create_detail(chart.cash, "Again", chart.cash_general, test_actor_id)
        assert exc_info.value.kind == "detail"
        assert exc_info.value.account_number == chart.cash

    def test_same_number_allowed_across_kinds(self, account_service, chart, test_actor_id):
        general = account_service.create_general(
            chart.cash, "Odd but legal", "asset", "balance_sheet", "debit", test_actor_id
        )
        assert general.account_number == chart.cash

    def test_unknown_parent(self, account_service, chart, test_actor_id):
        with pytest.raises(AccountNotFoundError) as exc_info:
            account_service.create_detail("9901", "Orphan", "9900", test_actor_id)
        assert exc_info.value.kind == "general"

    def test_invalid_category_rejected(self, account_service, chart, test_actor_id):
        with pytest.raises(ValueError):
            account_service.create_general("9000", "Bad", "income", "result", "credit", test_actor_id)


class TestLookups:
    def test_find_active_by_numbers_skips_missing(self, account_service, chart):
        found = account_service.find_active_by_numbers(
            AccountKind.DETAIL, [chart.cash, chart.bank, "0000"]
        )
        assert set(found) == {chart.cash, chart.bank}

    def test_find_active_by_numbers_empty(self, account_service, chart):
        assert account_service.find_active_by_numbers(AccountKind.GENERAL, []) == {}

    def test_get_active_by_number_raises(self, account_service, chart):
        with pytest.raises(AccountNotFoundError):
            account_service.get_active_by_number(AccountKind.DETAIL, "0000")


class TestBalanceDeltas:
    def test_increment_then_decrement(self, account_service, chart, test_actor_id):
        cash = account_service.get_active_by_number(AccountKind.DETAIL, chart.cash)

        after = account_service.increment_balances(cash, "0", "250.00", test_actor_id)
        assert after == BalancePair.of("0", "250.00")
        assert Money.of(cash.amount_debit) == Money.of("250.00")

        back = account_service.decrement_balances(cash, "0", "250.00", test_actor_id)
        assert back == BalancePair.zero()
        assert Money.of(cash.amount_debit).is_zero

    def test_deltas_accumulate(self, account_service, chart, test_actor_id):
        revenue = account_service.get_active_by_number(AccountKind.DETAIL, chart.revenue)
        account_service.increment_balances(revenue, Decimal("10.10"), 0, test_actor_id)
        pair = account_service.increment_balances(revenue, Decimal("0.90"), 0, test_actor_id)
        assert pair.credit == Money.of("11.00")

    def test_balance_change_logged(self, account_service, chart, test_actor_id, captured_logs):
        cash = account_service.get_active_by_number(AccountKind.DETAIL, chart.cash)
        account_service.increment_balances(cash, "0", "5", test_actor_id)

        records = [r for r in captured_logs() if r["message"] == "account_balances_changed"]
        assert len(records) == 1
        assert records[0]["account_number"] == chart.cash
        assert records[0]["direction"] == "increment"
        assert records[0]["amount_debit"] == "5.00"

    def test_closed_equity_account_frozen(
        self, session, account_service, chart, test_actor_id, deterministic_clock
    ):
        session.add(
            PeriodResult(
                year=2024,
                amount=Decimal("0"),
                account_detail_number=chart.equity,
                account_general_number=chart.equity_general,
                is_closed=True,
                closed_at=deterministic_clock.now(),
                created_by_id=test_actor_id,
            )
        )
        session.flush()
        equity = account_service.get_active_by_number(AccountKind.DETAIL, chart.equity)

        with pytest.raises(PeriodClosedError) as exc_info:
            account_service.increment_balances(
                equity, "1", "0", test_actor_id, as_of=date(2024, 6, 30)
            )
        assert exc_info.value.year == 2024

        # Other years of the same account stay open
        pair = account_service.increment_balances(
            equity, "1", "0", test_actor_id, as_of=date(2025, 1, 2)
        )
        assert pair.credit == Money.of("1")

    def test_overwrite_accumulation(self, account_service, chart, test_actor_id):
        equity = account_service.get_active_by_number(AccountKind.DETAIL, chart.equity)
        account_service.overwrite_accumulation(equity, Money.of("500"), test_actor_id)
        pair = account_service.overwrite_accumulation(equity, Money.of("-120.40"), test_actor_id)

        assert pair == BalancePair.of("0", "120.40")
        assert Money.of(equity.accumulation_amount_credit).is_zero
        assert Money.of(equity.accumulation_amount_debit) == Money.of("120.40")
        # Cumulative balances are untouched
        assert Money.of(equity.amount_credit).is_zero


class TestSoftDelete:
    def test_tombstones_number(self, account_service, chart, test_actor_id, deterministic_clock):
        detail = account_service.create_detail("1109", "Temporary", chart.cash_general, test_actor_id)

        deleted = account_service.soft_delete(AccountKind.DETAIL, detail.id, test_actor_id)

        assert isinstance(deleted, DeletedAccount)
        assert deleted.original_number == "1109"
        assert detail.account_number == deleted.stored_number
        assert detail.account_number.startswith("1109-DELETED-")
        assert detail.tombstone_suffix == deleted.tombstone_suffix
        assert detail.deleted_by_id == test_actor_id
        assert not detail.is_active
        assert detail.state == deleted

    def test_number_reusable_after_delete(self, account_service, chart, test_actor_id):
        first = account_service.create_detail("1109", "Temporary", chart.cash_general, test_actor_id)
        account_service.soft_delete(AccountKind.DETAIL, first.id, test_actor_id)

        second = account_service.create_detail("1109", "Replacement", chart.cash_general, test_actor_id)

        assert second.id != first.id
        found = account_service.get_active_by_number(AccountKind.DETAIL, "1109")
        assert found.id == second.id

    def test_deleted_account_not_found_by_id(self, account_service, chart, test_actor_id):
        detail = account_service.create_detail("1109", "Temporary", chart.cash_general, test_actor_id)
        account_service.soft_delete(AccountKind.DETAIL, detail.id, test_actor_id)

        assert account_service.find_active_by_id(AccountKind.DETAIL, detail.id) is None
        with pytest.raises(AccountNotFoundError):
            account_service.soft_delete(AccountKind.DETAIL, detail.id, test_actor_id)

    def test_unknown_id(self, account_service, chart, test_actor_id):
        with pytest.raises(AccountNotFoundError):
            account_service.soft_delete(AccountKind.GENERAL, uuid4(), test_actor_id)

    def test_general_with_children_refused(self, account_service, chart, test_actor_id):
        general = account_service.get_active_by_number(AccountKind.GENERAL, chart.cash_general)

        with pytest.raises(HasDependentsError) as exc_info:
            account_service.soft_delete(AccountKind.GENERAL, general.id, test_actor_id)

        assert exc_info.value.child_count == 2
        assert exc_info.value.ledger_count == 0
        assert general.account_number == chart.cash_general

    def test_detail_with_ledger_lines_refused(
        self, account_service, ledger_service, cash_sale, chart, test_actor_id
    ):
        ledger_service.submit_batch(cash_sale(), test_actor_id)
        cash = account_service.get_active_by_number(AccountKind.DETAIL, chart.cash)

        with pytest.raises(HasDependentsError) as exc_info:
            account_service.soft_delete(AccountKind.DETAIL, cash.id, test_actor_id)

        assert exc_info.value.ledger_count == 1
        assert exc_info.value.account_number == chart.cash

    def test_general_without_dependents(self, account_service, chart, test_actor_id):
        general = account_service.create_general(
            "9100", "Suspense", "liability", "balance_sheet", "credit", test_actor_id
        )
        deleted = account_service.soft_delete(AccountKind.GENERAL, general.id, test_actor_id)
        assert deleted.stored_number.startswith("9100-DELETED-")

    def test_deleted_parent_cannot_take_children(self, account_service, chart, test_actor_id):
        general = account_service.create_general(
            "9100", "Suspense", "liability", "balance_sheet", "credit", test_actor_id
        )
        account_service.soft_delete(AccountKind.GENERAL, general.id, test_actor_id)

        with pytest.raises(AccountNotFoundError):
            account_service.create_detail("9101", "Child", "9100", test_actor_id)
