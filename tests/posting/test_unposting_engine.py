"""
Unposting Engine (UnpostingService.unpost_for_date).

Verifies:
- Unposting is the exact inverse of posting: lines back to PENDING with
  posted_at cleared, the date's journal entries deleted
- The date can be posted again afterwards
- Refused while journal entries of the date have balances applied
- NothingToUnpostError when no line of the date is POSTED
"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import CannotUnpostError, NothingToUnpostError
from ledger_kernel.models.account import AccountDetail
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.models.ledger import LedgerEntry, PostingStatus
from tests.conftest import FIXED_NOW, POSTING_DAY, make_line


def _journal_count(session, day=POSTING_DAY) -> int:
    return session.execute(
        select(func.count(JournalEntry.id)).where(JournalEntry.ledger_date == day)
    ).scalar_one()


@pytest.fixture
def five_lines_posted(ledger_service, posting_service, chart, test_actor_id):
    """Five lines on two Detail accounts, posted into two journal entries."""
    ledger_service.submit_batch(
        [
            make_line(chart.cash, chart.cash_general, "debit", "70.00"),
            make_line(chart.cash, chart.cash_general, "debit", "30.00"),
            make_line(chart.revenue, chart.revenue_general, "credit", "100.00"),
        ],
        test_actor_id,
    )
    ledger_service.submit_batch(
        [
            make_line(chart.cash, chart.cash_general, "debit", "8.00"),
            make_line(chart.revenue, chart.revenue_general, "credit", "8.00"),
        ],
        test_actor_id,
    )
    return posting_service.post_for_date(POSTING_DAY, test_actor_id)


class TestUnpostForDate:
    def test_restores_lines_and_deletes_journals(
        self, session, unposting_service, five_lines_posted, test_actor_id
    ):
        assert five_lines_posted.group_count == 2

        result = unposting_service.unpost_for_date(POSTING_DAY, test_actor_id)

        assert result.unposted_count == 5
        assert result.deleted_groups == 2
        assert result.unposted_at == FIXED_NOW
        assert _journal_count(session) == 0

        entries = list(session.execute(select(LedgerEntry)).scalars())
        assert len(entries) == 5
        assert all(e.posting_status == PostingStatus.PENDING for e in entries)
        assert all(e.posted_at is None for e in entries)

    def test_can_post_again(
        self, session, unposting_service, posting_service, five_lines_posted, test_actor_id
    ):
        unposting_service.unpost_for_date(POSTING_DAY, test_actor_id)

        result = posting_service.post_for_date(POSTING_DAY, test_actor_id)

        assert result.posted_count == 5
        assert result.group_count == 2
        assert _journal_count(session) == 2

    def test_post_unpost_leaves_balances_unchanged(
        self, session, unposting_service, five_lines_posted, test_actor_id
    ):
        unposting_service.unpost_for_date(POSTING_DAY, test_actor_id)

        for account in session.execute(select(AccountDetail)).scalars():
            assert Money.of(account.amount_credit).is_zero
            assert Money.of(account.amount_debit).is_zero

    def test_other_dates_untouched(
        self, session, ledger_service, posting_service, unposting_service, cash_sale, test_actor_id
    ):
        other = POSTING_DAY + timedelta(days=1)
        ledger_service.submit_batch(cash_sale(), test_actor_id)
        ledger_service.submit_batch(cash_sale(day=other), test_actor_id)
        posting_service.post_for_date(POSTING_DAY, test_actor_id)
        posting_service.post_for_date(other, test_actor_id)

        unposting_service.unpost_for_date(POSTING_DAY, test_actor_id)

        assert _journal_count(session, other) == 2
        other_lines = session.execute(
            select(LedgerEntry).where(LedgerEntry.ledger_date == other)
        ).scalars()
        assert all(e.posting_status == PostingStatus.POSTED for e in other_lines)

    def test_unposting_logged(
        self, unposting_service, five_lines_posted, test_actor_id, captured_logs
    ):
        unposting_service.unpost_for_date(POSTING_DAY, test_actor_id)

        records = [r for r in captured_logs() if r["message"] == "ledger_unposted"]
        assert len(records) == 1
        assert records[0]["unposted_count"] == 5
        assert records[0]["deleted_groups"] == 2


class TestGuards:
    def test_refused_after_balance_application(
        self, session, unposting_service, balance_service, five_lines_posted, test_actor_id
    ):
        balance_service.apply_balances_up_to(POSTING_DAY, test_actor_id)

        with pytest.raises(CannotUnpostError) as exc_info:
            unposting_service.unpost_for_date(POSTING_DAY, test_actor_id)

        assert exc_info.value.posted_journal_count == 2
        assert _journal_count(session) == 2

    def test_allowed_after_balance_reversal(
        self, unposting_service, balance_service, five_lines_posted, test_actor_id
    ):
        balance_service.apply_balances_up_to(POSTING_DAY, test_actor_id)
        balance_service.revert_balances_for(POSTING_DAY, test_actor_id)

        result = unposting_service.unpost_for_date(POSTING_DAY, test_actor_id)
        assert result.deleted_groups == 2

    def test_nothing_to_unpost(
        self, ledger_service, unposting_service, cash_sale, test_actor_id
    ):
        ledger_service.submit_batch(cash_sale(), test_actor_id)

        with pytest.raises(NothingToUnpostError) as exc_info:
            unposting_service.unpost_for_date(POSTING_DAY, test_actor_id)
        assert exc_info.value.ledger_date == POSTING_DAY
