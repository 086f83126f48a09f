"""
Posting Engine (PostingService.post_for_date).

Verifies:
- PENDING lines of one date are grouped per Detail account into PENDING
  journal entries with debit / credit totals
- Lines flip to POSTED with posted_at from the clock
- Journal totals equal the posted ledger amounts
- Forward-only guard: a second run, or a run on or before a date whose
  journal entries have balances applied, raises AlreadyPostedError
- Other dates and account balances are untouched
"""

from datetime import date, timedelta

import pytest
from sqlalchemy import select

from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import AlreadyPostedError, NothingToPostError
from ledger_kernel.models.account import AccountDetail
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.models.ledger import LedgerEntry, PostingStatus
from tests.conftest import FIXED_NOW, POSTING_DAY, make_line


def _journals(session, day=POSTING_DAY) -> dict[str, JournalEntry]:
    rows = session.execute(
        select(JournalEntry).where(JournalEntry.ledger_date == day)
    ).scalars()
    return {j.account_detail_number: j for j in rows}


class TestPostForDate:
    def test_groups_lines_per_detail_account(
        self, session, ledger_service, posting_service, chart, test_actor_id
    ):
        # Three lines and two lines touching only two Detail accounts
        ledger_service.submit_batch(
            [
                make_line(chart.cash, chart.cash_general, "debit", "100.00"),
                make_line(chart.cash, chart.cash_general, "debit", "50.00"),
                make_line(chart.revenue, chart.revenue_general, "credit", "150.00"),
            ],
            test_actor_id,
        )
        ledger_service.submit_batch(
            [
                make_line(chart.revenue, chart.revenue_general, "debit", "20.00"),
                make_line(chart.cash, chart.cash_general, "credit", "20.00"),
            ],
            test_actor_id,
        )

        result = posting_service.post_for_date(POSTING_DAY, test_actor_id)

        assert result.posted_count == 5
        assert result.group_count == 2
        assert result.posted_at == FIXED_NOW
        assert len(result.journal_entry_ids) == 2

        journals = _journals(session)
        assert set(journals) == {chart.cash, chart.revenue}

        cash = journals[chart.cash]
        assert cash.account_general_number == chart.cash_general
        assert Money.of(cash.total_debit) == Money.of("150.00")
        assert Money.of(cash.total_credit) == Money.of("20.00")
        assert cash.posting_status == PostingStatus.PENDING
        assert cash.posted_at is None

        revenue = journals[chart.revenue]
        assert Money.of(revenue.total_debit) == Money.of("20.00")
        assert Money.of(revenue.total_credit) == Money.of("150.00")

    def test_lines_flipped_to_posted(
        self, session, ledger_service, posting_service, cash_sale, test_actor_id
    ):
        ledger_service.submit_batch(cash_sale(), test_actor_id)

        posting_service.post_for_date(POSTING_DAY, test_actor_id)

        entries = list(session.execute(select(LedgerEntry)).scalars())
        assert len(entries) == 2
        assert all(e.posting_status == PostingStatus.POSTED for e in entries)
        assert all(e.posted_at is not None for e in entries)
        assert all(e.is_posted for e in entries)

    def test_journal_totals_match_ledger_amounts(
        self, session, ledger_service, posting_service, cash_sale, office_purchase, test_actor_id
    ):
        ledger_service.submit_batch(cash_sale("333.33"), test_actor_id)
        ledger_service.submit_batch(office_purchase("0.01"), test_actor_id)
        ledger_service.submit_batch(office_purchase("66.66"), test_actor_id)

        posting_service.post_for_date(POSTING_DAY, test_actor_id)

        journals = _journals(session).values()
        assert Money.sum(j.total_debit for j in journals) == Money.of("400.00")
        assert Money.sum(j.total_credit for j in journals) == Money.of("400.00")

    def test_only_target_date_posted(
        self, session, ledger_service, posting_service, cash_sale, test_actor_id
    ):
        next_day = POSTING_DAY + timedelta(days=1)
        ledger_service.submit_batch(cash_sale(), test_actor_id)
        ledger_service.submit_batch(cash_sale(day=next_day), test_actor_id)

        posting_service.post_for_date(POSTING_DAY, test_actor_id)

        pending_next = session.execute(
            select(LedgerEntry).where(LedgerEntry.ledger_date == next_day)
        ).scalars()
        assert all(e.posting_status == PostingStatus.PENDING for e in pending_next)
        assert _journals(session, next_day) == {}

    def test_balances_untouched(
        self, session, ledger_service, posting_service, cash_sale, chart, test_actor_id
    ):
        ledger_service.submit_batch(cash_sale(), test_actor_id)
        posting_service.post_for_date(POSTING_DAY, test_actor_id)

        for account in session.execute(select(AccountDetail)).scalars():
            assert Money.of(account.amount_credit).is_zero
            assert Money.of(account.amount_debit).is_zero

    def test_posting_logged(
        self, ledger_service, posting_service, cash_sale, test_actor_id, captured_logs
    ):
        ledger_service.submit_batch(cash_sale("10.00"), test_actor_id)
        posting_service.post_for_date(POSTING_DAY, test_actor_id)

        records = [r for r in captured_logs() if r["message"] == "ledger_posted"]
        assert len(records) == 1
        assert records[0]["target_date"] == POSTING_DAY.isoformat()
        assert records[0]["posted_count"] == 2
        assert records[0]["group_count"] == 2


class TestGuards:
    def test_second_run_rejected(
        self, ledger_service, posting_service, cash_sale, test_actor_id
    ):
        ledger_service.submit_batch(cash_sale(), test_actor_id)
        posting_service.post_for_date(POSTING_DAY, test_actor_id)

        with pytest.raises(AlreadyPostedError) as exc_info:
            posting_service.post_for_date(POSTING_DAY, test_actor_id)
        assert exc_info.value.ledger_date == POSTING_DAY

    def test_late_lines_on_posted_date_rejected(
        self, ledger_service, posting_service, cash_sale, test_actor_id
    ):
        ledger_service.submit_batch(cash_sale(), test_actor_id)
        posting_service.post_for_date(POSTING_DAY, test_actor_id)
        ledger_service.submit_batch(cash_sale("5.00"), test_actor_id)

        with pytest.raises(AlreadyPostedError):
            posting_service.post_for_date(POSTING_DAY, test_actor_id)

    def test_applied_journal_blocks_later_dates(
        self, ledger_service, posting_service, balance_service, cash_sale, test_actor_id
    ):
        later = POSTING_DAY + timedelta(days=1)
        ledger_service.submit_batch(cash_sale(), test_actor_id)
        ledger_service.submit_batch(cash_sale(day=later), test_actor_id)
        posting_service.post_for_date(POSTING_DAY, test_actor_id)
        balance_service.apply_balances_up_to(POSTING_DAY, test_actor_id)

        with pytest.raises(AlreadyPostedError) as exc_info:
            posting_service.post_for_date(later, test_actor_id)
        assert "balances applied" in exc_info.value.reason

    def test_applied_later_journal_does_not_block_earlier_date(
        self, ledger_service, posting_service, balance_service, cash_sale, test_actor_id
    ):
        earlier = POSTING_DAY - timedelta(days=3)
        ledger_service.submit_batch(cash_sale(), test_actor_id)
        ledger_service.submit_batch(cash_sale(day=earlier), test_actor_id)
        posting_service.post_for_date(POSTING_DAY, test_actor_id)
        balance_service.apply_balances_up_to(POSTING_DAY, test_actor_id)

        result = posting_service.post_for_date(earlier, test_actor_id)
        assert result.posted_count == 2

    def test_nothing_to_post(self, posting_service, chart, test_actor_id):
        with pytest.raises(NothingToPostError) as exc_info:
            posting_service.post_for_date(date(2024, 1, 1), test_actor_id)
        assert exc_info.value.code == "NOTHING_TO_POST"
