"""
Pure balance arithmetic.

Verifies:
- apply() and revert() are exact inverses
- Results are rounded to two places
- from_net_result() builds the accumulation pair from a signed result
"""

from ledger_kernel.domain.balances import BalanceDelta, BalancePair
from ledger_kernel.domain.values import Money


def test_apply_adds_both_sides():
    pair = BalancePair.of("100.00", "40.00").apply(BalanceDelta.of("10.50", "0"))
    assert pair == BalancePair.of("110.50", "40.00")


def test_revert_is_inverse_of_apply():
    start = BalancePair.of("1234.56", "789.01")
    delta = BalanceDelta.of("0.99", "1000.00")
    assert start.apply(delta).revert(delta) == start


def test_revert_may_go_negative():
    pair = BalancePair.zero().revert(BalanceDelta.of("5", "0"))
    assert pair.credit == Money.of("-5")


def test_results_are_rounded():
    pair = BalancePair.zero().apply(BalanceDelta.of("0.005", "0.004"))
    assert pair.credit.amount == Money.of("0.01").amount
    assert pair.debit.amount == Money.of("0.00").amount


def test_delta_is_zero():
    assert BalanceDelta.of(None, "").is_zero
    assert not BalanceDelta.of("0", "0.01").is_zero


def test_from_net_result_profit():
    assert BalancePair.from_net_result(Money.of("700")) == BalancePair.of("700", "0")


def test_from_net_result_loss():
    assert BalancePair.from_net_result(Money.of("-300")) == BalancePair.of("0", "300")
