"""
Balances -- Pure balance arithmetic.

Responsibility:
    Computes new account balances from (current balance, delta).  The
    Account Store is the only caller; it loads the row, asks this module for
    the new pair and writes it back inside the caller's transaction.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Cumulative balances change only by a relative delta (apply / revert).
    - revert(apply(b, d), d) == b for every balance b and delta d.
    - Accumulation pairs are the one absolute write: from_net_result()
      builds the pair from a signed net result.
"""

from __future__ import annotations

from dataclasses import dataclass

from ledger_kernel.domain.values import Money


@dataclass(frozen=True, slots=True)
class BalanceDelta:
    """A relative change to a credit/debit balance pair."""

    credit: Money
    debit: Money

    @classmethod
    def of(cls, credit, debit) -> BalanceDelta:
        return cls(credit=Money.of(credit), debit=Money.of(debit))

    @property
    def is_zero(self) -> bool:
        return self.credit.is_zero and self.debit.is_zero


@dataclass(frozen=True, slots=True)
class BalancePair:
    """
    A credit/debit balance pair as stored on an account.

    Guarantees:
        - apply() and revert() return new, rounded pairs.
        - The stored pair is never mutated in place.
    """

    credit: Money
    debit: Money

    @classmethod
    def of(cls, credit, debit) -> BalancePair:
        return cls(credit=Money.of(credit), debit=Money.of(debit))

    @classmethod
    def zero(cls) -> BalancePair:
        return cls(credit=Money.zero(), debit=Money.zero())

    def apply(self, delta: BalanceDelta) -> BalancePair:
        """Increment both sides by the delta."""
        return BalancePair(
            credit=(self.credit + delta.credit).round(),
            debit=(self.debit + delta.debit).round(),
        )

    def revert(self, delta: BalanceDelta) -> BalancePair:
        """Decrement both sides by the delta (inverse of apply)."""
        return BalancePair(
            credit=(self.credit - delta.credit).round(),
            debit=(self.debit - delta.debit).round(),
        )

    @classmethod
    def from_net_result(cls, net_result: Money) -> BalancePair:
        """Accumulation pair for a signed net result: profit on credit, loss on debit."""
        credit, debit = net_result.split_signed()
        return cls(credit=credit, debit=debit)
