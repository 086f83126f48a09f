"""Pure domain layer: money, balance arithmetic, account state, DTOs and time."""

from ledger_kernel.domain.balances import BalanceDelta, BalancePair
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.values import Money

__all__ = [
    "BalanceDelta",
    "BalancePair",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Money",
]
