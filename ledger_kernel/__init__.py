"""
Ledger Kernel

A double-entry posting engine with:
- Balanced bulk intake of ledger lines
- Atomic posting into per-account journal aggregates
- Exact unposting and balance reversal
- Year-end net-result closing with a one-way lock
"""

__version__ = "0.1.0"
