"""
Accounts -- Account lifecycle state and generated identifiers.

Responsibility:
    Models an account's lifecycle as a tagged value (ActiveAccount or
    DeletedAccount) instead of ad-hoc string mangling, and generates the two
    random tokens the kernel needs: tombstone suffixes and batch reference
    numbers.

Architecture position:
    Kernel > Domain -- pure functional core.  Randomness comes from the
    ``secrets`` module; time comes from the caller (an injected Clock).

Invariants enforced:
    - A deleted account's stored number is
      ``"{original}-{marker}-{SUFFIX}"`` where SUFFIX is six upper-case
      Crockford base32 characters, so it can never equal an active number
      that does not itself contain the marker.
    - parse_account_state(stored, deleted=...) inverts
      DeletedAccount.stored_number exactly.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime

TOMBSTONE_MARKER = "DELETED"
TOMBSTONE_SUFFIX_LENGTH = 6
REFERENCE_RANDOM_LENGTH = 6

# Crockford base32 (no I, L, O, U)
_SUFFIX_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_DIGITS = "0123456789"


@dataclass(frozen=True, slots=True)
class ActiveAccount:
    """An active account, addressable by its number."""

    number: str

    @property
    def stored_number(self) -> str:
        return self.number

    @property
    def is_active(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class DeletedAccount:
    """A soft-deleted account; its number has been freed for reuse."""

    original_number: str
    tombstone_suffix: str
    marker: str = TOMBSTONE_MARKER

    @property
    def stored_number(self) -> str:
        return f"{self.original_number}-{self.marker}-{self.tombstone_suffix}"

    @property
    def is_active(self) -> bool:
        return False


AccountState = ActiveAccount | DeletedAccount


def new_tombstone_suffix(length: int = TOMBSTONE_SUFFIX_LENGTH) -> str:
    """Random upper-case suffix for a tombstoned account number."""
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def tombstone(
    state: ActiveAccount,
    suffix: str | None = None,
    marker: str = TOMBSTONE_MARKER,
) -> DeletedAccount:
    """Transition an active account to its deleted state."""
    return DeletedAccount(
        original_number=state.number,
        tombstone_suffix=suffix or new_tombstone_suffix(),
        marker=marker,
    )


def parse_account_state(
    stored_number: str,
    deleted: bool,
    tombstone_suffix: str | None = None,
) -> AccountState:
    """
    Rebuild the tagged state from stored columns.

    Raises:
        ValueError: If a deleted row's stored number does not carry a
            ``-{marker}-{suffix}`` tombstone.
    """
    if not deleted:
        return ActiveAccount(stored_number)

    if tombstone_suffix is None:
        tombstone_suffix = stored_number.rsplit("-", 1)[-1]
    if not stored_number.endswith(f"-{tombstone_suffix}"):
        raise ValueError(f"Deleted account number is not tombstoned: {stored_number}")
    head = stored_number[: -(len(tombstone_suffix) + 1)]
    original, sep, marker = head.rpartition("-")
    if not sep or not original or not marker:
        raise ValueError(f"Deleted account number is not tombstoned: {stored_number}")
    return DeletedAccount(
        original_number=original,
        tombstone_suffix=tombstone_suffix,
        marker=marker,
    )


def generate_reference_number(now: datetime, prefix: str = "REF") -> str:
    """
    Time-ordered batch reference: ``{prefix}{YYYYMMDDHHMMSSffffff}{RANDOM6}``.

    Uniqueness is not guaranteed here; the ledger_batches unique constraint
    is the final guard.
    """
    random_part = "".join(
        secrets.choice(_DIGITS) for _ in range(REFERENCE_RANDOM_LENGTH)
    )
    return f"{prefix}{now.strftime('%Y%m%d%H%M%S%f')}{random_part}"
