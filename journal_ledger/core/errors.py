"""
Error taxonomy for the commit, verification and anchoring paths.

A digest that does not match is a negative verification result
(``ok=False``), not an exception.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all ledger errors."""


class ValidationError(LedgerError, ValueError):
    """Entry input is malformed or oversized; raised before any hashing."""


class FormatError(LedgerError, ValueError):
    """An identifier or digest supplied to a read operation is malformed."""


class NotFoundError(LedgerError, LookupError):
    """No matching (and, where applicable, owner-scoped) record exists."""


class SigningUnavailable(LedgerError, RuntimeError):
    """No witness secret is configured for the requested key id."""

    def __init__(self, kid: str) -> None:
        super().__init__(f"No witness secret configured for key id '{kid}'")
        self.kid = kid


class StorageError(LedgerError, RuntimeError):
    """The ledger store failed to read or write."""


class DuplicateTombstoneError(LedgerError):
    """A tombstone for this entry already exists in the store."""

    def __init__(self, original_id: str) -> None:
        super().__init__(f"Entry '{original_id}' already has a tombstone")
        self.original_id = original_id
