"""Ledger store contract and its SQLAlchemy implementation.

The commit and anchoring services depend only on ``LedgerStore``. Any
implementation must be insert-once: entries and tombstones are never
updated or physically deleted.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from journal_ledger.core.crypto.canonicalization import (
    CANONICALIZATION_ENTRY_V1,
    EntryLocation,
)
from journal_ledger.core.errors import DuplicateTombstoneError, StorageError
from journal_ledger.core.logging import get_logger
from journal_ledger.db.models import JournalEntry, JournalTombstone

logger = get_logger(__name__)


@dataclass(frozen=True)
class EntryRecord:
    """A committed entry as seen by the services."""

    id: str
    owner_id: str
    content: str
    created_at: datetime
    location: EntryLocation | None
    digest: str
    signature: str | None = None
    sig_alg: str | None = None
    sig_kid: str | None = None
    hash_canonicalization: str = CANONICALIZATION_ENTRY_V1


@dataclass(frozen=True)
class TombstoneRecord:
    """A retraction of ``original_id``; the original stays untouched."""

    id: str
    original_id: str
    original_digest: str
    owner_id: str
    created_at: datetime


@dataclass(frozen=True)
class EntryListing:
    entry: EntryRecord
    is_deleted: bool


class LedgerStore(Protocol):
    """Persistence guarantees the commit and anchoring services rely on."""

    async def insert_entry(self, entry: EntryRecord) -> None: ...

    async def insert_tombstone(self, tombstone: TombstoneRecord) -> None:
        """Raises ``DuplicateTombstoneError`` if the entry already has a tombstone."""
        ...

    async def get_entry(
        self, entry_id: str, *, owner_id: str | None = None
    ) -> EntryRecord | None: ...

    async def tombstones_for(self, original_id: str) -> list[TombstoneRecord]: ...

    async def day_digests(self, start: datetime, end: datetime) -> list[str]:
        """Digests of entries with ``start <= created_at < end``; never tombstones."""
        ...

    async def list_entries(
        self, owner_id: str, *, limit: int, before_id: str | None = None
    ) -> list[EntryListing]:
        """Owner's entries, newest first, optionally strictly older than ``before_id``."""
        ...


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _entry_from_row(row: JournalEntry) -> EntryRecord:
    location = None
    if row.latitude is not None and row.longitude is not None:
        location = EntryLocation(
            latitude=row.latitude,
            longitude=row.longitude,
            name=row.location_name,
        )
    return EntryRecord(
        id=row.id,
        owner_id=row.owner_id,
        content=row.content,
        created_at=_as_utc(row.created_at),
        location=location,
        digest=row.digest,
        signature=row.signature,
        sig_alg=row.sig_alg,
        sig_kid=row.sig_kid,
        hash_canonicalization=row.hash_canonicalization,
    )


def _tombstone_from_row(row: JournalTombstone) -> TombstoneRecord:
    return TombstoneRecord(
        id=row.id,
        original_id=row.original_id,
        original_digest=row.original_digest,
        owner_id=row.owner_id,
        created_at=_as_utc(row.created_at),
    )


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("ledger_storage_failed", operation=operation, exc_info=True)
        raise StorageError(f"Ledger {operation} failed") from exc


class SqlLedgerStore:
    """``LedgerStore`` backed by an async SQLAlchemy session.

    Writes are flushed, not committed; the session owner decides the
    transaction boundary.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def insert_entry(self, entry: EntryRecord) -> None:
        location = entry.location
        row = JournalEntry(
            id=entry.id,
            owner_id=entry.owner_id,
            content=entry.content,
            created_at=entry.created_at,
            latitude=location.latitude if location else None,
            longitude=location.longitude if location else None,
            location_name=location.name if location else None,
            digest=entry.digest,
            hash_canonicalization=entry.hash_canonicalization,
            signature=entry.signature,
            sig_alg=entry.sig_alg,
            sig_kid=entry.sig_kid,
        )
        with _storage_errors("insert_entry"):
            self._session.add(row)
            await self._session.flush()

    async def insert_tombstone(self, tombstone: TombstoneRecord) -> None:
        row = JournalTombstone(
            id=tombstone.id,
            original_id=tombstone.original_id,
            original_digest=tombstone.original_digest,
            owner_id=tombstone.owner_id,
            created_at=tombstone.created_at,
        )
        with _storage_errors("insert_tombstone"):
            try:
                # Savepoint keeps the outer transaction usable after a unique violation
                async with self._session.begin_nested():
                    self._session.add(row)
            except IntegrityError as exc:
                if not await self.tombstones_for(tombstone.original_id):
                    raise
                raise DuplicateTombstoneError(tombstone.original_id) from exc

    async def get_entry(self, entry_id: str, *, owner_id: str | None = None) -> EntryRecord | None:
        query = select(JournalEntry).where(JournalEntry.id == entry_id)
        if owner_id is not None:
            query = query.where(JournalEntry.owner_id == owner_id)
        with _storage_errors("get_entry"):
            result = await self._session.execute(query)
            row = result.scalar_one_or_none()
        return _entry_from_row(row) if row is not None else None

    async def tombstones_for(self, original_id: str) -> list[TombstoneRecord]:
        query = (
            select(JournalTombstone)
            .where(JournalTombstone.original_id == original_id)
            .order_by(JournalTombstone.seq.asc())
        )
        with _storage_errors("tombstones_for"):
            result = await self._session.execute(query)
            rows = result.scalars().all()
        return [_tombstone_from_row(row) for row in rows]

    async def day_digests(self, start: datetime, end: datetime) -> list[str]:
        query = select(JournalEntry.digest).where(
            JournalEntry.created_at >= start,
            JournalEntry.created_at < end,
        )
        with _storage_errors("day_digests"):
            result = await self._session.execute(query)
            return [str(digest) for digest in result.scalars().all()]

    async def list_entries(
        self, owner_id: str, *, limit: int, before_id: str | None = None
    ) -> list[EntryListing]:
        is_deleted = (
            exists()
            .where(JournalTombstone.original_id == JournalEntry.id)
            .label("is_deleted")
        )
        query = select(JournalEntry, is_deleted).where(JournalEntry.owner_id == owner_id)
        if before_id is not None:
            cursor_seq = (
                select(JournalEntry.seq)
                .where(JournalEntry.id == before_id, JournalEntry.owner_id == owner_id)
                .scalar_subquery()
            )
            query = query.where(JournalEntry.seq < cursor_seq)
        query = query.order_by(JournalEntry.seq.desc()).limit(limit)

        with _storage_errors("list_entries"):
            result = await self._session.execute(query)
            rows = result.all()
        return [
            EntryListing(entry=_entry_from_row(row[0]), is_deleted=bool(row[1])) for row in rows
        ]
