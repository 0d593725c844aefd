"""
Pytest fixtures for ledger testing.
Provides an in-memory ledger store, a controllable clock, and settings.
"""

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest

from journal_ledger.core.config import Settings, get_settings
from journal_ledger.core.crypto.signing import WitnessKeyring
from journal_ledger.core.errors import DuplicateTombstoneError
from journal_ledger.modules.ledger.store import EntryListing, EntryRecord, TombstoneRecord

TEST_SECRET = "test-witness-secret"


class InMemoryLedgerStore:
    """Insert-once ``LedgerStore`` kept in Python lists."""

    def __init__(self) -> None:
        self.entries: list[EntryRecord] = []
        self.tombstones: list[TombstoneRecord] = []

    async def insert_entry(self, entry: EntryRecord) -> None:
        assert all(existing.id != entry.id for existing in self.entries)
        self.entries.append(entry)

    async def insert_tombstone(self, tombstone: TombstoneRecord) -> None:
        assert all(existing.id != tombstone.id for existing in self.tombstones)
        if any(existing.original_id == tombstone.original_id for existing in self.tombstones):
            raise DuplicateTombstoneError(tombstone.original_id)
        self.tombstones.append(tombstone)

    async def get_entry(self, entry_id: str, *, owner_id: str | None = None) -> EntryRecord | None:
        for entry in self.entries:
            if entry.id == entry_id and (owner_id is None or entry.owner_id == owner_id):
                return entry
        return None

    async def tombstones_for(self, original_id: str) -> list[TombstoneRecord]:
        return [t for t in self.tombstones if t.original_id == original_id]

    async def day_digests(self, start: datetime, end: datetime) -> list[str]:
        return [e.digest for e in self.entries if start <= e.created_at < end]

    async def list_entries(
        self, owner_id: str, *, limit: int, before_id: str | None = None
    ) -> list[EntryListing]:
        owned = [e for e in self.entries if e.owner_id == owner_id]
        owned.reverse()
        if before_id is not None:
            ids = [e.id for e in owned]
            if before_id not in ids:
                return []
            owned = owned[ids.index(before_id) + 1 :]
        deleted = {t.original_id for t in self.tombstones}
        return [EntryListing(entry=e, is_deleted=e.id in deleted) for e in owned[:limit]]


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="development",
        witness_signing_keys={"v1": TEST_SECRET},
        witness_signing_kid="v1",
        max_content_bytes=1024,
        max_location_name_chars=20,
    )


@pytest.fixture
def keyring(settings: Settings) -> WitnessKeyring:
    return WitnessKeyring(settings.witness_signing_keys, settings.witness_signing_kid)
