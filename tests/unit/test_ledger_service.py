"""Unit tests for LedgerService against the in-memory store."""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import UTC, datetime
from typing import Any

import pytest

from journal_ledger.core.config import Settings
from journal_ledger.core.crypto.canonicalization import EntryLocation, compute_entry_digest
from journal_ledger.core.crypto.signing import WitnessKeyring, sign_digest
from journal_ledger.core.errors import FormatError, NotFoundError, StorageError, ValidationError
from journal_ledger.modules.anchors.service import AnchorService
from journal_ledger.modules.ledger.service import LedgerService, SignatureStatus

NEW_YEAR = datetime(2024, 1, 1, tzinfo=UTC)


class _InterleavingStore:
    """Yields to the event loop after reading tombstones, so two requests can race."""

    def __init__(self, inner: Any) -> None:
        self._inner = inner

    def __getattr__(self, name: str) -> Any:
        return getattr(self._inner, name)

    async def tombstones_for(self, original_id: str) -> list[Any]:
        found = await self._inner.tombstones_for(original_id)
        await asyncio.sleep(0)
        return found


def _flip_last_hex(digest: str) -> str:
    return digest[:-1] + ("0" if digest[-1] != "0" else "1")


@pytest.fixture
def service(store, settings, keyring, clock) -> LedgerService:
    return LedgerService(store, settings=settings, keyring=keyring, clock=clock)


class TestCommit:
    @pytest.mark.asyncio
    async def test_hello_world_verifies(self, store, settings, keyring, clock) -> None:
        clock.now = NEW_YEAR
        service = LedgerService(store, settings=settings, keyring=keyring, clock=clock)

        entry = await service.commit("U1", "Hello world")

        assert entry.created_at == NEW_YEAR
        assert entry.digest == compute_entry_digest("U1", "Hello world", NEW_YEAR, None)
        assert await service.verify(entry.id, entry.digest) is True
        assert await service.verify(entry.id, _flip_last_hex(entry.digest)) is False

    @pytest.mark.asyncio
    async def test_commit_is_signed_with_active_key(self, service, store) -> None:
        entry = await service.commit("U1", "signed")

        assert entry.sig_alg == "HS256"
        assert entry.sig_kid == "v1"
        assert entry.signature == sign_digest(entry.digest, "test-witness-secret")
        assert store.entries == [entry]

    @pytest.mark.asyncio
    async def test_commit_without_secret_is_stored_unsigned(self, store, settings, clock) -> None:
        service = LedgerService(
            store, settings=settings, keyring=WitnessKeyring({}, "v1"), clock=clock
        )

        entry = await service.commit("U1", "no key")

        assert entry.signature is None
        assert entry.sig_alg is None
        assert entry.sig_kid is None
        assert await service.verify(entry.id, entry.digest) is True

    @pytest.mark.asyncio
    async def test_created_at_truncated_to_millis(self, service, clock) -> None:
        clock.now = datetime(2024, 3, 4, 5, 6, 7, 891234, tzinfo=UTC)
        entry = await service.commit("U1", "precise")
        assert entry.created_at.microsecond == 891000

    @pytest.mark.asyncio
    async def test_location_stored_with_name(self, service) -> None:
        entry = await service.commit("U1", "here", EntryLocation(40, -3.5, name="  Madrid "))
        assert entry.location == EntryLocation(40.0, -3.5, name="Madrid")
        assert entry.digest == compute_entry_digest(
            "U1", "here", entry.created_at, EntryLocation(40.0, -3.5)
        )

    @pytest.mark.asyncio
    async def test_blank_location_name_dropped(self, service) -> None:
        entry = await service.commit("U1", "here", EntryLocation(1.0, 2.0, name="   "))
        assert entry.location is not None
        assert entry.location.name is None

    @pytest.mark.asyncio
    async def test_identical_commits_get_distinct_ids(self, service) -> None:
        first = await service.commit("U1", "same")
        second = await service.commit("U1", "same")
        assert first.id != second.id
        assert first.digest == second.digest


class TestCommitValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    async def test_blank_content_rejected(self, service, store, content) -> None:
        with pytest.raises(ValidationError, match="Content required"):
            await service.commit("U1", content)
        assert store.entries == []

    @pytest.mark.asyncio
    async def test_oversized_content_rejected(self, service, settings, store) -> None:
        with pytest.raises(ValidationError, match="too large"):
            await service.commit("U1", "x" * (settings.max_content_bytes + 1))
        assert store.entries == []

    @pytest.mark.asyncio
    async def test_size_limit_counts_utf8_bytes(self, service, settings) -> None:
        # Each "é" is two bytes in UTF-8
        with pytest.raises(ValidationError, match="too large"):
            await service.commit("U1", "é" * (settings.max_content_bytes // 2 + 1))

    @pytest.mark.asyncio
    async def test_content_at_limit_accepted(self, service, settings) -> None:
        entry = await service.commit("U1", "x" * settings.max_content_bytes)
        assert len(entry.content) == settings.max_content_bytes

    @pytest.mark.asyncio
    async def test_lone_surrogate_rejected(self, service) -> None:
        with pytest.raises(ValidationError, match="Unicode"):
            await service.commit("U1", "bad \ud800")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "location",
        [
            EntryLocation(91.0, 0.0),
            EntryLocation(-90.5, 0.0),
            EntryLocation(0.0, 180.5),
            EntryLocation(float("nan"), 0.0),
            EntryLocation(0.0, float("inf")),
            EntryLocation(None, 1.0),  # type: ignore[arg-type]
            EntryLocation("1", 1.0),  # type: ignore[arg-type]
            EntryLocation(True, 1.0),  # type: ignore[arg-type]
        ],
    )
    async def test_malformed_location_rejected(self, service, store, location) -> None:
        with pytest.raises(ValidationError):
            await service.commit("U1", "somewhere", location)
        assert store.entries == []

    @pytest.mark.asyncio
    async def test_long_location_name_rejected(self, service, settings) -> None:
        name = "n" * (settings.max_location_name_chars + 1)
        with pytest.raises(ValidationError, match="locationName"):
            await service.commit("U1", "x", EntryLocation(1.0, 1.0, name=name))

    @pytest.mark.asyncio
    async def test_boundary_coordinates_accepted(self, service) -> None:
        entry = await service.commit("U1", "pole", EntryLocation(-90, 180))
        assert entry.location == EntryLocation(-90.0, 180.0)

    @pytest.mark.asyncio
    async def test_missing_owner_rejected(self, service) -> None:
        with pytest.raises(ValidationError, match="Owner"):
            await service.commit("  ", "x")


class TestVerify:
    @pytest.mark.asyncio
    async def test_malformed_id_is_format_error(self, service) -> None:
        with pytest.raises(FormatError):
            await service.verify("not-an-id", "a" * 64)

    @pytest.mark.asyncio
    async def test_malformed_digest_is_format_error(self, service) -> None:
        entry = await service.commit("U1", "x")
        with pytest.raises(FormatError):
            await service.verify(entry.id, entry.digest.upper())

    @pytest.mark.asyncio
    async def test_unknown_id_is_not_found(self, service) -> None:
        with pytest.raises(NotFoundError):
            await service.verify("0" * 24, "a" * 64)

    @pytest.mark.asyncio
    async def test_verify_is_not_owner_scoped(self, service) -> None:
        entry = await service.commit("U1", "public")
        assert await service.verify(entry.id, entry.digest) is True

    @pytest.mark.asyncio
    async def test_tombstone_id_is_not_an_entry(self, service) -> None:
        entry = await service.commit("U1", "x")
        tombstone = await service.tombstone(entry.id, "U1")
        with pytest.raises(NotFoundError):
            await service.verify(tombstone.id, entry.digest)


class TestTombstone:
    @pytest.mark.asyncio
    async def test_tombstone_keeps_entry_verifiable_and_anchor_stable(
        self, service, store, clock
    ) -> None:
        anchors = AnchorService(store, clock=clock)
        entry = await service.commit("U1", "regret")
        await service.commit("U2", "other")
        before = await anchors.anchor_for_day(entry.created_at)

        tombstone = await service.tombstone(entry.id, "U1")

        after = await anchors.anchor_for_day(entry.created_at)
        assert tombstone.original_id == entry.id
        assert tombstone.original_digest == entry.digest
        assert await service.verify(entry.id, entry.digest) is True
        assert before.root == after.root
        assert before.count == after.count == 2
        assert store.entries[0] == entry

    @pytest.mark.asyncio
    async def test_other_owner_gets_not_found(self, service, store) -> None:
        entry = await service.commit("U1", "mine")
        with pytest.raises(NotFoundError):
            await service.tombstone(entry.id, "U2")
        assert store.tombstones == []

    @pytest.mark.asyncio
    async def test_repeat_tombstone_returns_existing(self, service, store, clock) -> None:
        entry = await service.commit("U1", "x")
        first = await service.tombstone(entry.id, "U1")
        clock.advance(minutes=5)
        second = await service.tombstone(entry.id, "U1")
        assert second == first
        assert len(store.tombstones) == 1

    @pytest.mark.asyncio
    async def test_concurrent_tombstones_write_one_row(
        self, service, store, settings, keyring, clock
    ) -> None:
        entry = await service.commit("U1", "twice")
        racing = LedgerService(
            _InterleavingStore(store), settings=settings, keyring=keyring, clock=clock
        )

        first, second = await asyncio.gather(
            racing.tombstone(entry.id, "U1"),
            racing.tombstone(entry.id, "U1"),
        )

        assert len(store.tombstones) == 1
        assert first == second == store.tombstones[0]

    @pytest.mark.asyncio
    async def test_malformed_id_is_format_error(self, service) -> None:
        with pytest.raises(FormatError):
            await service.tombstone("xyz", "U1")


class TestListEntries:
    @pytest.mark.asyncio
    async def test_pages_newest_first_with_cursor(self, service, clock) -> None:
        ids = []
        for i in range(5):
            ids.append((await service.commit("U1", f"entry {i}")).id)
            clock.advance(seconds=1)
        await service.commit("U2", "not mine")

        first = await service.list_entries("U1", limit=2)
        assert [item.entry.id for item in first.items] == [ids[4], ids[3]]
        assert first.next_cursor == ids[3]

        second = await service.list_entries("U1", limit=2, cursor=first.next_cursor)
        assert [item.entry.id for item in second.items] == [ids[2], ids[1]]

        last = await service.list_entries("U1", limit=2, cursor=second.next_cursor)
        assert [item.entry.id for item in last.items] == [ids[0]]
        assert last.next_cursor is None

    @pytest.mark.asyncio
    async def test_tombstoned_entries_flagged(self, service) -> None:
        kept = await service.commit("U1", "kept")
        gone = await service.commit("U1", "gone")
        await service.tombstone(gone.id, "U1")

        page = await service.list_entries("U1")
        flags = {item.entry.id: item.is_deleted for item in page.items}
        assert flags == {kept.id: False, gone.id: True}

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, service) -> None:
        for i in range(3):
            await service.commit("U1", f"e{i}")
        page = await service.list_entries("U1", limit=0)
        assert len(page.items) == 1

    @pytest.mark.asyncio
    async def test_malformed_cursor_is_format_error(self, service) -> None:
        with pytest.raises(FormatError):
            await service.list_entries("U1", cursor="bogus")


class TestAuditEntry:
    @pytest.mark.asyncio
    async def test_intact_signed_entry(self, service) -> None:
        entry = await service.commit("U1", "audited")
        report = await service.audit_entry(entry.id, "U1")
        assert report.digest_matches
        assert report.signature_status is SignatureStatus.VALID

    @pytest.mark.asyncio
    async def test_unsigned_entry(self, store, settings, clock) -> None:
        service = LedgerService(
            store, settings=settings, keyring=WitnessKeyring({}, "v1"), clock=clock
        )
        entry = await service.commit("U1", "unsigned")
        report = await service.audit_entry(entry.id, "U1")
        assert report.digest_matches
        assert report.signature_status is SignatureStatus.UNSIGNED

    @pytest.mark.asyncio
    async def test_tampered_content_detected(self, service, store) -> None:
        entry = await service.commit("U1", "original")
        store.entries[0] = dataclasses.replace(entry, content="edited")
        report = await service.audit_entry(entry.id, "U1")
        assert not report.digest_matches
        assert report.signature_status is SignatureStatus.VALID

    @pytest.mark.asyncio
    async def test_forged_signature_detected(self, service, store) -> None:
        entry = await service.commit("U1", "original")
        store.entries[0] = dataclasses.replace(entry, signature="00" * 32)
        report = await service.audit_entry(entry.id, "U1")
        assert report.signature_status is SignatureStatus.INVALID

    @pytest.mark.asyncio
    async def test_retired_key_reported_as_unknown(self, store, settings, keyring, clock) -> None:
        signer = LedgerService(store, settings=settings, keyring=keyring, clock=clock)
        entry = await signer.commit("U1", "old key")
        rotated = LedgerService(
            store,
            settings=Settings(witness_signing_keys={"v2": "new"}, witness_signing_kid="v2"),
            keyring=WitnessKeyring({"v2": "new"}, "v2"),
            clock=clock,
        )
        report = await rotated.audit_entry(entry.id, "U1")
        assert report.signature_status is SignatureStatus.UNKNOWN_KEY

    @pytest.mark.asyncio
    async def test_owner_scoped(self, service) -> None:
        entry = await service.commit("U1", "mine")
        with pytest.raises(NotFoundError):
            await service.audit_entry(entry.id, "U2")


class _FailingStore:
    async def insert_entry(self, entry: object) -> None:
        raise StorageError("Ledger insert_entry failed")


@pytest.mark.asyncio
async def test_storage_failure_propagates(settings, keyring, clock) -> None:
    failing: Any = _FailingStore()
    service = LedgerService(failing, settings=settings, keyring=keyring, clock=clock)
    with pytest.raises(StorageError):
        await service.commit("U1", "lost")
