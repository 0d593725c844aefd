"""Service layer for committing, verifying and retracting journal entries."""

from __future__ import annotations

import hmac
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from prometheus_client import Counter

from journal_ledger.core.config import Settings, get_settings
from journal_ledger.core.crypto.canonicalization import (
    CANONICALIZATION_ENTRY_V1,
    EntryLocation,
    compute_entry_digest,
    truncate_to_millis,
)
from journal_ledger.core.crypto.signing import WitnessKeyring, WitnessSignature
from journal_ledger.core.errors import (
    DuplicateTombstoneError,
    NotFoundError,
    SigningUnavailable,
    ValidationError,
)
from journal_ledger.core.identifiers import new_record_id, require_digest, require_record_id
from journal_ledger.core.logging import get_logger
from journal_ledger.modules.ledger.store import (
    EntryListing,
    EntryRecord,
    LedgerStore,
    TombstoneRecord,
)

logger = get_logger(__name__)

_commits_total = Counter(
    "journal_commits_total",
    "Entries committed, grouped by whether a witness signature was attached.",
    ("signed",),
)
_unsigned_commits_total = Counter(
    "journal_unsigned_commits_total",
    "Entries committed without a witness signature because signing was unavailable.",
)
_tombstones_total = Counter(
    "journal_tombstones_total",
    "Tombstones written.",
)
_verify_total = Counter(
    "journal_verify_total",
    "Public digest verifications grouped by outcome.",
    ("result",),
)


class SignatureStatus(str, Enum):
    """Outcome of re-checking an entry's witness signature."""

    VALID = "valid"
    INVALID = "invalid"
    UNSIGNED = "unsigned"
    UNKNOWN_KEY = "unknown_key"


@dataclass(frozen=True)
class IntegrityReport:
    entry_id: str
    digest: str
    recomputed_digest: str
    signature_status: SignatureStatus

    @property
    def digest_matches(self) -> bool:
        return hmac.compare_digest(self.digest, self.recomputed_digest)


@dataclass(frozen=True)
class EntryPage:
    items: list[EntryListing]
    next_cursor: str | None


def build_keyring(settings: Settings) -> WitnessKeyring:
    """Witness keyring for the configured keys and active key id."""
    return WitnessKeyring(settings.witness_signing_keys, settings.witness_signing_kid)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class LedgerService:
    """Commit entries, verify digests, and record tombstones.

    Holds no mutable state of its own; all state lives in the store.
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        settings: Settings | None = None,
        keyring: WitnessKeyring | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._keyring = keyring or build_keyring(self._settings)
        self._clock = clock or _utc_now

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def _validate_content(self, content: object) -> str:
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Content required")
        try:
            size = len(content.encode("utf-8"))
        except UnicodeEncodeError as exc:
            raise ValidationError("Content must be valid Unicode text") from exc
        if size > self._settings.max_content_bytes:
            raise ValidationError(
                f"Entry too large ({size} bytes; max {self._settings.max_content_bytes})"
            )
        return content

    def _validate_location(self, location: EntryLocation | None) -> EntryLocation | None:
        if location is None:
            return None
        latitude, longitude = location.latitude, location.longitude
        for label, value, bound in (("latitude", latitude, 90.0), ("longitude", longitude, 180.0)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"{label} must be a number")
            if not math.isfinite(value) or abs(value) > bound:
                raise ValidationError(f"{label} must be between -{bound:g} and {bound:g}")
        name = location.name.strip() if location.name else None
        if name and len(name) > self._settings.max_location_name_chars:
            raise ValidationError(
                f"locationName must be at most {self._settings.max_location_name_chars} characters"
            )
        return EntryLocation(
            latitude=float(latitude), longitude=float(longitude), name=name or None
        )

    def _witness(self, digest: str) -> WitnessSignature | None:
        try:
            return self._keyring.sign(digest)
        except SigningUnavailable as exc:
            _unsigned_commits_total.inc()
            logger.warning("witness_signing_unavailable", kid=exc.kid, digest=digest)
            return None

    async def commit(
        self,
        owner_id: str,
        content: str,
        location: EntryLocation | None = None,
    ) -> EntryRecord:
        """Create and persist an immutable entry.

        When no witness secret is available the entry is still committed,
        with ``signature``, ``sig_alg`` and ``sig_kid`` left empty.

        Raises
        ------
        ValidationError
            If the owner is missing, the content is blank or oversized, or the
            location is malformed.
        """
        if not isinstance(owner_id, str) or not owner_id.strip():
            raise ValidationError("Owner id required")
        content = self._validate_content(content)
        location = self._validate_location(location)

        created_at = truncate_to_millis(self._clock())
        digest = compute_entry_digest(owner_id, content, created_at, location)
        witness = self._witness(digest)

        entry = EntryRecord(
            id=new_record_id(created_at),
            owner_id=owner_id,
            content=content,
            created_at=created_at,
            location=location,
            digest=digest,
            signature=witness.signature if witness else None,
            sig_alg=witness.algorithm if witness else None,
            sig_kid=witness.kid if witness else None,
            hash_canonicalization=CANONICALIZATION_ENTRY_V1,
        )
        await self._store.insert_entry(entry)

        _commits_total.labels(signed=str(witness is not None).lower()).inc()
        logger.info(
            "entry_committed",
            entry_id=entry.id,
            digest=digest,
            signed=witness is not None,
            has_location=location is not None,
        )
        return entry

    # ------------------------------------------------------------------
    # Public verification
    # ------------------------------------------------------------------

    async def verify(self, entry_id: str, digest: str) -> bool:
        """Compare ``digest`` with the stored digest for ``entry_id``.

        A mismatch is a normal ``False`` result.

        Raises
        ------
        FormatError
            If the id or digest is not well-formed lowercase hex.
        NotFoundError
            If no entry has this id.
        """
        entry_id = require_record_id(entry_id)
        digest = require_digest(digest)

        entry = await self._store.get_entry(entry_id)
        if entry is None:
            _verify_total.labels(result="not_found").inc()
            raise NotFoundError("Not found")

        ok = hmac.compare_digest(entry.digest, digest)
        _verify_total.labels(result="match" if ok else "mismatch").inc()
        return ok

    # ------------------------------------------------------------------
    # Tombstones
    # ------------------------------------------------------------------

    async def tombstone(self, entry_id: str, owner_id: str) -> TombstoneRecord:
        """Retract an owner's entry by appending a tombstone.

        The original entry is never modified. A second request for the same
        entry returns the existing tombstone.
        """
        entry_id = require_record_id(entry_id)
        entry = await self._store.get_entry(entry_id, owner_id=owner_id)
        if entry is None:
            raise NotFoundError("Not found")

        existing = await self._store.tombstones_for(entry.id)
        if existing:
            return existing[0]

        requested_at = truncate_to_millis(self._clock())
        tombstone = TombstoneRecord(
            id=new_record_id(requested_at),
            original_id=entry.id,
            original_digest=entry.digest,
            owner_id=owner_id,
            created_at=requested_at,
        )
        try:
            await self._store.insert_tombstone(tombstone)
        except DuplicateTombstoneError:
            # A concurrent request won the insert
            logger.info("entry_tombstone_exists", entry_id=entry.id)
            return (await self._store.tombstones_for(entry.id))[0]

        _tombstones_total.inc()
        logger.info("entry_tombstoned", entry_id=entry.id, tombstone_id=tombstone.id)
        return tombstone

    # ------------------------------------------------------------------
    # Owner views
    # ------------------------------------------------------------------

    async def list_entries(
        self, owner_id: str, *, limit: int = 20, cursor: str | None = None
    ) -> EntryPage:
        """Page through an owner's entries, newest first, flagging tombstoned ones."""
        limit = min(max(limit, 1), 100)
        before_id = require_record_id(cursor) if cursor is not None else None
        rows = await self._store.list_entries(owner_id, limit=limit + 1, before_id=before_id)
        has_more = len(rows) > limit
        items = rows[:limit]
        next_cursor = items[-1].entry.id if has_more else None
        return EntryPage(items=items, next_cursor=next_cursor)

    async def audit_entry(self, entry_id: str, owner_id: str) -> IntegrityReport:
        """Recompute an owner's entry digest and re-check its witness signature."""
        entry_id = require_record_id(entry_id)
        entry = await self._store.get_entry(entry_id, owner_id=owner_id)
        if entry is None:
            raise NotFoundError("Not found")

        recomputed = compute_entry_digest(
            entry.owner_id,
            entry.content,
            entry.created_at,
            entry.location,
            canonicalization=entry.hash_canonicalization,
        )

        if entry.signature is None or entry.sig_kid is None:
            status = SignatureStatus.UNSIGNED
        else:
            try:
                valid = self._keyring.verify(
                    entry.digest, entry.signature, entry.sig_kid, entry.sig_alg
                )
                status = SignatureStatus.VALID if valid else SignatureStatus.INVALID
            except SigningUnavailable:
                status = SignatureStatus.UNKNOWN_KEY

        if not hmac.compare_digest(recomputed, entry.digest) or status is SignatureStatus.INVALID:
            logger.warning(
                "entry_integrity_mismatch",
                entry_id=entry.id,
                signature_status=status.value,
            )

        return IntegrityReport(
            entry_id=entry.id,
            digest=entry.digest,
            recomputed_digest=recomputed,
            signature_status=status,
        )
