"""Daily Merkle anchors and inclusion proofs, recomputed from the ledger on every call.

A day's anchor covers the digests of all entries created within one UTC
calendar day, tombstoned or not; tombstone records themselves never become
leaves. Leaves are sorted lexicographically, so the root depends only on the
set of digests. Roots for the current day can still change as entries land;
once the day has elapsed the root is final.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta

from prometheus_client import Counter

from journal_ledger.core.crypto.merkle import MerkleTree, ProofStep
from journal_ledger.core.errors import NotFoundError
from journal_ledger.core.identifiers import require_record_id
from journal_ledger.core.logging import get_logger
from journal_ledger.modules.ledger.store import LedgerStore

logger = get_logger(__name__)

_anchor_requests_total = Counter(
    "journal_anchor_requests_total",
    "Daily anchor computations.",
)
_proof_requests_total = Counter(
    "journal_proof_requests_total",
    "Inclusion proof requests grouped by outcome.",
    ("result",),
)


def utc_day_window(moment: datetime | date) -> tuple[datetime, datetime]:
    """Return ``[start, end)`` of the UTC calendar day containing ``moment``."""
    if isinstance(moment, datetime):
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
        day = moment.astimezone(UTC).date()
    else:
        day = moment
    start = datetime.combine(day, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)


@dataclass(frozen=True)
class DailyAnchor:
    date: date
    count: int
    root: str | None
    closed: bool


@dataclass(frozen=True)
class InclusionProof:
    date: date
    digest: str
    root: str
    count: int
    proof: list[ProofStep]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class AnchorService:
    """Build daily anchors and inclusion proofs from a point-in-time ledger read."""

    def __init__(
        self,
        store: LedgerStore,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or _utc_now

    async def _day_tree(self, start: datetime, end: datetime) -> MerkleTree:
        digests = await self._store.day_digests(start, end)
        return MerkleTree.from_unordered(digests)

    def is_closed(self, day: date) -> bool:
        """Whether ``day`` has fully elapsed in UTC."""
        _, end = utc_day_window(day)
        return self._clock() >= end

    async def anchor_for_day(self, day: date | datetime) -> DailyAnchor:
        """Merkle anchor for the UTC day containing ``day``; root is ``None`` when empty."""
        start, end = utc_day_window(day)
        tree = await self._day_tree(start, end)
        _anchor_requests_total.inc()
        return DailyAnchor(
            date=start.date(),
            count=tree.size,
            root=tree.root,
            closed=self.is_closed(start.date()),
        )

    async def anchor_for_today(self) -> DailyAnchor:
        return await self.anchor_for_day(self._clock())

    async def proof(self, entry_id: str, owner_id: str) -> InclusionProof:
        """Inclusion proof for an owner's entry into its day's anchor.

        Raises
        ------
        FormatError
            If ``entry_id`` is malformed.
        NotFoundError
            If the entry does not exist for this owner, or its digest is not
            among the day's current leaves.
        """
        entry_id = require_record_id(entry_id)
        entry = await self._store.get_entry(entry_id, owner_id=owner_id)
        if entry is None:
            _proof_requests_total.labels(result="not_found").inc()
            raise NotFoundError("Not found")

        start, end = utc_day_window(entry.created_at)
        tree = await self._day_tree(start, end)
        index = tree.index_of(entry.digest)
        if index is None:
            _proof_requests_total.labels(result="not_anchored").inc()
            logger.warning("proof_digest_not_anchored", entry_id=entry.id, day=str(start.date()))
            raise NotFoundError("Digest not anchored")

        # A found leaf implies a non-empty tree
        assert tree.root is not None
        _proof_requests_total.labels(result="ok").inc()
        return InclusionProof(
            date=start.date(),
            digest=entry.digest,
            root=tree.root,
            count=tree.size,
            proof=tree.inclusion_proof(index),
        )
