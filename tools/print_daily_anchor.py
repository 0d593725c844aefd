"""Print the Merkle anchor of one UTC day as JSON (for cron publication)."""

from __future__ import annotations

import argparse
import asyncio
import json
from datetime import UTC, date, datetime, timedelta

from journal_ledger.core.crypto.merkle import MerkleTree
from journal_ledger.db.session import close_db, get_background_session, init_db
from journal_ledger.modules.anchors.service import AnchorService, utc_day_window
from journal_ledger.modules.ledger.store import SqlLedgerStore


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print the daily Merkle anchor for a UTC day.")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="UTC day as YYYY-MM-DD. Defaults to yesterday, the latest closed day.",
    )
    parser.add_argument(
        "--check-proofs",
        action="store_true",
        help="Build and replay an inclusion proof for every leaf of the day.",
    )
    return parser.parse_args()


def _check_proofs(tree: MerkleTree) -> list[str]:
    """Return the leaves whose inclusion proof does not fold into the root."""
    return [
        leaf
        for index, leaf in enumerate(tree.leaves)
        if not tree.verify(leaf, tree.inclusion_proof(index))
    ]


async def _main() -> int:
    args = _parse_args()
    day = args.date or (datetime.now(UTC) - timedelta(days=1)).date()
    await init_db()
    try:
        async with get_background_session() as session:
            store = SqlLedgerStore(session)
            anchor = await AnchorService(store).anchor_for_day(day)
            summary: dict[str, object] = {
                "ran_at": datetime.now(UTC).isoformat(),
                "date": anchor.date.isoformat(),
                "count": anchor.count,
                "root": anchor.root,
                "closed": anchor.closed,
            }
            if args.check_proofs:
                start, end = utc_day_window(day)
                tree = MerkleTree.from_unordered(await store.day_digests(start, end))
                failures = _check_proofs(tree)
                summary["proofs_checked"] = tree.size
                summary["proof_failures"] = failures
        print(json.dumps(summary, indent=2))
        return 1 if summary.get("proof_failures") else 0
    finally:
        await close_db()


if __name__ == "__main__":
    raise SystemExit(asyncio.run(_main()))
