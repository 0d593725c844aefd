"""Public daily anchor endpoints.

Anchors for days that have fully elapsed never change, so they are served
with a long immutable cache lifetime. The current day gets a short one.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Response

from journal_ledger.core.crypto.merkle import replay_inclusion_proof
from journal_ledger.core.errors import LedgerError
from journal_ledger.modules.anchors.schemas import (
    AnchorResponse,
    ProofVerifyRequest,
    ProofVerifyResponse,
)
from journal_ledger.modules.anchors.service import DailyAnchor
from journal_ledger.modules.ledger.dependencies import AnchorServiceDep, http_error

OPEN_DAY_CACHE_CONTROL = "public, max-age=60"
CLOSED_DAY_CACHE_CONTROL = "public, max-age=86400, immutable"

router = APIRouter()


def _anchor_response(anchor: DailyAnchor, response: Response) -> AnchorResponse:
    response.headers["Cache-Control"] = (
        CLOSED_DAY_CACHE_CONTROL if anchor.closed else OPEN_DAY_CACHE_CONTROL
    )
    return AnchorResponse.from_anchor(anchor)


@router.get("/anchors/today", response_model=AnchorResponse)
async def today_anchor(service: AnchorServiceDep, response: Response) -> AnchorResponse:
    """Anchor for the current UTC day, which may still grow."""
    try:
        anchor = await service.anchor_for_today()
    except LedgerError as exc:
        raise http_error(exc) from exc
    return _anchor_response(anchor, response)


@router.get("/anchors/{day}", response_model=AnchorResponse)
async def day_anchor(day: date, service: AnchorServiceDep, response: Response) -> AnchorResponse:
    """Anchor for an arbitrary UTC day given as ``YYYY-MM-DD``."""
    try:
        anchor = await service.anchor_for_day(day)
    except LedgerError as exc:
        raise http_error(exc) from exc
    return _anchor_response(anchor, response)


@router.post("/proofs/verify", response_model=ProofVerifyResponse)
async def verify_proof(body: ProofVerifyRequest) -> ProofVerifyResponse:
    """Fold a proof into its digest and compare the result with ``root``."""
    computed = replay_inclusion_proof(body.digest, [step.to_step() for step in body.proof])
    return ProofVerifyResponse(ok=computed == body.root, computed_root=computed)
