"""Public (unauthenticated) verification endpoints. Witness signatures are not exposed here."""

from __future__ import annotations

import rfc8785
from fastapi import APIRouter, HTTPException

from journal_ledger.core.crypto.canonicalization import (
    EntryLocation,
    canonicalize_entry,
    sha256_hex,
)
from journal_ledger.core.errors import LedgerError
from journal_ledger.modules.ledger.dependencies import LedgerServiceDep, http_error
from journal_ledger.modules.ledger.schemas import DigestRequest, DigestResponse, VerifyResponse

router = APIRouter()


@router.get("/verify/{entry_id}/{digest}", response_model=VerifyResponse)
async def verify_entry(
    entry_id: str,
    digest: str,
    service: LedgerServiceDep,
) -> VerifyResponse:
    """Check whether ``digest`` is the stored digest of entry ``entry_id``."""
    try:
        ok = await service.verify(entry_id, digest)
    except LedgerError as exc:
        raise http_error(exc) from exc
    return VerifyResponse(ok=ok)


@router.post("/digest", response_model=DigestResponse)
async def compute_digest(body: DigestRequest) -> DigestResponse:
    """Recompute an entry digest from its fields, without reading the ledger."""
    if (body.latitude is None) != (body.longitude is None):
        raise HTTPException(
            status_code=422,
            detail="latitude and longitude must be given together",
        )
    location = None
    if body.latitude is not None and body.longitude is not None:
        location = EntryLocation(latitude=body.latitude, longitude=body.longitude)
    try:
        canonical = canonicalize_entry(body.owner_id, body.content, body.created_at, location)
    except (UnicodeEncodeError, rfc8785.CanonicalizationError) as exc:
        # Lone surrogates have no UTF-8 form
        raise HTTPException(
            status_code=422,
            detail="Entry fields must be valid Unicode text",
        ) from exc
    return DigestResponse(digest=sha256_hex(canonical), canonical=canonical.decode("utf-8"))
