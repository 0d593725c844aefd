"""Owner-scoped inclusion proof endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from journal_ledger.core.errors import LedgerError
from journal_ledger.core.security import CurrentOwner
from journal_ledger.modules.anchors.schemas import ProofResponse
from journal_ledger.modules.ledger.dependencies import AnchorServiceDep, http_error

router = APIRouter()


@router.get("/proof/{entry_id}", response_model=ProofResponse)
async def get_inclusion_proof(
    entry_id: str,
    owner_id: CurrentOwner,
    service: AnchorServiceDep,
) -> ProofResponse:
    """Prove that one of the owner's entries is a leaf of its day's anchor."""
    try:
        proof = await service.proof(entry_id, owner_id)
    except LedgerError as exc:
        raise http_error(exc) from exc
    return ProofResponse.from_proof(proof)
