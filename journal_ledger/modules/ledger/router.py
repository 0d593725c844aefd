"""Owner-scoped entry endpoints: commit, list, tombstone, integrity audit."""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from journal_ledger.core.errors import LedgerError
from journal_ledger.core.security import CurrentOwner
from journal_ledger.modules.ledger.dependencies import LedgerServiceDep, http_error
from journal_ledger.modules.ledger.schemas import (
    EntryCommitResponse,
    EntryCreate,
    EntryListResponse,
    EntryResponse,
    IntegrityResponse,
    TombstoneResponse,
)

router = APIRouter()


@router.post("", response_model=EntryCommitResponse, status_code=status.HTTP_201_CREATED)
async def commit_entry(
    body: EntryCreate,
    owner_id: CurrentOwner,
    service: LedgerServiceDep,
) -> EntryCommitResponse:
    """Commit a new immutable entry for the authenticated owner."""
    try:
        entry = await service.commit(owner_id, body.content, body.to_location())
    except LedgerError as exc:
        raise http_error(exc) from exc
    return EntryCommitResponse.from_record(entry)


@router.get("", response_model=EntryListResponse)
async def list_entries(
    owner_id: CurrentOwner,
    service: LedgerServiceDep,
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    cursor: str | None = Query(None, description="Id of the last entry of the previous page"),
) -> EntryListResponse:
    """List the owner's entries newest first; tombstoned entries are flagged."""
    try:
        page = await service.list_entries(owner_id, limit=limit, cursor=cursor)
    except LedgerError as exc:
        raise http_error(exc) from exc
    return EntryListResponse(
        entries=[EntryResponse.from_listing(item) for item in page.items],
        next_cursor=page.next_cursor,
    )


@router.delete(
    "/{entry_id}",
    response_model=TombstoneResponse,
    status_code=status.HTTP_201_CREATED,
)
async def tombstone_entry(
    entry_id: str,
    owner_id: CurrentOwner,
    service: LedgerServiceDep,
) -> TombstoneResponse:
    """Retract an entry by appending a tombstone; the entry itself is kept."""
    try:
        tombstone = await service.tombstone(entry_id, owner_id)
    except LedgerError as exc:
        raise http_error(exc) from exc
    return TombstoneResponse(tombstone_id=tombstone.id)


@router.get("/{entry_id}/integrity", response_model=IntegrityResponse)
async def entry_integrity(
    entry_id: str,
    owner_id: CurrentOwner,
    service: LedgerServiceDep,
) -> IntegrityResponse:
    """Recompute the entry digest and re-check its witness signature."""
    try:
        report = await service.audit_entry(entry_id, owner_id)
    except LedgerError as exc:
        raise http_error(exc) from exc
    return IntegrityResponse.from_report(report)
