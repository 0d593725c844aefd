"""FastAPI dependencies wiring the ledger store into the services."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status

from journal_ledger.core.errors import (
    FormatError,
    LedgerError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from journal_ledger.db.session import DbSession
from journal_ledger.modules.anchors.service import AnchorService
from journal_ledger.modules.ledger.service import LedgerService
from journal_ledger.modules.ledger.store import LedgerStore, SqlLedgerStore


def get_ledger_store(db: DbSession) -> LedgerStore:
    return SqlLedgerStore(db)


Ledger = Annotated[LedgerStore, Depends(get_ledger_store)]


def get_ledger_service(store: Ledger) -> LedgerService:
    return LedgerService(store)


def get_anchor_service(store: Ledger) -> AnchorService:
    return AnchorService(store)


LedgerServiceDep = Annotated[LedgerService, Depends(get_ledger_service)]
AnchorServiceDep = Annotated[AnchorService, Depends(get_anchor_service)]


_STATUS_BY_ERROR: tuple[tuple[type[LedgerError], int], ...] = (
    (FormatError, status.HTTP_400_BAD_REQUEST),
    (ValidationError, 422),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_error(exc: LedgerError) -> HTTPException:
    """Translate a ledger error into the matching ``HTTPException``."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            detail = "Storage unavailable" if status_code == 503 else str(exc)
            return HTTPException(status_code=status_code, detail=detail)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )
