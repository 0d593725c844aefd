"""
Owner identity for authenticated endpoints.

Authentication happens upstream. The auth layer forwards the verified
account id in a trusted header (``Settings.owner_header``); this module only
reads it.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from journal_ledger.core.config import get_settings
from journal_ledger.core.logging import get_logger

logger = get_logger(__name__)


async def get_current_owner(request: Request) -> str:
    """
    Dependency returning the authenticated owner id.
    """
    settings = get_settings()
    owner_id = (request.headers.get(settings.owner_header) or "").strip()
    if not owner_id:
        logger.debug("owner_header_missing", header=settings.owner_header)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return owner_id


CurrentOwner = Annotated[str, Depends(get_current_owner)]
