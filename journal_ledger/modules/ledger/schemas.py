"""Pydantic schemas for entry API requests and responses.

Field names are camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from journal_ledger.core.crypto.canonicalization import EntryLocation, format_timestamp
from journal_ledger.modules.ledger.service import IntegrityReport, SignatureStatus
from journal_ledger.modules.ledger.store import EntryListing, EntryRecord


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EntryCreate(CamelModel):
    """Body of a commit request. Coordinates are given together or not at all."""

    content: str
    latitude: float | None = None
    longitude: float | None = None
    location_name: str | None = None

    def to_location(self) -> EntryLocation | None:
        if self.latitude is None and self.longitude is None:
            return None
        return EntryLocation(
            latitude=self.latitude,  # type: ignore[arg-type]
            longitude=self.longitude,  # type: ignore[arg-type]
            name=self.location_name,
        )


class LocationResponse(CamelModel):
    latitude: float
    longitude: float
    name: str | None = None

    @classmethod
    def from_location(cls, location: EntryLocation | None) -> LocationResponse | None:
        if location is None:
            return None
        return cls(latitude=location.latitude, longitude=location.longitude, name=location.name)


class EntryCommitResponse(CamelModel):
    """Result of a commit; ``signature``/``sigAlg``/``sigKid`` are null when unsigned."""

    id: str
    created_at: str
    digest: str
    signature: str | None = None
    sig_alg: str | None = None
    sig_kid: str | None = None
    location: LocationResponse | None = None

    @classmethod
    def from_record(cls, entry: EntryRecord) -> EntryCommitResponse:
        return cls(
            id=entry.id,
            created_at=format_timestamp(entry.created_at),
            digest=entry.digest,
            signature=entry.signature,
            sig_alg=entry.sig_alg,
            sig_kid=entry.sig_kid,
            location=LocationResponse.from_location(entry.location),
        )


class EntryResponse(EntryCommitResponse):
    """Entry in an owner listing."""

    content: str
    is_deleted: bool = False

    @classmethod
    def from_listing(cls, listing: EntryListing) -> EntryResponse:
        base = EntryCommitResponse.from_record(listing.entry)
        return cls(
            **base.model_dump(),
            content=listing.entry.content,
            is_deleted=listing.is_deleted,
        )


class EntryListResponse(CamelModel):
    entries: list[EntryResponse]
    next_cursor: str | None = None


class TombstoneResponse(CamelModel):
    tombstone_id: str


class VerifyResponse(CamelModel):
    ok: bool


class IntegrityResponse(CamelModel):
    id: str
    digest: str
    recomputed_digest: str
    digest_matches: bool
    signature_status: SignatureStatus

    @classmethod
    def from_report(cls, report: IntegrityReport) -> IntegrityResponse:
        return cls(
            id=report.entry_id,
            digest=report.digest,
            recomputed_digest=report.recomputed_digest,
            digest_matches=report.digest_matches,
            signature_status=report.signature_status,
        )


class DigestRequest(CamelModel):
    """Fields needed to recompute an entry digest without touching the ledger."""

    owner_id: str = Field(min_length=1)
    content: str
    created_at: datetime
    latitude: float | None = Field(default=None, ge=-90, le=90, allow_inf_nan=False)
    longitude: float | None = Field(default=None, ge=-180, le=180, allow_inf_nan=False)


class DigestResponse(CamelModel):
    digest: str
    canonical: str
