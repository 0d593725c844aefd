"""Canonical form and digest of a journal entry.

The canonical form is a compact JSON object whose members appear in the
fixed order given by ``ENTRY_FIELD_ORDER``. Member values are encoded with
RFC 8785 (JCS) rules, which match ECMAScript ``JSON.stringify`` for strings
and numbers, so digests agree with entries written by earlier clients.

The field order is part of the protocol. Changing it (or the timestamp
format) makes every previously issued digest unverifiable.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import rfc8785

CANONICALIZATION_ENTRY_V1 = "journal-entry-v1"
SHA256_ALGORITHM = "sha-256"

ENTRY_FIELD_ORDER: tuple[str, ...] = ("userId", "content", "createdAt", "location")
LOCATION_FIELD_ORDER: tuple[str, ...] = ("latitude", "longitude")


@dataclass(frozen=True)
class EntryLocation:
    """Geographic position attached to an entry.

    Only the coordinates are canonicalized; ``name`` is display metadata.
    """

    latitude: float
    longitude: float
    name: str | None = None


def truncate_to_millis(value: datetime) -> datetime:
    """Return ``value`` in UTC with sub-millisecond precision dropped."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def format_timestamp(value: datetime) -> str:
    """Format ``value`` as ISO-8601 UTC with milliseconds, e.g. ``2024-01-01T00:00:00.000Z``."""
    value = truncate_to_millis(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _encode_member(name: str, value: bytes) -> bytes:
    return rfc8785.dumps(name) + b":" + value


def _encode_object(members: list[tuple[str, bytes]]) -> bytes:
    return b"{" + b",".join(_encode_member(name, value) for name, value in members) + b"}"


def _encode_location(location: EntryLocation | None) -> bytes:
    if location is None:
        return rfc8785.dumps(None)
    coordinates = {
        "latitude": float(location.latitude),
        "longitude": float(location.longitude),
    }
    return _encode_object(
        [(name, rfc8785.dumps(coordinates[name])) for name in LOCATION_FIELD_ORDER]
    )


def canonicalize_entry(
    owner_id: Any,
    content: str,
    created_at: datetime,
    location: EntryLocation | None,
) -> bytes:
    """Return the canonical UTF-8 bytes for an entry.

    Parameters
    ----------
    owner_id:
        Authoring account id; serialized through ``str()``.
    content:
        Entry text, encoded as-is (no whitespace normalization).
    created_at:
        Creation time; naive values are taken as UTC.
    location:
        Optional coordinates; ``None`` encodes as the literal ``null``.
    """
    values = {
        "userId": rfc8785.dumps(str(owner_id)),
        "content": rfc8785.dumps(content),
        "createdAt": rfc8785.dumps(format_timestamp(created_at)),
        "location": _encode_location(location),
    }
    return _encode_object([(name, values[name]) for name in ENTRY_FIELD_ORDER])


def sha256_hex(data: bytes | str) -> str:
    """SHA-256 hex digest of ``data`` (strings are UTF-8 encoded)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def compute_entry_digest(
    owner_id: Any,
    content: str,
    created_at: datetime,
    location: EntryLocation | None,
    *,
    canonicalization: str = CANONICALIZATION_ENTRY_V1,
) -> str:
    """Compute the permanent lowercase hex SHA-256 digest of an entry."""
    if canonicalization != CANONICALIZATION_ENTRY_V1:
        raise ValueError(f"Unsupported entry canonicalization: {canonicalization}")
    return sha256_hex(canonicalize_entry(owner_id, content, created_at, location))
