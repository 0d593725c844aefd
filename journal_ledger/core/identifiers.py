"""
Record identifier construction and format checks.
"""

from __future__ import annotations

import re
import secrets
from datetime import datetime

from journal_ledger.core.errors import FormatError

RECORD_ID_HEX_LENGTH = 24
DIGEST_HEX_LENGTH = 64

_RECORD_ID_RE = re.compile(rf"^[a-f0-9]{{{RECORD_ID_HEX_LENGTH}}}$")
_DIGEST_RE = re.compile(rf"^[a-f0-9]{{{DIGEST_HEX_LENGTH}}}$")


def new_record_id(now: datetime) -> str:
    """
    Build a fresh 24-hex record id.

    Layout: 4 bytes of big-endian Unix seconds, then 8 random bytes.
    """
    seconds = int(now.timestamp()) & 0xFFFFFFFF
    return f"{seconds:08x}{secrets.token_hex(8)}"


def is_record_id(value: object) -> bool:
    return isinstance(value, str) and _RECORD_ID_RE.fullmatch(value) is not None


def is_digest(value: object) -> bool:
    return isinstance(value, str) and _DIGEST_RE.fullmatch(value) is not None


def require_record_id(value: object) -> str:
    """Return ``value`` if it is a well-formed record id, else raise ``FormatError``."""
    if not is_record_id(value):
        raise FormatError(f"id must be {RECORD_ID_HEX_LENGTH} lowercase hex characters")
    return str(value)


def require_digest(value: object) -> str:
    """Return ``value`` if it is a well-formed digest, else raise ``FormatError``."""
    if not is_digest(value):
        raise FormatError(f"digest must be {DIGEST_HEX_LENGTH} lowercase hex characters")
    return str(value)
