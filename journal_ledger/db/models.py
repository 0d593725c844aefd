"""
SQLAlchemy ORM models for the journal ledger.

Both tables are append-only: rows are inserted once and never updated or
deleted. The ORM refuses such flushes and the initial migration installs
database triggers with the same effect.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from journal_ledger.core.crypto.canonicalization import CANONICALIZATION_ENTRY_V1

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
SequenceType = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class JournalEntry(Base):
    """
    A committed journal entry.

    ``digest`` is the SHA-256 of the canonical form of ``owner_id``,
    ``content``, ``created_at`` and the coordinates. ``signature``,
    ``sig_alg`` and ``sig_kid`` are null together for unsigned commits.
    """

    __tablename__ = "journal_entries"

    seq: Mapped[int] = mapped_column(
        SequenceType,
        primary_key=True,
        autoincrement=True,
        comment="Insertion order",
    )
    id: Mapped[str] = mapped_column(String(24), unique=True, nullable=False)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="UTC, millisecond precision",
    )
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)
    location_name: Mapped[str | None] = mapped_column(String(200))
    digest: Mapped[str] = mapped_column(String(64), nullable=False)
    hash_canonicalization: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default=CANONICALIZATION_ENTRY_V1,
    )
    signature: Mapped[str | None] = mapped_column(String(64))
    sig_alg: Mapped[str | None] = mapped_column(String(16))
    sig_kid: Mapped[str | None] = mapped_column(String(64))

    __table_args__ = (
        Index("ix_journal_entries_owner_seq", "owner_id", "seq"),
        Index("ix_journal_entries_created_at", "created_at"),
        Index("ix_journal_entries_digest", "digest"),
    )


class JournalTombstone(Base):
    """Append-only marker retracting an entry without touching it."""

    __tablename__ = "journal_tombstones"

    seq: Mapped[int] = mapped_column(SequenceType, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(24), unique=True, nullable=False)
    original_id: Mapped[str] = mapped_column(
        String(24),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )
    original_digest: Mapped[str] = mapped_column(String(64), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="When deletion was requested",
    )

    # At most one tombstone per entry
    __table_args__ = (Index("ix_journal_tombstones_original_id", "original_id", unique=True),)


class AppendOnlyViolation(RuntimeError):
    """An UPDATE or DELETE was attempted on an append-only ledger row."""


def _refuse_mutation(_mapper: Any, _connection: Any, target: Any) -> None:
    raise AppendOnlyViolation(
        f"{type(target).__name__} rows are append-only (id={getattr(target, 'id', None)})"
    )


for _model in (JournalEntry, JournalTombstone):
    event.listen(_model, "before_update", _refuse_mutation)
    event.listen(_model, "before_delete", _refuse_mutation)
