"""Create append-only journal_entries and journal_tombstones

Revision ID: 0001_journal_ledger
Revises:
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_journal_ledger"
down_revision = None
branch_labels = None
depends_on = None

APPEND_ONLY_TABLES = ("journal_entries", "journal_tombstones")


def _sequence_type() -> sa.types.TypeEngine:
    return sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "journal_entries",
        sa.Column(
            "seq",
            _sequence_type(),
            primary_key=True,
            autoincrement=True,
            comment="Insertion order",
        ),
        sa.Column("id", sa.String(24), nullable=False, unique=True),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            comment="UTC, millisecond precision",
        ),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("location_name", sa.String(200), nullable=True),
        sa.Column("digest", sa.String(64), nullable=False),
        sa.Column(
            "hash_canonicalization",
            sa.String(64),
            nullable=False,
            server_default="journal-entry-v1",
        ),
        sa.Column("signature", sa.String(64), nullable=True),
        sa.Column("sig_alg", sa.String(16), nullable=True),
        sa.Column("sig_kid", sa.String(64), nullable=True),
    )
    op.create_index("ix_journal_entries_owner_seq", "journal_entries", ["owner_id", "seq"])
    op.create_index("ix_journal_entries_created_at", "journal_entries", ["created_at"])
    op.create_index("ix_journal_entries_digest", "journal_entries", ["digest"])

    op.create_table(
        "journal_tombstones",
        sa.Column("seq", _sequence_type(), primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(24), nullable=False, unique=True),
        sa.Column(
            "original_id",
            sa.String(24),
            sa.ForeignKey("journal_entries.id"),
            nullable=False,
        ),
        sa.Column("original_digest", sa.String(64), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            comment="When deletion was requested",
        ),
    )
    op.create_index(
        "ix_journal_tombstones_original_id",
        "journal_tombstones",
        ["original_id"],
        unique=True,
    )

    if op.get_bind().dialect.name != "postgresql":
        return

    # Reject UPDATE/DELETE at the database level as well as in the ORM
    op.execute(
        """
        CREATE OR REPLACE FUNCTION journal_refuse_mutation() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION '% is append-only', TG_TABLE_NAME
                USING ERRCODE = 'insufficient_privilege';
        END;
        $$ LANGUAGE plpgsql
        """
    )
    for table in APPEND_ONLY_TABLES:
        op.execute(
            f"""
            CREATE TRIGGER {table}_append_only
            BEFORE UPDATE OR DELETE ON {table}
            FOR EACH ROW EXECUTE FUNCTION journal_refuse_mutation()
            """
        )


def downgrade() -> None:
    if op.get_bind().dialect.name == "postgresql":
        for table in APPEND_ONLY_TABLES:
            op.execute(f"DROP TRIGGER IF EXISTS {table}_append_only ON {table}")
        op.execute("DROP FUNCTION IF EXISTS journal_refuse_mutation()")

    op.drop_index("ix_journal_tombstones_original_id", table_name="journal_tombstones")
    op.drop_table("journal_tombstones")
    op.drop_index("ix_journal_entries_digest", table_name="journal_entries")
    op.drop_index("ix_journal_entries_created_at", table_name="journal_entries")
    op.drop_index("ix_journal_entries_owner_seq", table_name="journal_entries")
    op.drop_table("journal_entries")
