"""call context and transcript tables

Revision ID: 0001_call_store_tables
Revises: 
Create Date: 2026-10-18

"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_call_store_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "call_contexts",
        sa.Column("key", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("expires_at", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_call_contexts_expires_at", "call_contexts", ["expires_at"], unique=False)

    op.create_table(
        "transcript_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("call_id", sa.String(length=128), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_transcript_entries_call_id", "transcript_entries", ["call_id"], unique=False)
    op.create_index("ix_transcript_entries_expires_at", "transcript_entries", ["expires_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_transcript_entries_expires_at", table_name="transcript_entries")
    op.drop_index("ix_transcript_entries_call_id", table_name="transcript_entries")
    op.drop_table("transcript_entries")

    op.drop_index("ix_call_contexts_expires_at", table_name="call_contexts")
    op.drop_table("call_contexts")
