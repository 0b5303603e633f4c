"""Create entries table and browse indexes.

Revision ID: 20260115_create_entries
Revises:
Create Date: 2026-01-15
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20260115_create_entries"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("project", sa.Text(), nullable=False),
        sa.Column("document_type", sa.Text(), nullable=False),
        sa.Column("entry_date", sa.String(length=10), nullable=False),
        sa.Column("entry_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("entry_type", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("narrative_signal", sa.Text(), nullable=True),
        sa.Column("next_steps", sa.Text(), nullable=True),
        sa.Column(
            "is_deleted",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "document_type IN ('addendum', 'dev_log')",
            name="ck_entries_document_type",
        ),
        sa.UniqueConstraint(
            "project",
            "document_type",
            "entry_date",
            "entry_number",
            name="uq_entries_group_number",
        ),
        sqlite_autoincrement=True,
    )
    op.create_index("idx_entries_project", "entries", ["project"])
    op.create_index("idx_entries_date", "entries", ["entry_date"])
    op.create_index(
        "idx_entries_project_doctype", "entries", ["project", "document_type"]
    )
    op.create_index(
        "idx_entries_browse",
        "entries",
        ["project", "document_type", sa.text("entry_date DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_entries_browse", table_name="entries")
    op.drop_index("idx_entries_project_doctype", table_name="entries")
    op.drop_index("idx_entries_date", table_name="entries")
    op.drop_index("idx_entries_project", table_name="entries")
    op.drop_table("entries")
