"""Table definition for entries, shared by both SQL backends and Alembic."""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.engine import Engine

from .models import DocumentType

__all__ = [
    "ENTRY_INDEXES",
    "GROUP_NUMBER_CONSTRAINT",
    "entries_table",
    "init_schema",
    "metadata",
]

metadata = MetaData()

GROUP_NUMBER_CONSTRAINT = "uq_entries_group_number"

_DOCUMENT_TYPES_SQL = ", ".join(f"'{value}'" for value in DocumentType.values())

entries_table = Table(
    "entries",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project", Text, nullable=False),
    Column("document_type", Text, nullable=False),
    Column("entry_date", String(10), nullable=False),
    Column("entry_number", Integer, nullable=False),
    Column("title", Text, nullable=False),
    Column("entry_type", Text),
    Column("status", Text),
    Column("summary", Text),
    Column("details", Text),
    Column("narrative_signal", Text),
    Column("next_steps", Text),
    Column("is_deleted", Boolean, nullable=False, server_default=false()),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    ),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    ),
    CheckConstraint(
        f"document_type IN ({_DOCUMENT_TYPES_SQL})",
        name="ck_entries_document_type",
    ),
    UniqueConstraint(
        "project",
        "document_type",
        "entry_date",
        "entry_number",
        name=GROUP_NUMBER_CONSTRAINT,
    ),
    # AUTOINCREMENT keeps SQLite from reusing ids of hard-deleted rows.
    sqlite_autoincrement=True,
)

ENTRY_INDEXES: tuple[Index, ...] = (
    Index("idx_entries_project", entries_table.c.project),
    Index("idx_entries_date", entries_table.c.entry_date),
    Index(
        "idx_entries_project_doctype",
        entries_table.c.project,
        entries_table.c.document_type,
    ),
    Index(
        "idx_entries_browse",
        entries_table.c.project,
        entries_table.c.document_type,
        entries_table.c.entry_date.desc(),
    ),
)


def init_schema(engine: Engine) -> None:
    """Create the entries table and indexes if missing; idempotent."""

    metadata.create_all(engine, checkfirst=True)
