"""Per-group entry numbering.

An entry's number is ``1 + max(entry_number)`` within its
``(project, document_type, entry_date)`` group. Soft-deleted rows keep their
numbers, so gaps never close. Read-max and write are not serialized across
connections; the unique constraint rejects a losing concurrent writer and the
store retries with a fresh maximum (see :data:`DEFAULT_CONFLICT_RETRIES`).
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import Table, func, select
from sqlalchemy.sql import Select

__all__ = [
    "DEFAULT_CONFLICT_RETRIES",
    "max_number_statement",
    "next_entry_number",
    "next_number_in_records",
]

DEFAULT_CONFLICT_RETRIES = 3


def next_entry_number(current_max: Optional[int]) -> int:
    return (current_max or 0) + 1


def max_number_statement(
    table: Table,
    *,
    project: str,
    document_type: str,
    entry_date: str,
    exclude_id: Optional[int] = None,
) -> Select:
    """``SELECT max(entry_number)`` for one group, optionally skipping a row."""

    stmt = select(func.max(table.c.entry_number)).where(
        table.c.project == project,
        table.c.document_type == document_type,
        table.c.entry_date == entry_date,
    )
    if exclude_id is not None:
        stmt = stmt.where(table.c.id != exclude_id)
    return stmt


def next_number_in_records(
    records: Iterable[Mapping[str, Any]],
    *,
    project: str,
    document_type: str,
    entry_date: str,
    exclude_id: Optional[int] = None,
) -> int:
    """In-memory counterpart of :func:`max_number_statement` plus one."""

    numbers = [
        record["entry_number"]
        for record in records
        if record["project"] == project
        and record["document_type"] == document_type
        and record["entry_date"] == entry_date
        and (exclude_id is None or record["id"] != exclude_id)
    ]
    return next_entry_number(max(numbers, default=None))
