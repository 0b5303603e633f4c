"""Tests for per-group entry numbering helpers."""

from __future__ import annotations

import pytest
from sqlalchemy.dialects import sqlite

from backend.app.domain.entrystore.schema import entries_table
from backend.app.domain.entrystore.sequence import (
    max_number_statement,
    next_entry_number,
    next_number_in_records,
)

pytestmark = [pytest.mark.entrystore]

_RECORDS = [
    {"id": 1, "project": "alpha", "document_type": "dev_log", "entry_date": "2025-06-30", "entry_number": 1},
    {"id": 2, "project": "alpha", "document_type": "dev_log", "entry_date": "2025-06-30", "entry_number": 4},
    {"id": 3, "project": "alpha", "document_type": "addendum", "entry_date": "2025-06-30", "entry_number": 9},
    {"id": 4, "project": "beta", "document_type": "dev_log", "entry_date": "2025-06-30", "entry_number": 7},
]


def test_next_entry_number_starts_at_one() -> None:
    assert next_entry_number(None) == 1
    assert next_entry_number(0) == 1
    assert next_entry_number(4) == 5


def test_next_number_scopes_to_group() -> None:
    assert (
        next_number_in_records(
            _RECORDS, project="alpha", document_type="dev_log", entry_date="2025-06-30"
        )
        == 5
    )
    assert (
        next_number_in_records(
            _RECORDS, project="alpha", document_type="dev_log", entry_date="2025-07-01"
        )
        == 1
    )


def test_next_number_can_exclude_the_moving_row() -> None:
    assert (
        next_number_in_records(
            _RECORDS,
            project="alpha",
            document_type="dev_log",
            entry_date="2025-06-30",
            exclude_id=2,
        )
        == 2
    )


def test_max_number_statement_binds_group_values() -> None:
    compiled = max_number_statement(
        entries_table,
        project="alpha",
        document_type="dev_log",
        entry_date="2025-06-30",
        exclude_id=12,
    ).compile(dialect=sqlite.dialect())
    sql = str(compiled)

    assert "max(entries.entry_number)" in sql
    assert "entries.id != ?" in sql
    assert set(compiled.params.values()) == {"alpha", "dev_log", "2025-06-30", 12}
