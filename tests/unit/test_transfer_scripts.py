"""Tests for the export/import data transfer scripts."""

from __future__ import annotations

import json

import pytest

from backend.app.domain.entrystore import EntryFilters, SqliteEntryStore
from scripts import import_entries as import_module
from scripts.export_entries import export_entries
from scripts.import_entries import import_entries, load_export
from tests.helpers.logging import RecordingLogger, find_log

pytestmark = [pytest.mark.scripts]


def _seed(path) -> SqliteEntryStore:
    store = SqliteEntryStore(path=path)
    store.create_entry(
        project="alpha",
        document_type="dev_log",
        entry_date="2025-06-30",
        title="First",
        status="done",
    )
    second = store.create_entry(
        project="alpha",
        document_type="dev_log",
        entry_date="2025-06-30",
        title="Second",
    )
    store.create_entry(
        project="alpha",
        document_type="addendum",
        entry_date="2025-07-01",
        title="Third",
        narrative_signal="signal",
    )
    store.delete_entry(second.id)
    return store


def test_export_includes_deleted_rows_in_id_order(tmp_path) -> None:
    source = _seed(tmp_path / "source.db")
    source.close()
    output = tmp_path / "export.json"

    count = export_entries(tmp_path / "source.db", output)

    records = json.loads(output.read_text(encoding="utf-8"))
    assert count == 3
    assert [record["title"] for record in records] == ["First", "Second", "Third"]
    assert [record["is_deleted"] for record in records] == [False, True, False]
    assert records[0]["status"] == "complete"
    assert isinstance(records[0]["created_at"], str)


def test_export_requires_existing_database(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        export_entries(tmp_path / "missing.db", tmp_path / "out.json")


def test_import_preserves_numbers_flags_and_timestamps(tmp_path) -> None:
    source = _seed(tmp_path / "source.db")
    originals = source.list_entries(EntryFilters(include_deleted=True)).items
    source.close()
    export_path = tmp_path / "export.json"
    export_entries(tmp_path / "source.db", export_path)

    target = SqliteEntryStore(path=tmp_path / "target.db")
    target.init_schema()
    try:
        result = import_entries(target.engine, load_export(export_path))

        assert result.imported == 3
        assert result.errors == 0
        imported = target.list_entries(EntryFilters(include_deleted=True)).items
        assert [
            (entry.title, entry.entry_number, entry.is_deleted, entry.created_at)
            for entry in imported
        ] == [
            (entry.title, entry.entry_number, entry.is_deleted, entry.created_at)
            for entry in originals
        ]
        follow_up = target.create_entry(
            project="alpha",
            document_type="dev_log",
            entry_date="2025-06-30",
            title="After import",
        )
        assert follow_up.entry_number == 3
    finally:
        target.close()


def test_import_counts_failed_rows(tmp_path, monkeypatch) -> None:
    recorder = RecordingLogger()
    monkeypatch.setattr(import_module, "logger", recorder)
    target = SqliteEntryStore(path=tmp_path / "target.db")
    target.init_schema()
    row = {
        "id": 7,
        "project": "alpha",
        "document_type": "dev_log",
        "entry_date": "2025-06-30",
        "entry_number": 1,
        "title": "Only once",
        "created_at": "2025-06-30T10:00:00Z",
    }
    try:
        result = import_entries(
            target.engine,
            [row, dict(row), {"id": 8, "title": "missing fields"}],
        )
    finally:
        target.close()

    assert result.imported == 1
    assert result.errors == 2
    find_log(recorder.records, level="warning", message="entry_import_failed")


def test_import_counts_malformed_values_and_continues(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(import_module, "logger", RecordingLogger())
    target = SqliteEntryStore(path=tmp_path / "target.db")
    target.init_schema()
    base = {
        "project": "alpha",
        "document_type": "dev_log",
        "entry_date": "2025-06-30",
        "title": "Entry",
    }
    records = [
        {**base, "id": 1, "entry_number": 1, "created_at": 1719741600},
        {**base, "id": 2, "entry_number": None},
        {**base, "id": 3, "entry_number": 2, "updated_at": "2025-06-30T10:00:00Z"},
    ]
    try:
        result = import_entries(target.engine, records)
        imported = target.list_entries(EntryFilters()).items
    finally:
        target.close()

    assert result.imported == 1
    assert result.errors == 2
    assert [entry.entry_number for entry in imported] == [2]


def test_load_export_rejects_non_list(tmp_path) -> None:
    path = tmp_path / "export.json"
    path.write_text(json.dumps({"entries": []}), encoding="utf-8")

    with pytest.raises(ValueError):
        load_export(path)
