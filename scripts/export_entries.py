"""Export every entry of an SQLite database to JSON.

Soft-deleted rows are included so the export is a complete copy. Pair with
``scripts/import_entries.py`` to move data into the hosted backend.
"""

from __future__ import annotations

import argparse
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping

from sqlalchemy import select
from sqlalchemy.engine import Engine

from backend.app.config import load_settings
from backend.app.domain.entrystore.schema import entries_table
from backend.app.infra.db import create_sqlite_engine

DEFAULT_OUTPUT = Path(__file__).resolve().parent / "entries-export.json"


def read_entries(engine: Engine) -> List[Dict[str, Any]]:
    """Return all rows ordered by id, JSON-ready."""

    stmt = select(entries_table).order_by(entries_table.c.id)
    with engine.connect() as conn:
        rows = conn.execute(stmt).mappings().all()
    return [_serialize_row(row) for row in rows]


def export_entries(sqlite_path: str | Path, output_path: str | Path) -> int:
    source = Path(sqlite_path)
    if not source.exists():
        raise FileNotFoundError(f"SQLite database not found at: {source}")
    engine = create_sqlite_engine(source)
    try:
        records = read_entries(engine)
    finally:
        engine.dispose()
    Path(output_path).write_text(
        json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8"
    )
    return len(records)


def _serialize_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    record: Dict[str, Any] = {}
    for key, value in row.items():
        if isinstance(value, datetime):
            record[key] = value.isoformat()
        elif key == "is_deleted":
            record[key] = bool(value)
        else:
            record[key] = value
    return record


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--sqlite-path",
        default=None,
        help="SQLite file to read (defaults to the configured THREADBAIRE_SQLITE_PATH).",
    )
    parser.add_argument(
        "--output",
        default=str(DEFAULT_OUTPUT),
        help="JSON file to write (defaults to scripts/entries-export.json).",
    )
    args = parser.parse_args()

    sqlite_path = args.sqlite_path or load_settings().database.sqlite_path
    try:
        count = export_entries(sqlite_path, args.output)
    except FileNotFoundError as exc:
        parser.error(str(exc))
    print(f"Exported {count} entries to {args.output}")


if __name__ == "__main__":
    main()
