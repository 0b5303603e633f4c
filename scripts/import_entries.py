"""Import a JSON export into the configured entry backend.

Entry numbers, the soft-delete flag and timestamps are preserved; ids are
assigned by the target. Run ``POST /api/init`` (or ``--init-schema``) first
when the target is a fresh Postgres database.
"""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

from sqlalchemy import insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from backend.app.config import load_settings
from backend.app.domain.entrystore import (
    SqlEntryStore,
    SqliteEntryStore,
    build_entry_store,
)
from backend.app.domain.entrystore.models import OPTIONAL_TEXT_FIELDS, utcnow
from backend.app.domain.entrystore.schema import entries_table
from backend.app.infra.logging import configure_logging, get_logger

DEFAULT_INPUT = Path(__file__).resolve().parent / "entries-export.json"
PROGRESS_EVERY = 10

logger = get_logger("threadbaire.scripts.import_entries")


@dataclass
class ImportResult:
    imported: int = 0
    errors: int = 0


def import_entries(
    engine: Engine, records: Iterable[Mapping[str, Any]]
) -> ImportResult:
    """Insert each record in its own transaction; failures are counted, not fatal."""

    result = ImportResult()
    for record in records:
        try:
            values = _row_values(record)
            with engine.begin() as conn:
                conn.execute(insert(entries_table).values(**values))
        except (KeyError, TypeError, ValueError, SQLAlchemyError) as exc:
            result.errors += 1
            logger.warning(
                "entry_import_failed",
                extra={"source_id": record.get("id"), "error": str(exc)},
            )
            continue
        result.imported += 1
        if result.imported % PROGRESS_EVERY == 0:
            logger.info("entry_import_progress", extra={"imported": result.imported})
    return result


def load_export(path: str | Path) -> list[Dict[str, Any]]:
    with Path(path).open("r", encoding="utf-8") as handle:
        loaded = json.load(handle)
    if not isinstance(loaded, list):
        raise ValueError(f"{path} must contain a JSON array of entries")
    return loaded


def _row_values(record: Mapping[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {
        "project": record["project"],
        "document_type": record["document_type"],
        "entry_date": record["entry_date"],
        "entry_number": int(record["entry_number"]),
        "title": record["title"],
        "is_deleted": bool(record.get("is_deleted")),
        "created_at": _parse_timestamp(record.get("created_at")),
        "updated_at": _parse_timestamp(record.get("updated_at")),
    }
    for name in OPTIONAL_TEXT_FIELDS:
        values[name] = record.get(name)
    return values


def _parse_timestamp(value: Any) -> datetime:
    if not value:
        return utcnow()
    if not isinstance(value, str):
        raise ValueError(f"timestamp must be an ISO-8601 string, got {value!r}")
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--input",
        default=str(DEFAULT_INPUT),
        help="JSON export to read (defaults to scripts/entries-export.json).",
    )
    parser.add_argument(
        "--init-schema",
        action="store_true",
        help="Create the entries table and indexes before importing.",
    )
    args = parser.parse_args()

    input_path = Path(args.input)
    if not input_path.exists():
        parser.error(f"{input_path} not found. Run scripts/export_entries.py first.")

    settings = load_settings()
    configure_logging(settings.logging.level, json_lines=settings.logging.json)
    store = build_entry_store(settings)
    if not isinstance(store, SqlEntryStore):
        parser.error(f"Unsupported target backend: {store.backend_name}")
    try:
        if args.init_schema or isinstance(store, SqliteEntryStore):
            store.init_schema()
        records = load_export(input_path)
        print(f"Importing {len(records)} entries into {store.backend_name}...")
        result = import_entries(store.engine, records)
    finally:
        store.close()
    print(f"Done! Imported: {result.imported}, Errors: {result.errors}")


if __name__ == "__main__":
    main()
