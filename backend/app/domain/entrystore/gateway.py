"""EntryStore implementations."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock, RLock
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Protocol, TypeVar

from sqlalchemy import Table, delete, func, insert, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.sql.elements import ColumnElement

from ...config import Settings
from ...infra.db import (
    SQLITE_LOWER_FUNCTION,
    create_postgres_engine,
    create_sqlite_engine,
)
from ...infra.logging import get_logger
from ...infra.metrics import get_metrics_client
from .labels import normalize_status
from .models import (
    OPTIONAL_TEXT_FIELDS,
    UPDATABLE_FIELDS,
    Entry,
    EntryListResult,
    EntryNumberConflictError,
    EntryStoreError,
    EntryValidationError,
    utcnow,
    validate_document_type,
    validate_entry_date,
    validate_title,
)
from .query import (
    LIKE_ESCAPE,
    EntryFilters,
    build_predicate,
    compile_predicate,
    matches_all,
    order_by_columns,
    sort_key,
)
from .schema import GROUP_NUMBER_CONSTRAINT, entries_table, init_schema
from .sequence import (
    DEFAULT_CONFLICT_RETRIES,
    max_number_statement,
    next_entry_number,
    next_number_in_records,
)

__all__ = [
    "EntryStore",
    "InMemoryEntryStore",
    "PostgresEntryStore",
    "SqlEntryStore",
    "SqliteEntryStore",
    "build_entry_store",
]

logger = get_logger(__name__)

T = TypeVar("T")


class EntryStore(Protocol):  # pragma: no cover
    """Data-access contract shared by every backend."""

    backend_name: str

    def init_schema(self) -> None: ...

    def list_entries(self, filters: EntryFilters) -> EntryListResult: ...

    def get_entry(self, entry_id: int) -> Optional[Entry]: ...

    def create_entry(
        self,
        *,
        project: str,
        document_type: str,
        entry_date: str,
        title: str,
        entry_type: Optional[str] = None,
        status: Optional[str] = None,
        summary: Optional[str] = None,
        details: Optional[str] = None,
        narrative_signal: Optional[str] = None,
        next_steps: Optional[str] = None,
    ) -> Entry: ...

    def update_entry(
        self, entry_id: int, changes: Mapping[str, Any]
    ) -> Optional[Entry]: ...

    def delete_entry(self, entry_id: int, *, hard: bool = False) -> bool: ...

    def close(self) -> None: ...


class InMemoryEntryStore(EntryStore):
    """Dictionary-backed store used for tests and local experiments."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._lock = RLock()
        self._records: Dict[int, Dict[str, Any]] = {}
        self._next_id = 1

    def init_schema(self) -> None:
        return None

    def list_entries(self, filters: EntryFilters) -> EntryListResult:
        clauses = build_predicate(filters)
        with self._lock:
            matching = [
                dict(record)
                for record in self._records.values()
                if matches_all(clauses, record)
            ]
        matching.sort(key=sort_key, reverse=True)
        start = min(filters.effective_offset, len(matching))
        end = start + filters.effective_limit
        return EntryListResult(
            items=[_row_to_entry(record) for record in matching[start:end]],
            total=len(matching),
        )

    def get_entry(self, entry_id: int) -> Optional[Entry]:
        with self._lock:
            record = self._records.get(entry_id)
            if record is None:
                return None
            return _row_to_entry(record)

    def create_entry(self, **fields: Any) -> Entry:
        values = _prepare_create(**fields)
        with self._lock:
            now = utcnow()
            record = {
                "id": self._next_id,
                **values,
                "entry_number": next_number_in_records(
                    self._records.values(),
                    project=values["project"],
                    document_type=values["document_type"],
                    entry_date=values["entry_date"],
                ),
                "is_deleted": False,
                "created_at": now,
                "updated_at": now,
            }
            self._records[record["id"]] = record
            self._next_id += 1
            return _row_to_entry(record)

    def update_entry(
        self, entry_id: int, changes: Mapping[str, Any]
    ) -> Optional[Entry]:
        prepared = _prepare_changes(changes)
        with self._lock:
            record = self._records.get(entry_id)
            if record is None:
                return None
            updated = dict(record)
            new_date = prepared.pop("entry_date", None)
            if new_date is not None and new_date != record["entry_date"]:
                updated["entry_number"] = next_number_in_records(
                    self._records.values(),
                    project=record["project"],
                    document_type=record["document_type"],
                    entry_date=new_date,
                    exclude_id=entry_id,
                )
                updated["entry_date"] = new_date
            updated.update(prepared)
            updated["updated_at"] = utcnow()
            self._records[entry_id] = updated
            return _row_to_entry(updated)

    def delete_entry(self, entry_id: int, *, hard: bool = False) -> bool:
        with self._lock:
            if entry_id not in self._records:
                return False
            if hard:
                del self._records[entry_id]
            else:
                record = dict(self._records[entry_id])
                record["is_deleted"] = True
                record["updated_at"] = utcnow()
                self._records[entry_id] = record
            return True

    def close(self) -> None:
        return None


class SqlEntryStore(EntryStore):
    """SQLAlchemy Core store; subclasses supply the engine and match operator."""

    backend_name = "sql"

    def __init__(
        self,
        engine: Engine,
        *,
        table: Table = entries_table,
        conflict_retries: int = DEFAULT_CONFLICT_RETRIES,
    ) -> None:
        self._engine = engine
        self._entries = table
        self._conflict_retries = max(conflict_retries, 1)

    @property
    def engine(self) -> Engine:
        return self._engine

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------
    def _text_match(self, column: ColumnElement, pattern: str) -> ColumnElement:
        raise NotImplementedError

    def _ensure_ready(self) -> None:
        """Hook run before every operation; the embedded backend creates its schema here."""

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------
    def init_schema(self) -> None:
        with self._storage_errors("init_schema"):
            init_schema(self._engine)
        logger.info(
            "entry_schema_initialized", extra={"backend": self.backend_name}
        )

    def list_entries(self, filters: EntryFilters) -> EntryListResult:
        table = self._entries
        conditions = compile_predicate(
            build_predicate(filters), table, self._text_match
        )
        stmt = (
            select(table)
            .where(*conditions)
            .order_by(*order_by_columns(table))
            .limit(filters.effective_limit)
            .offset(filters.effective_offset)
        )
        count_stmt = select(func.count()).select_from(table).where(*conditions)
        with self._storage_errors("list_entries"):
            self._ensure_ready()
            with self._engine.begin() as conn:
                rows = conn.execute(stmt).mappings().all()
                total = int(conn.execute(count_stmt).scalar_one())
        return EntryListResult(
            items=[_row_to_entry(row) for row in rows],
            total=total,
        )

    def get_entry(self, entry_id: int) -> Optional[Entry]:
        with self._storage_errors("get_entry"):
            self._ensure_ready()
            with self._engine.begin() as conn:
                row = self._fetch_row(conn, entry_id)
        if row is None:
            return None
        return _row_to_entry(row)

    def create_entry(self, **fields: Any) -> Entry:
        values = _prepare_create(**fields)
        table = self._entries

        def _insert(conn: Connection) -> Mapping[str, Any]:
            current_max = conn.execute(
                max_number_statement(
                    table,
                    project=values["project"],
                    document_type=values["document_type"],
                    entry_date=values["entry_date"],
                )
            ).scalar()
            now = utcnow()
            result = conn.execute(
                insert(table).values(
                    **values,
                    entry_number=next_entry_number(current_max),
                    is_deleted=False,
                    created_at=now,
                    updated_at=now,
                )
            )
            row = self._fetch_row(conn, result.inserted_primary_key[0])
            if row is None:  # pragma: no cover
                raise EntryStoreError("inserted entry could not be read back")
            return row

        with self._storage_errors("create_entry"):
            self._ensure_ready()
            row = self._with_conflict_retry(
                _insert,
                context={
                    "project": values["project"],
                    "document_type": values["document_type"],
                    "entry_date": values["entry_date"],
                },
            )
        return _row_to_entry(row)

    def update_entry(
        self, entry_id: int, changes: Mapping[str, Any]
    ) -> Optional[Entry]:
        prepared = _prepare_changes(changes)
        table = self._entries

        def _update(conn: Connection) -> Optional[Mapping[str, Any]]:
            current = self._fetch_row(conn, entry_id)
            if current is None:
                return None
            values = dict(prepared)
            new_date = values.pop("entry_date", None)
            if new_date is not None and new_date != current["entry_date"]:
                current_max = conn.execute(
                    max_number_statement(
                        table,
                        project=current["project"],
                        document_type=current["document_type"],
                        entry_date=new_date,
                        exclude_id=entry_id,
                    )
                ).scalar()
                values["entry_date"] = new_date
                values["entry_number"] = next_entry_number(current_max)
            values["updated_at"] = utcnow()
            conn.execute(update(table).where(table.c.id == entry_id).values(**values))
            return self._fetch_row(conn, entry_id)

        with self._storage_errors("update_entry"):
            self._ensure_ready()
            row = self._with_conflict_retry(_update, context={"entry_id": entry_id})
        if row is None:
            return None
        return _row_to_entry(row)

    def delete_entry(self, entry_id: int, *, hard: bool = False) -> bool:
        table = self._entries
        if hard:
            stmt = delete(table).where(table.c.id == entry_id)
        else:
            stmt = (
                update(table)
                .where(table.c.id == entry_id)
                .values(is_deleted=True, updated_at=utcnow())
            )
        with self._storage_errors("delete_entry"):
            self._ensure_ready()
            with self._engine.begin() as conn:
                affected = conn.execute(stmt).rowcount
        return affected > 0

    def close(self) -> None:
        self._engine.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _fetch_row(self, conn: Connection, entry_id: int) -> Optional[Mapping[str, Any]]:
        stmt = select(self._entries).where(self._entries.c.id == entry_id)
        return conn.execute(stmt).mappings().first()

    def _with_conflict_retry(
        self,
        operation: Callable[[Connection], T],
        *,
        context: Dict[str, Any],
    ) -> T:
        """Run ``operation`` in a transaction, retrying on entry number collisions.

        Other integrity failures propagate on the first attempt.
        """

        for attempt in range(1, self._conflict_retries + 1):
            try:
                with self._engine.begin() as conn:
                    return operation(conn)
            except IntegrityError as exc:
                if not _is_number_conflict(exc):
                    raise
                get_metrics_client().increment("entry_number_conflicts_total")
                logger.warning(
                    "entry_number_conflict_retry",
                    extra={
                        **context,
                        "attempt": attempt,
                        "max_attempts": self._conflict_retries,
                        "backend": self.backend_name,
                    },
                )
        raise EntryNumberConflictError(attempts=self._conflict_retries, context=context)

    @contextmanager
    def _storage_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            raise EntryStoreError(
                f"{self.backend_name} {operation} failed: {exc}"
            ) from exc


class SqliteEntryStore(SqlEntryStore):
    """Embedded single-file backend; creates its schema on first access."""

    backend_name = "sqlite"

    def __init__(
        self,
        engine: Optional[Engine] = None,
        *,
        path: str | Path | None = None,
        echo: bool = False,
        conflict_retries: int = DEFAULT_CONFLICT_RETRIES,
    ) -> None:
        super().__init__(
            engine or create_sqlite_engine(path or "entries.db", echo=echo),
            conflict_retries=conflict_retries,
        )
        self._schema_lock = Lock()
        self._schema_ready = False

    def init_schema(self) -> None:
        with self._schema_lock:
            super().init_schema()
            self._schema_ready = True

    def _ensure_ready(self) -> None:
        if self._schema_ready:
            return
        with self._schema_lock:
            if not self._schema_ready:
                init_schema(self._engine)
                self._schema_ready = True
                logger.info(
                    "entry_schema_initialized",
                    extra={"backend": self.backend_name, "lazy": True},
                )

    def _text_match(self, column: ColumnElement, pattern: str) -> ColumnElement:
        lowered = getattr(func, SQLITE_LOWER_FUNCTION)(column)
        return lowered.like(pattern.lower(), escape=LIKE_ESCAPE)


class PostgresEntryStore(SqlEntryStore):
    """Hosted backend; schema is created through ``init_schema`` or Alembic."""

    backend_name = "postgres"

    def __init__(
        self,
        engine: Optional[Engine] = None,
        *,
        url: Optional[str] = None,
        echo: bool = False,
        conflict_retries: int = DEFAULT_CONFLICT_RETRIES,
    ) -> None:
        if engine is None:
            if not url:
                raise ValueError("PostgresEntryStore requires an engine or url")
            engine = create_postgres_engine(url, echo=echo)
        super().__init__(engine, conflict_retries=conflict_retries)

    def _text_match(self, column: ColumnElement, pattern: str) -> ColumnElement:
        return column.ilike(pattern, escape=LIKE_ESCAPE)


def build_entry_store(settings: Settings) -> EntryStore:
    """Select the backend once: a Postgres URL wins, otherwise the SQLite file."""

    database = settings.database
    store: EntryStore
    if database.postgres_url:
        store = PostgresEntryStore(url=database.postgres_url, echo=database.echo)
    else:
        store = SqliteEntryStore(path=database.sqlite_path, echo=database.echo)
    logger.info(
        "entry_store_selected",
        extra={"backend": store.backend_name, "environment": settings.environment},
    )
    return store


def _prepare_create(
    *,
    project: str,
    document_type: str,
    entry_date: str,
    title: str,
    entry_type: Optional[str] = None,
    status: Optional[str] = None,
    summary: Optional[str] = None,
    details: Optional[str] = None,
    narrative_signal: Optional[str] = None,
    next_steps: Optional[str] = None,
) -> Dict[str, Any]:
    if not isinstance(project, str) or not project.strip():
        raise EntryValidationError("project", "project is required")
    values: Dict[str, Any] = {
        "project": project,
        "document_type": validate_document_type(document_type),
        "entry_date": validate_entry_date(entry_date),
        "title": validate_title(title),
    }
    optional = {
        "entry_type": entry_type,
        "status": status,
        "summary": summary,
        "details": details,
        "narrative_signal": narrative_signal,
        "next_steps": next_steps,
    }
    for name, value in optional.items():
        values[name] = _clean_optional(name, value)
    return values


def _prepare_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(changes) - UPDATABLE_FIELDS)
    if unknown:
        raise EntryValidationError(
            unknown[0], f"Unsupported update field(s): {', '.join(unknown)}"
        )
    prepared: Dict[str, Any] = {}
    if "entry_date" in changes:
        prepared["entry_date"] = validate_entry_date(changes["entry_date"])
    if "title" in changes:
        prepared["title"] = validate_title(changes["title"])
    for name in OPTIONAL_TEXT_FIELDS:
        if name in changes:
            prepared[name] = _clean_optional(name, changes[name])
    return prepared


def _clean_optional(name: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise EntryValidationError(name, f"{name} must be a string")
    if not value:
        return None
    if name == "status":
        return normalize_status(value) or None
    return value


def _is_number_conflict(exc: IntegrityError) -> bool:
    diag = getattr(exc.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint:
        return constraint == GROUP_NUMBER_CONSTRAINT
    # sqlite3 names the columns rather than the constraint.
    message = str(exc.orig)
    return "UNIQUE constraint failed" in message and "entry_number" in message


def _as_utc(value: Any) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_entry(row: Mapping[str, Any]) -> Entry:
    return Entry(
        id=int(row["id"]),
        project=row["project"],
        document_type=row["document_type"],
        entry_date=row["entry_date"],
        entry_number=int(row["entry_number"]),
        title=row["title"],
        entry_type=row.get("entry_type"),
        status=row.get("status"),
        summary=row.get("summary"),
        details=row.get("details"),
        narrative_signal=row.get("narrative_signal"),
        next_steps=row.get("next_steps"),
        is_deleted=bool(row.get("is_deleted")),
        created_at=_as_utc(row["created_at"]),
        updated_at=_as_utc(row["updated_at"]),
    )
