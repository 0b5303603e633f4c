"""Filter clauses for entry listings.

A listing request becomes a tuple of typed clauses. Each clause knows how to
render itself as a SQLAlchemy expression and how to test an in-memory record,
so every backend evaluates the same logical predicate. The only
backend-specific piece is the case-insensitive match operator, passed in as
``text_match`` by the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

from sqlalchemy import Table, false, or_
from sqlalchemy.sql.elements import ColumnElement

__all__ = [
    "Clause",
    "ContainsAny",
    "DateBound",
    "DEFAULT_LIMIT",
    "EntryFilters",
    "LIKE_ESCAPE",
    "Equals",
    "MAX_LIMIT",
    "NotDeleted",
    "SEARCHABLE_COLUMNS",
    "TextMatch",
    "build_predicate",
    "compile_predicate",
    "like_pattern",
    "matches_all",
    "order_by_columns",
    "resolve_limit",
    "resolve_offset",
    "sort_key",
    "tokenize_query",
]

DEFAULT_LIMIT = 20
MAX_LIMIT = 200
SEARCHABLE_COLUMNS: tuple[str, ...] = ("title", "summary", "details", "next_steps")
LIKE_ESCAPE = "!"

TextMatch = Callable[[ColumnElement, str], ColumnElement]


@dataclass(frozen=True)
class EntryFilters:
    """Listing filters; empty values mean "no constraint"."""

    project: Optional[str] = None
    document_type: Optional[str] = None
    after: Optional[str] = None
    before: Optional[str] = None
    q: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    include_deleted: bool = False

    @property
    def effective_limit(self) -> int:
        return resolve_limit(self.limit)

    @property
    def effective_offset(self) -> int:
        return resolve_offset(self.offset)


class Clause(Protocol):  # pragma: no cover - interface only
    def to_sql(self, table: Table, text_match: TextMatch) -> ColumnElement: ...

    def matches(self, record: Mapping[str, Any]) -> bool: ...


@dataclass(frozen=True)
class NotDeleted:
    def to_sql(self, table: Table, text_match: TextMatch) -> ColumnElement:
        return table.c.is_deleted == false()

    def matches(self, record: Mapping[str, Any]) -> bool:
        return not record.get("is_deleted")


@dataclass(frozen=True)
class Equals:
    column: str
    value: str

    def to_sql(self, table: Table, text_match: TextMatch) -> ColumnElement:
        return table.c[self.column] == self.value

    def matches(self, record: Mapping[str, Any]) -> bool:
        return record.get(self.column) == self.value


@dataclass(frozen=True)
class DateBound:
    """Inclusive bound on ``entry_date``; ISO dates compare as strings."""

    value: str
    lower: bool

    def to_sql(self, table: Table, text_match: TextMatch) -> ColumnElement:
        column = table.c.entry_date
        return column >= self.value if self.lower else column <= self.value

    def matches(self, record: Mapping[str, Any]) -> bool:
        current = record.get("entry_date") or ""
        return current >= self.value if self.lower else current <= self.value


@dataclass(frozen=True)
class ContainsAny:
    """One search term matching at least one of ``columns``."""

    columns: tuple[str, ...]
    term: str

    def to_sql(self, table: Table, text_match: TextMatch) -> ColumnElement:
        pattern = like_pattern(self.term)
        return or_(*(text_match(table.c[name], pattern) for name in self.columns))

    def matches(self, record: Mapping[str, Any]) -> bool:
        needle = self.term.lower()
        for name in self.columns:
            value = record.get(name)
            if isinstance(value, str) and needle in value.lower():
                return True
        return False


def tokenize_query(q: Optional[str]) -> tuple[str, ...]:
    if not q:
        return tuple()
    return tuple(q.split())


def build_predicate(filters: EntryFilters) -> tuple[Clause, ...]:
    """Translate ``filters`` into clauses that are ANDed together."""

    clauses: list[Clause] = []
    if not filters.include_deleted:
        clauses.append(NotDeleted())
    if filters.project:
        clauses.append(Equals("project", filters.project))
    if filters.document_type:
        clauses.append(Equals("document_type", filters.document_type))
    if filters.after:
        clauses.append(DateBound(filters.after, lower=True))
    if filters.before:
        clauses.append(DateBound(filters.before, lower=False))
    for term in tokenize_query(filters.q):
        clauses.append(ContainsAny(SEARCHABLE_COLUMNS, term))
    return tuple(clauses)


def compile_predicate(
    clauses: Sequence[Clause], table: Table, text_match: TextMatch
) -> list[ColumnElement]:
    return [clause.to_sql(table, text_match) for clause in clauses]


def matches_all(clauses: Sequence[Clause], record: Mapping[str, Any]) -> bool:
    return all(clause.matches(record) for clause in clauses)


def like_pattern(term: str) -> str:
    """Substring LIKE pattern with wildcard characters taken literally."""

    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def order_by_columns(table: Table) -> list[ColumnElement]:
    return [
        table.c.entry_date.desc(),
        table.c.entry_number.desc(),
        table.c.id.desc(),
    ]


def sort_key(record: Mapping[str, Any]) -> tuple[str, int, int]:
    """Key matching :func:`order_by_columns` when sorted with ``reverse=True``."""

    return (record["entry_date"], record["entry_number"], record["id"])


def resolve_limit(limit: Optional[int]) -> int:
    if not limit or limit < 1:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


def resolve_offset(offset: Optional[int]) -> int:
    if not offset or offset < 0:
        return 0
    return offset
