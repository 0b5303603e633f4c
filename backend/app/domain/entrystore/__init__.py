"""Entry persistence and query layer."""

from .gateway import (
    EntryStore,
    InMemoryEntryStore,
    PostgresEntryStore,
    SqlEntryStore,
    SqliteEntryStore,
    build_entry_store,
)
from .models import (
    DocumentType,
    Entry,
    EntryListResult,
    EntryNumberConflictError,
    EntryStoreError,
    EntryValidationError,
)
from .query import DEFAULT_LIMIT, MAX_LIMIT, EntryFilters

__all__ = [
    "DEFAULT_LIMIT",
    "DocumentType",
    "Entry",
    "EntryFilters",
    "EntryListResult",
    "EntryNumberConflictError",
    "EntryStore",
    "EntryStoreError",
    "EntryValidationError",
    "InMemoryEntryStore",
    "MAX_LIMIT",
    "PostgresEntryStore",
    "SqlEntryStore",
    "SqliteEntryStore",
    "build_entry_store",
]
