"""Entry data model and store errors."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

__all__ = [
    "DocumentType",
    "Entry",
    "EntryListResult",
    "EntryNumberConflictError",
    "EntryStoreError",
    "EntryValidationError",
    "OPTIONAL_TEXT_FIELDS",
    "UPDATABLE_FIELDS",
    "DATE_PATTERN",
    "utcnow",
    "validate_document_type",
    "validate_entry_date",
    "validate_title",
]

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$", re.ASCII)
OPTIONAL_TEXT_FIELDS: tuple[str, ...] = (
    "entry_type",
    "status",
    "summary",
    "details",
    "narrative_signal",
    "next_steps",
)
UPDATABLE_FIELDS: frozenset[str] = frozenset(
    ("entry_date", "title", *OPTIONAL_TEXT_FIELDS)
)


def utcnow() -> datetime:
    """Return timezone-aware UTC timestamp."""

    return datetime.now(timezone.utc)


class DocumentType(str, Enum):
    """Classification of an entry."""

    ADDENDUM = "addendum"
    DEV_LOG = "dev_log"

    @classmethod
    def values(cls) -> tuple[str, ...]:
        return tuple(member.value for member in cls)


@dataclass(frozen=True)
class Entry:
    """A stored entry row."""

    id: int
    project: str
    document_type: str
    entry_date: str
    entry_number: int
    title: str
    entry_type: Optional[str]
    status: Optional[str]
    summary: Optional[str]
    details: Optional[str]
    narrative_signal: Optional[str]
    next_steps: Optional[str]
    is_deleted: bool
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EntryListResult:
    """One page of entries plus the unpaginated match count."""

    items: List[Entry]
    total: int


class EntryStoreError(Exception):
    """Storage failure (connectivity, constraint, driver error)."""


class EntryNumberConflictError(EntryStoreError):
    """Entry number could not be assigned after the configured retries."""

    def __init__(self, *, attempts: int, context: Dict[str, Any]) -> None:
        super().__init__(
            f"could not assign entry_number after {attempts} attempts ({context})"
        )
        self.attempts = attempts
        self.context = dict(context)


class EntryValidationError(ValueError):
    """Input rejected before it reached storage."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


def validate_document_type(value: Any) -> str:
    if value not in DocumentType.values():
        raise EntryValidationError(
            "document_type", 'document_type must be "addendum" or "dev_log"'
        )
    return str(value)


def validate_entry_date(value: Any, *, field: str = "entry_date") -> str:
    if not isinstance(value, str) or not DATE_PATTERN.fullmatch(value):
        raise EntryValidationError(field, f"{field} must be in YYYY-MM-DD format")
    return value


def validate_title(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise EntryValidationError("title", "Title cannot be empty")
    return value
