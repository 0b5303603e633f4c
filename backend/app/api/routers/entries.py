"""Entry CRUD endpoints."""

from __future__ import annotations

import math
import re
from contextlib import contextmanager
from datetime import datetime
from typing import Annotated, Any, Dict, Iterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel, Field, model_validator

from ...api.dependencies import get_entry_store, require_api_key
from ...domain.entrystore import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    DocumentType,
    Entry,
    EntryFilters,
    EntryStore,
    EntryStoreError,
)
from ...domain.entrystore.labels import normalize_status
from ...domain.entrystore.models import DATE_PATTERN
from ...infra.logging import get_logger
from ...infra.metrics import get_metrics_client

router = APIRouter(
    prefix="/api/entries",
    tags=["entries"],
    dependencies=[Depends(require_api_key)],
)
logger = get_logger(__name__)
metrics = get_metrics_client()

REQUIRED_FIELDS_MESSAGE = "Missing required fields: project, document_type, date, title"
DOCUMENT_TYPE_MESSAGE = 'document_type must be "addendum" or "dev_log"'
DATE_FORMAT_MESSAGE = "date must be in YYYY-MM-DD format"
EntryIdParam = Annotated[str, Path(description="Numeric entry id.")]

# Request field name -> stored column name.
_FIELD_ALIASES = {"date": "entry_date", "type": "entry_type"}
_ENTRY_ID_PATTERN = re.compile(r"-?[0-9]+")


class EntryCreateRequest(BaseModel):
    project: Optional[str] = None
    document_type: Optional[str] = None
    date: Optional[str] = None
    title: Optional[str] = None
    type: Optional[str] = Field(default=None, description="Stored as entry_type.")
    status: Optional[str] = None
    summary: Optional[str] = None
    details: Optional[str] = None
    narrative_signal: Optional[str] = None
    next_steps: Optional[str] = None

    @model_validator(mode="after")
    def _validate_payload(self) -> "EntryCreateRequest":
        if not (self.project and self.document_type and self.date and self.title):
            raise ValueError(REQUIRED_FIELDS_MESSAGE)
        if self.document_type not in DocumentType.values():
            raise ValueError(DOCUMENT_TYPE_MESSAGE)
        if not DATE_PATTERN.fullmatch(self.date):
            raise ValueError(DATE_FORMAT_MESSAGE)
        return self


class EntryUpdateRequest(BaseModel):
    """Partial update; only fields present in the body are applied."""

    date: Optional[str] = None
    title: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    summary: Optional[str] = None
    details: Optional[str] = None
    narrative_signal: Optional[str] = None
    next_steps: Optional[str] = None

    @model_validator(mode="after")
    def _validate_payload(self) -> "EntryUpdateRequest":
        provided = self.model_fields_set
        if "title" in provided and (self.title is None or not self.title.strip()):
            raise ValueError("Title cannot be empty")
        if "date" in provided and (
            self.date is None or not DATE_PATTERN.fullmatch(self.date)
        ):
            raise ValueError(DATE_FORMAT_MESSAGE)
        return self

    def to_changes(self) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        for name, value in self.model_dump(exclude_unset=True).items():
            # A blank status leaves the stored value untouched.
            if name == "status" and not value:
                continue
            changes[_FIELD_ALIASES.get(name, name)] = value
        return changes


class EntryResponse(BaseModel):
    id: int
    project: str
    document_type: str
    entry_date: str
    entry_number: int
    title: str
    entry_type: Optional[str] = None
    status: Optional[str] = None
    summary: Optional[str] = None
    details: Optional[str] = None
    narrative_signal: Optional[str] = None
    next_steps: Optional[str] = None
    is_deleted: bool = False
    created_at: datetime
    updated_at: datetime


class EntryListResponse(BaseModel):
    entries: List[EntryResponse] = Field(default_factory=list)
    total: int
    page: int
    totalPages: int
    limit: int


class DeleteResponse(BaseModel):
    success: bool


@router.get(
    "",
    response_model=EntryListResponse,
    summary="List and filter entries",
)
def list_entries(
    project: Optional[str] = Query(None),
    document_type: Optional[str] = Query(None),
    after: Optional[str] = Query(None, description="Entries on or after (YYYY-MM-DD)."),
    before: Optional[str] = Query(None, description="Entries on or before (YYYY-MM-DD)."),
    q: Optional[str] = Query(
        None,
        description="Whitespace-separated terms matched against title, summary, details, next_steps.",
    ),
    limit: Optional[int] = Query(None, description=f"Default {DEFAULT_LIMIT}, max {MAX_LIMIT}."),
    page: Optional[int] = Query(None),
    offset: Optional[int] = Query(None, description="Overrides page when present."),
    entry_store: EntryStore = Depends(get_entry_store),
) -> EntryListResponse:
    metrics.increment("entries_list_http_total")
    effective_limit = _clamp_limit(limit)
    current_page = page if page and page > 0 else 1
    effective_offset = (
        max(offset, 0) if offset is not None else (current_page - 1) * effective_limit
    )
    filters = EntryFilters(
        project=project or None,
        document_type=document_type or None,
        after=after or None,
        before=before or None,
        q=q or None,
        limit=effective_limit,
        offset=effective_offset,
    )
    with _store_errors("entry_list_failed", "Failed to list entries"):
        result = entry_store.list_entries(filters)
    return EntryListResponse(
        entries=[_serialize_entry(entry) for entry in result.items],
        total=result.total,
        page=current_page,
        totalPages=math.ceil(result.total / effective_limit),
        limit=effective_limit,
    )


@router.get(
    "/{entry_id}",
    response_model=EntryResponse,
    summary="Retrieve a single entry",
)
def get_entry(
    entry_id: EntryIdParam,
    entry_store: EntryStore = Depends(get_entry_store),
) -> EntryResponse:
    identifier = _parse_entry_id(entry_id)
    with _store_errors("entry_get_failed", "Failed to get entry", entry_id=identifier):
        entry = entry_store.get_entry(identifier)
    if entry is None:
        raise _not_found(identifier)
    return _serialize_entry(entry)


@router.post(
    "",
    response_model=EntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an entry",
)
def create_entry(
    payload: EntryCreateRequest,
    entry_store: EntryStore = Depends(get_entry_store),
) -> EntryResponse:
    with _store_errors(
        "entry_create_failed",
        "Failed to create entry",
        project=payload.project,
        document_type=payload.document_type,
    ):
        entry = entry_store.create_entry(
            project=payload.project,
            document_type=payload.document_type,
            entry_date=payload.date,
            title=payload.title,
            entry_type=payload.type or None,
            status=normalize_status(payload.status) if payload.status else None,
            summary=payload.summary or None,
            details=payload.details or None,
            narrative_signal=payload.narrative_signal or None,
            next_steps=payload.next_steps or None,
        )
    metrics.increment("entries_create_total")
    logger.info(
        "entry_created",
        extra={
            "entry_id": entry.id,
            "project": entry.project,
            "document_type": entry.document_type,
            "entry_date": entry.entry_date,
            "entry_number": entry.entry_number,
        },
    )
    return _serialize_entry(entry)


@router.put(
    "/{entry_id}",
    response_model=EntryResponse,
    summary="Update an entry",
)
def update_entry(
    entry_id: EntryIdParam,
    payload: EntryUpdateRequest,
    entry_store: EntryStore = Depends(get_entry_store),
) -> EntryResponse:
    identifier = _parse_entry_id(entry_id)
    changes = payload.to_changes()
    with _store_errors(
        "entry_update_failed", "Failed to update entry", entry_id=identifier
    ):
        entry = entry_store.update_entry(identifier, changes)
    if entry is None:
        raise _not_found(identifier)
    metrics.increment("entries_update_total")
    logger.info(
        "entry_updated",
        extra={
            "entry_id": entry.id,
            "fields": sorted(changes),
            "entry_number": entry.entry_number,
        },
    )
    return _serialize_entry(entry)


@router.delete(
    "/{entry_id}",
    response_model=DeleteResponse,
    summary="Soft-delete an entry",
)
def delete_entry(
    entry_id: EntryIdParam,
    entry_store: EntryStore = Depends(get_entry_store),
) -> DeleteResponse:
    identifier = _parse_entry_id(entry_id)
    with _store_errors(
        "entry_delete_failed", "Failed to delete entry", entry_id=identifier
    ):
        deleted = entry_store.delete_entry(identifier)
    if not deleted:
        raise _not_found(identifier)
    metrics.increment("entries_delete_total")
    logger.info("entry_deleted", extra={"entry_id": identifier, "hard": False})
    return DeleteResponse(success=True)


def _clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    return min(max(limit, 1), MAX_LIMIT)


def _parse_entry_id(raw: str) -> int:
    # int() alone would also take "1_000" and non-ASCII digits.
    candidate = raw.strip()
    if not _ENTRY_ID_PATTERN.fullmatch(candidate):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid entry ID",
        )
    return int(candidate)


def _serialize_entry(entry: Entry) -> EntryResponse:
    return EntryResponse(**entry.to_dict())


@contextmanager
def _store_errors(event: str, message: str, **context: Any) -> Iterator[None]:
    try:
        yield
    except EntryStoreError as exc:
        logger.exception(event, extra={**context, "error": str(exc)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=message,
        ) from exc


def _not_found(entry_id: int) -> HTTPException:
    metrics.increment("entries_not_found_total")
    logger.info("entry_not_found", extra={"entry_id": entry_id})
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Entry not found",
    )
