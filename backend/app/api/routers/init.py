"""Schema bootstrap endpoint for hosted deployments."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from ...api.dependencies import get_entry_store, require_api_key
from ...domain.entrystore import EntryStore, EntryStoreError
from ...infra.logging import get_logger

router = APIRouter(prefix="/api", tags=["init"], dependencies=[Depends(require_api_key)])
logger = get_logger(__name__)


class InitResponse(BaseModel):
    success: bool
    message: str


@router.post("/init", response_model=InitResponse, summary="Create the entries schema")
def init_schema(entry_store: EntryStore = Depends(get_entry_store)) -> InitResponse:
    """Idempotently create the entries table and indexes."""

    try:
        entry_store.init_schema()
    except EntryStoreError as exc:
        logger.exception(
            "schema_init_failed",
            extra={"backend": entry_store.backend_name, "error": str(exc)},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to initialize schema",
        ) from exc
    return InitResponse(success=True, message="Schema initialized")
