"""System health endpoint."""

from typing import Any

from fastapi import APIRouter, Depends

from ...api.dependencies import get_settings
from ...config import Settings

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/healthz")
def healthcheck(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    """Return coarse-grained backend readiness information."""

    return {
        "status": "ok",
        "environment": settings.environment,
        "entryStore": settings.database.backend,
    }
