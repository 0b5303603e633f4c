"""Shared API dependencies."""

from __future__ import annotations

import secrets
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from ..config import Settings, load_settings
from ..domain.entrystore import EntryStore, build_entry_store
from ..infra.logging import get_logger

__all__ = [
    "close_entry_store",
    "extract_token",
    "get_entry_store",
    "get_settings",
    "require_api_key",
]

logger = get_logger(__name__)

TOKEN_QUERY_PARAM = "token"
BEARER_SCHEME = "Bearer"
MISSING_TOKEN_MESSAGE = (
    "Missing authentication. Provide Authorization header or token parameter."
)


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""

    return load_settings()


@lru_cache()
def _entry_store_singleton() -> EntryStore:
    return build_entry_store(get_settings())


def get_entry_store() -> EntryStore:
    """Return the process-wide EntryStore instance."""

    return _entry_store_singleton()


def close_entry_store() -> None:
    """Dispose the store created by :func:`get_entry_store`, if any."""

    if _entry_store_singleton.cache_info().currsize:
        _entry_store_singleton().close()
    _entry_store_singleton.cache_clear()


def extract_token(request: Request) -> Optional[str]:
    """Bearer header first, then the ``token`` query parameter."""

    header = request.headers.get("Authorization")
    if header:
        parts = header.split(" ")
        if len(parts) == 2 and parts[0] == BEARER_SCHEME and parts[1]:
            return parts[1]
    return request.query_params.get(TOKEN_QUERY_PARAM) or None


def require_api_key(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject the request unless it carries the configured API key."""

    api_key = settings.auth.api_key
    if not api_key:
        logger.error("api_key_not_configured", extra={"path": request.url.path})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error",
        )

    token = extract_token(request)
    if token is None:
        logger.warning(
            "auth_rejected", extra={"path": request.url.path, "reason": "missing"}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=MISSING_TOKEN_MESSAGE,
        )
    if not secrets.compare_digest(token.encode("utf-8"), api_key.encode("utf-8")):
        logger.warning(
            "auth_rejected", extra={"path": request.url.path, "reason": "mismatch"}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )
