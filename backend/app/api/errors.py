"""Exception handlers that render every failure as ``{"error": message}``."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..domain.entrystore import EntryStoreError, EntryValidationError
from ..infra.logging import get_logger

__all__ = ["error_response", "install_error_handlers"]

logger = get_logger(__name__)

_PYDANTIC_VALUE_ERROR_PREFIX = "Value error, "
_LOCATION_ROOTS = frozenset(("body", "query", "path", "header"))


def error_response(
    status_code: int, message: str, headers: Optional[Mapping[str, str]] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message},
        headers=dict(headers) if headers else None,
    )


def install_error_handlers(app: FastAPI) -> None:
    """Register the error envelope on ``app``."""

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(EntryValidationError, _entry_validation_handler)
    app.add_exception_handler(EntryStoreError, _entry_store_error_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)


async def _http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return error_response(exc.status_code, message, exc.headers)


async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return error_response(
        status.HTTP_400_BAD_REQUEST, _validation_message(exc.errors())
    )


async def _entry_validation_handler(
    request: Request, exc: EntryValidationError
) -> JSONResponse:
    return error_response(status.HTTP_400_BAD_REQUEST, exc.message)


async def _entry_store_error_handler(
    request: Request, exc: EntryStoreError
) -> JSONResponse:
    # Routes translate store errors themselves; this covers anything that slips by.
    logger.error(
        "entry_store_request_failed",
        extra={"path": request.url.path, "error": str(exc)},
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage error")


async def _unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    logger.error(
        "request_failed",
        extra={"path": request.url.path, "error": repr(exc)},
        exc_info=exc,
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
    )


def _validation_message(errors: Any) -> str:
    """First error only, phrased the way the request models word it."""

    if not errors:
        return "Invalid request"
    first = errors[0]
    message = str(first.get("msg") or "Invalid request")
    if message.startswith(_PYDANTIC_VALUE_ERROR_PREFIX):
        return message[len(_PYDANTIC_VALUE_ERROR_PREFIX):]
    location = [
        str(part) for part in first.get("loc", ()) if part not in _LOCATION_ROOTS
    ]
    if first.get("type") == "json_invalid":
        return "Invalid JSON body"
    if location:
        return f"{'.'.join(location)}: {message}"
    return message
