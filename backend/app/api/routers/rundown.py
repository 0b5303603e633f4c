"""RundownAPI v0.1 capability document for AI agents.

Unauthenticated: the document describes the API, it exposes no entries.
"""

from __future__ import annotations

from typing import Any, Dict, Sequence

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...api.dependencies import get_settings
from ...config import Settings
from ...domain.entrystore import DEFAULT_LIMIT, MAX_LIMIT, DocumentType
from ...domain.entrystore.labels import STATUS_OPTIONS

router = APIRouter(prefix="/api", tags=["rundown"])

RUNDOWN_VERSION = "0.1"
CACHE_CONTROL = "public, max-age=3600"
DEFAULT_HOST = "localhost:3000"


@router.get("/rundown", summary="RundownAPI capability document")
def rundown(request: Request, settings: Settings = Depends(get_settings)) -> JSONResponse:
    protocol = request.headers.get("x-forwarded-proto") or "http"
    host = request.headers.get("host") or DEFAULT_HOST
    document = build_rundown(f"{protocol}://{host}", projects=settings.projects)
    return JSONResponse(document, headers={"Cache-Control": CACHE_CONTROL})


def build_rundown(base_url: str, *, projects: Sequence[str]) -> Dict[str, Any]:
    """Assemble the rundown document for ``base_url``."""

    document_types = list(DocumentType.values())
    return {
        "rundown_version": RUNDOWN_VERSION,
        "base_url": base_url,
        "auth": {
            "method": "url_param",
            "parameter": "token",
            "header_alternative": "Authorization: Bearer <token>",
            "note": (
                "Both methods work. Ask the user for their API token if you do "
                "not have it. Never guess or fabricate tokens."
            ),
        },
        "purpose": (
            "Threadbaire stores project decision entries with receipts (who, why, "
            "source, date, model). Use this API to query and create entries for "
            "maintaining context across AI sessions."
        ),
        "endpoints": [
            {
                "path": "/api/entries",
                "method": "GET",
                "description": "List and filter entries",
                "parameters": {
                    "project": "Filter by project name",
                    "document_type": 'Filter by type: "addendum" or "dev_log"',
                    "after": "Entries on or after this date (YYYY-MM-DD)",
                    "before": "Entries on or before this date (YYYY-MM-DD)",
                    "q": "Keyword search across title, summary, details, next_steps",
                    "limit": f"Results per page (default {DEFAULT_LIMIT}, max {MAX_LIMIT})",
                    "page": "Page number (default 1)",
                },
                "response": (
                    "{ entries: Entry[], total: number, page: number, "
                    "totalPages: number, limit: number }"
                ),
            },
            {
                "path": "/api/entries/:id",
                "method": "GET",
                "description": "Get a single entry by ID",
                "response": "Entry object",
            },
            {
                "path": "/api/entries",
                "method": "POST",
                "description": "Create a new entry",
                "parameters": {
                    "project": "string (required)",
                    "document_type": '"addendum" or "dev_log" (required)',
                    "date": "YYYY-MM-DD (required)",
                    "title": "string (required)",
                    "type": 'string (optional): "Feature", "Fix", "Research", etc.',
                    "status": "string (optional): one of status_values",
                    "summary": "string (optional)",
                    "details": "string (optional, markdown)",
                    "narrative_signal": "string (optional, addendum only)",
                    "next_steps": "string (optional, markdown)",
                },
                "notes": "entry_number is auto-calculated per project+document_type+date",
            },
            {
                "path": "/api/entries/:id",
                "method": "PUT",
                "description": "Update an existing entry",
                "notes": "Send only the fields you want to update",
            },
            {
                "path": "/api/entries/:id",
                "method": "DELETE",
                "description": "Soft-delete an entry (sets is_deleted flag)",
            },
        ],
        "ai_instructions": {
            "triggers": [
                'User asks about project history, past decisions, or "what have we done"',
                "User mentions previous work, context, or decisions",
                "User completes significant work (features, fixes, decisions)",
                "User asks to search for something in project history",
            ],
            "behaviors": [
                "Query GET /api/entries with appropriate filters when user asks about "
                "history — do not guess from memory",
                "Offer to log completed work as a new entry via POST /api/entries",
                "Use the q parameter for keyword searches when looking for specific topics",
                "Use project and document_type filters to narrow results",
                "Summarize results clearly; link back to entry IDs when relevant",
            ],
            "constraints": [
                "Never fabricate entries, dates, or project history",
                "Ask user for API token if not provided — never guess tokens",
                "Entries are immutable history — prefer creating new entries over "
                "editing old ones",
                "When logging work, include who did it, why, and what informed the "
                "decision (receipts pattern)",
            ],
        },
        "examples": [
            {
                "description": "Get the 10 most recent entries for a project",
                "request": (
                    f'curl "{base_url}/api/entries?project=my-project&limit=10'
                    '&token=YOUR_TOKEN"'
                ),
            },
            {
                "description": "Search for entries mentioning a keyword",
                "request": f'curl "{base_url}/api/entries?q=authentication&token=YOUR_TOKEN"',
            },
            {
                "description": "Create a new dev_log entry",
                "request": (
                    f'curl -X POST "{base_url}/api/entries?token=YOUR_TOKEN" '
                    '-H "Content-Type: application/json" '
                    "-d '{\"project\":\"my-project\",\"document_type\":\"dev_log\","
                    "\"date\":\"2026-01-17\",\"title\":\"Example entry\","
                    "\"type\":\"Feature\",\"status\":\"complete\","
                    "\"summary\":\"Brief description\"}'"
                ),
            },
        ],
        "error_format": {
            "structure": "{ error: string }",
            "codes": {
                "400": "Bad request (missing required fields, invalid format)",
                "401": "Unauthorized (missing or invalid token)",
                "404": "Entry not found",
                "500": "Server error",
            },
        },
        "capabilities": ["read", "write", "search", "delete"],
        "schema": {
            "projects": list(projects),
            "status_values": list(STATUS_OPTIONS),
            "document_types": document_types,
            "entry_fields": {
                "id": "number (auto-generated)",
                "project": "string (required)",
                "document_type": '"addendum" | "dev_log" (required)',
                "entry_date": "string YYYY-MM-DD (required)",
                "entry_number": "number (auto-calculated per project+doctype+date)",
                "title": "string (required)",
                "entry_type": "string (freeform)",
                "status": "string (one of status_values)",
                "summary": "string",
                "details": "string (markdown)",
                "narrative_signal": "string (addendum only)",
                "next_steps": "string (markdown)",
                "created_at": "ISO timestamp",
                "updated_at": "ISO timestamp",
            },
        },
        "mcp_hints": {
            "note": "If you can generate MCP servers, here is a minimal template structure:",
            "tools": [
                {"name": "query_entries", "description": "Search and filter project entries"},
                {"name": "get_entry", "description": "Get a specific entry by ID"},
                {"name": "create_entry", "description": "Log a new entry to the project"},
            ],
            "config_needed": ["THREADBAIRE_URL", "THREADBAIRE_TOKEN"],
        },
    }
