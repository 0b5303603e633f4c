"""Status normalization and display labels for entries.

Storage keeps clean keys (``in_progress``); people and older clients type
free text such as ``"🟡 In progress"`` or ``"Done"``. The tables below are
static data: extend them without touching the functions.
"""

from __future__ import annotations

import re
from typing import Mapping, Optional

__all__ = [
    "DOCUMENT_TYPE_LABELS",
    "STATUS_ALIASES",
    "STATUS_ALIASES_VERSION",
    "STATUS_DISPLAY",
    "STATUS_EMOJI",
    "STATUS_OPTIONS",
    "UI_LABELS",
    "display_status",
    "document_type_label",
    "format_date_header",
    "format_entry_title",
    "normalize_status",
]

STATUS_DISPLAY: Mapping[str, str] = {
    "complete": "✅ Complete",
    "in_progress": "🟡 In Progress",
    "logged": "🟡 Logged",
    "queued": "🔜 Queued",
    "blocked": "🔴 Blocked",
    "observed": "🟢 Observed",
}
STATUS_OPTIONS: tuple[str, ...] = tuple(STATUS_DISPLAY)

STATUS_EMOJI: tuple[str, ...] = ("✅", "🟡", "🔜", "🔴", "🟢")

# Bump when an alias is added or retargeted.
STATUS_ALIASES_VERSION = 1
STATUS_ALIASES: Mapping[str, str] = {
    "done": "complete",
    "partial": "in_progress",
    "urgent": "blocked",
    "inprogress": "in_progress",
}

DOCUMENT_TYPE_LABELS: Mapping[str, str] = {
    "addendum": "Addendum",
    "dev_log": "Dev Log",
}

# Addendum uses full emoji headers; dev log keeps formatting minimal.
UI_LABELS: Mapping[str, Mapping[str, Optional[str]]] = {
    "addendum": {
        "entry_number": "🧩",
        "entry_date": "📅",
        "entry_type": "Type:",
        "status": "Status:",
        "summary": "🔍 Summary",
        "details": "📌 Details",
        "narrative_signal": "🧠 Narrative Signal",
        "next_steps": "🔄 Implications & Next Steps",
    },
    "dev_log": {
        "entry_number": "🧩",
        "entry_date": "📅",
        "entry_type": "Type:",
        "status": "Status:",
        "summary": "Summary",
        "details": "Details",
        "narrative_signal": None,
        "next_steps": "Next",
    },
}

_EMOJI_PATTERN = re.compile("[" + "".join(STATUS_EMOJI) + "]")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_status(raw: str) -> str:
    """Map free-text or legacy status input to its canonical key.

    >>> normalize_status("✅ Done")
    'complete'
    >>> normalize_status("In Progress")
    'in_progress'
    """

    cleaned = _EMOJI_PATTERN.sub("", raw.lower()).strip()
    cleaned = _WHITESPACE_PATTERN.sub("_", cleaned)
    return STATUS_ALIASES.get(cleaned, cleaned)


def display_status(status: Optional[str]) -> str:
    """Return the emoji label for a canonical status; unknown keys pass through."""

    if not status:
        return ""
    return STATUS_DISPLAY.get(status, status)


def document_type_label(document_type: str) -> str:
    return DOCUMENT_TYPE_LABELS.get(document_type, document_type)


def format_entry_title(
    entry_number: int, title: str, document_type: str = "addendum"
) -> str:
    """e.g. ``"🧩 1. Multi-Agent Strategic Recall Mockup Deployed"``."""

    marker = _labels_for(document_type)["entry_number"]
    return f"{marker} {entry_number}. {title}"


def format_date_header(entry_date: str, document_type: str = "addendum") -> str:
    marker = _labels_for(document_type)["entry_date"]
    return f"{marker} {entry_date}"


def _labels_for(document_type: str) -> Mapping[str, Optional[str]]:
    try:
        return UI_LABELS[document_type]
    except KeyError as exc:
        raise ValueError(f"unknown document_type '{document_type}'") from exc
