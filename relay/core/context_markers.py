"""
Context-update signals carried in AI backend replies.

Two sources feed the session context bag: ``set-variables`` traces, and
``[[SET:key=value]]`` markers written inline in text replies. Markers are
stripped before the text goes out to the contact.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

SET_MARKER_RE = re.compile(r"\[\[SET:([a-zA-Z0-9_]+)=([^\]]+)\]\]")

SET_VARIABLES_TRACE = "set-variables"
TEXT_TRACE = "text"


def parse_markers(text: str) -> dict[str, str]:
    """Return ``{key: value}`` for every marker in ``text``; later markers win."""
    return {key: value for key, value in SET_MARKER_RE.findall(text or "")}


def strip_markers(text: str) -> str:
    return SET_MARKER_RE.sub("", text or "").strip()


def extract_context_updates(traces: Any) -> dict[str, Any]:
    """Collect context updates from a list of reply traces. Non-lists yield nothing."""
    if not isinstance(traces, list):
        return {}
    updates: dict[str, Any] = {}
    for trace in _dict_items(traces):
        payload = trace.get("payload")
        trace_type = trace.get("type")
        if trace_type == SET_VARIABLES_TRACE and isinstance(payload, dict):
            updates.update(payload)
        elif trace_type == TEXT_TRACE and isinstance(payload, dict):
            message = payload.get("message")
            if isinstance(message, str):
                updates.update(parse_markers(message))
    return updates


def _dict_items(items: Iterable[Any]) -> Iterable[dict[str, Any]]:
    return (item for item in items if isinstance(item, dict))
