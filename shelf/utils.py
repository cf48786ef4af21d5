"""Utility helpers for the library export service."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from .models import UNKNOWN
from .names import clean_contributor

logger = logging.getLogger(__name__)

INVALID_DATE = "Invalid Date"


def escape_quotes(value: str) -> str:
    """Double embedded quotes so the value fits inside a quoted cell."""

    return value.replace('"', '""')


def dig(payload: Any, *path: str) -> Any:
    """Walk nested dictionaries, returning ``None`` on the first gap."""

    node = payload
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def edges(payload: Any, *path: str) -> list[dict[str, Any]]:
    """Return the ``edges`` list found at ``data.<path>``."""

    found = dig(payload, "data", *path, "edges")
    if not isinstance(found, list):
        return []
    return [edge for edge in found if isinstance(edge, dict)]


def edge_ids(payload: Any, *path: str) -> list[str]:
    """Return every ``node.asin`` under the edges at ``data.<path>``."""

    ids: list[str] = []
    for edge in edges(payload, *path):
        item_id = dig(edge, "node", "asin")
        if item_id:
            ids.append(str(item_id))
    return ids


def readable_date(timestamp_ms: Any) -> str:
    """Format a millisecond epoch timestamp as ``"April 5, 2024"``."""

    if timestamp_ms in (None, ""):
        return ""
    try:
        moment = datetime.fromtimestamp(int(timestamp_ms) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.warning("Invalid acquisition timestamp %r", timestamp_ms)
        return INVALID_DATE
    return f"{moment:%B} {moment.day}, {moment.year}"


def node_authors(node: dict[str, Any]) -> list[str]:
    """Return contributor names for a library node, never empty."""

    contributors = dig(node, "product", "byLine", "contributors")
    if not isinstance(contributors, list):
        return [UNKNOWN]
    names = [
        clean_contributor(contributor["name"])
        for contributor in contributors
        if isinstance(contributor, dict) and contributor.get("name")
    ]
    return names or [UNKNOWN]


def node_record_fields(node: dict[str, Any]) -> dict[str, Any]:
    """Build record fields from a full library book node."""

    subtype = node.get("relationshipSubType") or []
    if isinstance(subtype, str):
        subtype = [subtype]
    return {
        "title": dig(node, "product", "title", "displayString") or "",
        "authors": node_authors(node),
        "acquired_date": readable_date(node.get("relationshipCreationDate")),
        "acquisition_subtype": ", ".join(str(part) for part in subtype),
        "acquisition_type": str(node.get("relationshipType") or "").lower(),
    }
