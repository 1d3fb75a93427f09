"""ISO 8601 timestamp helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp, accepting a trailing ``Z``.

    Naive values are taken as UTC. Returns None when the value is empty
    or unparsable.
    """
    if not value or not value.strip():
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_utc_iso(value: Optional[str]) -> Optional[str]:
    """Normalize to ``YYYY-MM-DDTHH:MM:SS(.ffffff)+00:00`` or None."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.astimezone(timezone.utc).isoformat()
