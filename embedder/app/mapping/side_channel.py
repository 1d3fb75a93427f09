"""
Side-channel envelope codec.

Facts with no dedicated tag slot are written as one JSON document in the
generic free-text UserComment tag:

    ProofEmbed:{"audit":{...},"entities":{...},"version":1}

The marker lets a reader tell our envelope from arbitrary user comments
and lets a later write read, merge and re-serialize it.

The encoded value is bounded by a byte budget. When it does not fit,
whole sections are dropped in DROPPABLE_SECTIONS order. The audit
section is never dropped: if it alone exceeds the budget the write is
refused with SideChannelOverflowError.
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional, Tuple

from pydantic import ValidationError

from embedder.app.schemas.side_channel import (
    DROPPABLE_SECTIONS,
    SideChannelEnvelope,
)
from embedder.app.utils.hashing import canonical_json_bytes

logger = logging.getLogger(__name__)

MARKER = "ProofEmbed:"
DEFAULT_MAX_BYTES = 2048


class SideChannelOverflowError(ValueError):
    """The non-droppable part of the envelope exceeds the byte budget."""

    def __init__(self, size: int, max_bytes: int):
        self.size = size
        self.max_bytes = max_bytes
        super().__init__(
            f"Side-channel envelope is {size} bytes after dropping all "
            f"optional sections; budget is {max_bytes} bytes"
        )


def _serialize(envelope: SideChannelEnvelope) -> str:
    payload = envelope.model_dump(mode="json", exclude_none=True)
    return MARKER + canonical_json_bytes(payload).decode("utf-8")


def encoded_size(value: str) -> int:
    return len(value.encode("utf-8"))


def fit_envelope(
    envelope: SideChannelEnvelope,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> Tuple[str, List[str]]:
    """
    Serialize within the budget.

    Returns the encoded value and the names of the sections that had to
    be dropped, in drop order.

    Raises:
        SideChannelOverflowError: if nothing droppable is left and the
            value still does not fit.
    """
    dropped: List[str] = []
    encoded = _serialize(envelope)

    for section in DROPPABLE_SECTIONS:
        if encoded_size(encoded) <= max_bytes:
            break
        if getattr(envelope, section) is None:
            continue
        envelope = envelope.without(section)
        dropped.append(section)
        encoded = _serialize(envelope)

    size = encoded_size(encoded)
    if size > max_bytes:
        raise SideChannelOverflowError(size, max_bytes)

    if dropped:
        logger.warning(
            "Side-channel envelope over %d bytes; dropped sections: %s",
            max_bytes,
            ", ".join(dropped),
        )
    return encoded, dropped


def encode_envelope(
    envelope: SideChannelEnvelope,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> Optional[str]:
    """Encoded tag value, or None for an envelope with no sections."""
    if envelope.is_empty():
        return None
    encoded, _ = fit_envelope(envelope, max_bytes)
    return encoded


def decode_envelope(value: Optional[str]) -> Optional[SideChannelEnvelope]:
    """
    Parse a tag value written by encode_envelope.

    Returns None for values without the marker, malformed JSON or a
    payload that does not match the envelope schema.
    """
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text.startswith(MARKER):
        return None

    try:
        payload = json.loads(text[len(MARKER):])
    except json.JSONDecodeError:
        logger.warning("Ignoring side-channel value with malformed JSON")
        return None

    if not isinstance(payload, dict):
        return None

    try:
        return SideChannelEnvelope.model_validate(payload)
    except ValidationError:
        logger.warning("Ignoring side-channel value with unexpected shape")
        return None


def merge_envelopes(
    existing: Optional[SideChannelEnvelope],
    newer: Optional[SideChannelEnvelope],
) -> Optional[SideChannelEnvelope]:
    if existing is None:
        return newer
    if newer is None:
        return existing
    return existing.merge(newer)
