"""
Side-channel envelope schema.

Some provenance facts have no dedicated tag slot in any of the written
namespaces: the audit trail of the embedding run, links to cross-asset
entities, event/sequence anchors and narrative intent. They travel
together as one versioned JSON envelope stored in a single generic
free-text tag.

The envelope is:
- versioned (ENVELOPE_VERSION)
- sectioned (each fact family is an independent, optional section)
- mergeable (newer sections overlay older ones, section by section)

Encoding, decoding and the size budget live in
embedder.app.mapping.side_channel.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


ENVELOPE_VERSION = 1


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


class AuditTrail(BaseModel):
    """Trace of the embedding run that produced the file."""

    pipeline_version: Optional[str] = None
    embedded_at: Optional[str] = Field(
        None,
        description="ISO 8601 timestamp of the embedding run",
    )
    source_hash: Optional[str] = None
    verification_hash: Optional[str] = None
    hash_algorithm: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class EntityLinks(BaseModel):
    """
    Cross-asset entity links.

    Client identifiers are internal and deliberately absent.
    """

    brand: Optional[str] = None
    creator: Optional[str] = None
    shoot_id: Optional[str] = None
    gallery_id: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class EventAnchor(BaseModel):
    """Anchors an asset to an event and its position in a story sequence."""

    event_id: str
    event_name: Optional[str] = None
    event_date: Optional[str] = None
    story_sequence: Optional[int] = Field(None, ge=0)
    gallery_id: Optional[str] = None
    gallery_name: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class NarrativeIntent(BaseModel):
    """Why the image exists, as stated upstream."""

    purpose: Optional[str] = None
    moment_type: Optional[str] = None
    emotional_tone: Optional[str] = None
    story_position: Optional[str] = None
    narrative_role: Optional[str] = None
    user_context: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Contract-side carrier
# ---------------------------------------------------------------------------


class ProvenanceContext(BaseModel):
    """
    Side-channel facts attached to a MetadataContract.

    Every section is optional. Absent sections are never written.
    """

    audit: Optional[AuditTrail] = None
    entities: Optional[EntityLinks] = None
    event_anchor: Optional[EventAnchor] = None
    intent: Optional[NarrativeIntent] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


# Sections in the order they are sacrificed when the envelope exceeds
# its size budget. The audit section is never dropped.
DROPPABLE_SECTIONS = ("intent", "event_anchor", "entities")


class SideChannelEnvelope(BaseModel):
    """
    Versioned JSON envelope persisted in the generic free-text tag.
    """

    version: int = ENVELOPE_VERSION
    audit: Optional[AuditTrail] = None
    entities: Optional[EntityLinks] = None
    event_anchor: Optional[EventAnchor] = None
    intent: Optional[NarrativeIntent] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_context(cls, context: ProvenanceContext) -> "SideChannelEnvelope":
        return cls(
            audit=context.audit,
            entities=context.entities,
            event_anchor=context.event_anchor,
            intent=context.intent,
        )

    def is_empty(self) -> bool:
        return not any(
            getattr(self, name) is not None
            for name in ("audit", "entities", "event_anchor", "intent")
        )

    def merge(self, newer: "SideChannelEnvelope") -> "SideChannelEnvelope":
        """
        Overlay the sections present in ``newer`` onto this envelope.

        Sections absent from ``newer`` are kept. The result carries the
        higher of the two schema versions.
        """
        return SideChannelEnvelope(
            version=max(self.version, newer.version),
            audit=newer.audit if newer.audit is not None else self.audit,
            entities=(
                newer.entities if newer.entities is not None else self.entities
            ),
            event_anchor=(
                newer.event_anchor
                if newer.event_anchor is not None
                else self.event_anchor
            ),
            intent=newer.intent if newer.intent is not None else self.intent,
        )

    def without(self, section: str) -> "SideChannelEnvelope":
        if section not in DROPPABLE_SECTIONS:
            raise ValueError(f"Section '{section}' cannot be dropped")
        return self.model_copy(update={section: None})


__all__ = [
    "ENVELOPE_VERSION",
    "DROPPABLE_SECTIONS",
    "AuditTrail",
    "EntityLinks",
    "EventAnchor",
    "NarrativeIntent",
    "ProvenanceContext",
    "SideChannelEnvelope",
]
