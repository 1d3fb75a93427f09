"""
Reverse mapping from read-back tags to contract fields.

Used to inspect a file that was embedded earlier, for example to
recover its side-channel facts or to compare what a platform left in a
re-encoded copy against the manifest. Lookup goes through the same
mapping table as the writer, so every physical alias of a field is
consulted.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from embedder.app.contract.constraints import is_blank
from embedder.app.mapping.side_channel import decode_envelope
from embedder.app.mapping.tag_map import (
    CREDIT_DELIMITER,
    FIELD_MAPPINGS,
    SIDE_CHANNEL_TAG,
    VENDOR_GROUP,
    Attribution,
    ValueKind,
    lookup_tag,
)
from embedder.app.schemas.contract import MetadataContract
from embedder.app.schemas.side_channel import ProvenanceContext

EXPORT_ID_FIELD = "extension.export_id"
EXPORT_ID_TAG = f"{VENDOR_GROUP}:ExportId"


def _as_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(v) for v in value if not is_blank(v)]
    return [str(value)]


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes"):
        return True
    if text in ("false", "0", "no"):
        return False
    return None


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def strip_attribution(credit: str) -> str:
    suffix = CREDIT_DELIMITER + Attribution.CREDIT_LINE
    if credit.endswith(suffix):
        return credit[: -len(suffix)]
    if credit == Attribution.CREDIT_LINE:
        return ""
    return credit


def _restore(value: Any, kind: ValueKind) -> Any:
    if kind is ValueKind.KEYWORDS:
        return _as_list(value)
    if kind is ValueKind.LIST:
        items = value if isinstance(value, list) else str(value).split(",")
        return [str(i).strip() for i in items if not is_blank(i)]
    if kind is ValueKind.BOOL:
        return _as_bool(value)
    if kind is ValueKind.INT:
        return _as_int(value)
    text = str(value)
    if kind is ValueKind.CREDIT:
        text = strip_attribution(text)
    return text or None


def _governance_fields(tags: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    def vendor(name: str) -> Any:
        return lookup_tag(tags, (f"{VENDOR_GROUP}:{name}",))

    status = vendor("GovernanceStatus")
    policy = vendor("GovernancePolicy")
    if status is None and policy is None:
        return None

    fields: Dict[str, Any] = {
        "ai_generated": _as_bool(vendor("AIGenerated") or ""),
        "reason": vendor("GovernanceReason"),
        "checked_at": vendor("GovernanceCheckedAt"),
        "decision_ref": vendor("GovernanceDecisionRef"),
    }
    if status is not None:
        fields["status"] = str(status)
    if policy is not None:
        fields["policy"] = str(policy)

    confidence = vendor("AIConfidence")
    if confidence is not None:
        try:
            fields["ai_confidence"] = float(confidence)
        except (TypeError, ValueError):
            pass

    return {k: v for k, v in fields.items() if v is not None}


def extract_contract_fields(tags: Mapping[str, Any]) -> MetadataContract:
    """
    Rebuild a (partial) contract from a tag map returned by a read.

    Fields with no value under any alias are left unset. The tooling
    attribution is stripped back off the credit. A TransmissionReference
    that carries the envelope's event id is the event anchor, not an
    export id.
    """
    sections: Dict[str, Dict[str, Any]] = {"core": {}, "extension": {}}

    envelope = decode_envelope(tags.get(SIDE_CHANNEL_TAG))
    anchor_id = None
    if envelope is not None and envelope.event_anchor is not None:
        anchor_id = envelope.event_anchor.event_id

    for mapping in FIELD_MAPPINGS:
        raw = lookup_tag(tags, mapping.tags)
        if raw is None:
            continue
        if (
            mapping.field == EXPORT_ID_FIELD
            and anchor_id is not None
            and lookup_tag(tags, (EXPORT_ID_TAG,)) is None
            and str(raw) == anchor_id
        ):
            continue
        value = _restore(raw, mapping.kind)
        if value is None or value == []:
            continue
        section, name = mapping.field.split(".", 1)
        sections[section][name] = value

    governance = _governance_fields(tags)
    if governance is not None:
        sections["extension"]["governance"] = governance

    context = None
    if envelope is not None and not envelope.is_empty():
        context = ProvenanceContext(
            audit=envelope.audit,
            entities=envelope.entities,
            event_anchor=envelope.event_anchor,
            intent=envelope.intent,
        )

    return MetadataContract.model_validate(
        {
            "core": sections["core"] or None,
            "extension": sections["extension"] or None,
            "context": context,
        }
    )
