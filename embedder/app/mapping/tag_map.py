"""
Contract to tag-set mapping.

Each logical contract field is written to several physical tags across
legacy and modern namespaces:

- IPTC IIM (legacy):       ObjectName, Caption-Abstract, By-line, ...
- XMP Dublin Core:         XMP-dc:*
- XMP Photoshop / Rights:  XMP-photoshop:*, XMP-xmpRights:*
- EXIF (basic readers):    ImageDescription, Artist, Copyright
- Vendor extension:        XMP-proofembed:*

Different downstream readers honour different namespaces. The redundancy
is a compatibility requirement and lives in one explicit table
(FIELD_MAPPINGS) so it can be audited and tested field by field.

build_tag_set is deterministic and side-effect free: the same contract
always yields the same tag set.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from embedder.app.contract.constraints import (
    GOVERNANCE_DECISION_REF_MAX_LENGTH,
    GOVERNANCE_REASON_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    enum_value,
    is_blank,
)
from embedder.app.contract.keywords import sanitize_keywords
from embedder.app.mapping.side_channel import (
    DEFAULT_MAX_BYTES,
    encode_envelope,
    merge_envelopes,
)
from embedder.app.schemas.contract import (
    METADATA_VERSION,
    GovernanceAttestation,
    MetadataContract,
)
from embedder.app.schemas.side_channel import SideChannelEnvelope
from embedder.app.utils.timestamps import to_utc_iso
from embedder.app.writer.tiering import calculate_embed_tier

logger = logging.getLogger(__name__)

TagValue = Union[str, List[str]]
TagMap = Dict[str, TagValue]

VENDOR_GROUP = "XMP-proofembed"
VENDOR_PREFIX = "proofembed"
VENDOR_NAMESPACE_URI = "http://ns.proofembed.org/2.1/"

CREDIT_DELIMITER = " | "
SIDE_CHANNEL_TAG = "UserComment"


class Attribution:
    """Tooling attribution, always written to the vendor namespace."""

    CREDIT_LINE = "Provenance embedded with ProofEmbed"
    EMBEDDED_BY = "ProofEmbed"
    EMBEDDING_METHOD = "Automated contextual analysis and IPTC synthesis"
    PIPELINE_VERSION = METADATA_VERSION


class ValueKind(str, Enum):
    TEXT = "text"
    TITLE = "title"
    CREDIT = "credit"
    KEYWORDS = "keywords"
    LIST = "list"
    BOOL = "bool"
    INT = "int"


@dataclass(frozen=True)
class FieldMapping:
    field: str
    tags: Tuple[str, ...]
    kind: ValueKind = ValueKind.TEXT


def _vendor(name: str) -> str:
    return f"{VENDOR_GROUP}:{name}"


# ---------------------------------------------------------------------------
# Mapping table
# ---------------------------------------------------------------------------

FIELD_MAPPINGS: Tuple[FieldMapping, ...] = (
    # --- IPTC core ---
    FieldMapping(
        "core.object_name",
        ("ObjectName", "XMP-dc:Title", "XMP-photoshop:Headline"),
        ValueKind.TITLE,
    ),
    FieldMapping(
        "core.caption_abstract",
        ("Caption-Abstract", "XMP-dc:Description", "ImageDescription"),
    ),
    FieldMapping("core.by_line", ("By-line", "XMP-dc:Creator", "Artist")),
    FieldMapping(
        "core.credit",
        ("Credit", "XMP-photoshop:Credit"),
        ValueKind.CREDIT,
    ),
    FieldMapping(
        "core.copyright_notice",
        ("CopyrightNotice", "XMP-dc:Rights", "Copyright"),
    ),
    FieldMapping("core.source", ("Source", "XMP-dc:Source", "XMP-photoshop:Source")),
    FieldMapping("core.keywords", ("Keywords", "XMP-dc:Subject"), ValueKind.KEYWORDS),
    FieldMapping("core.city", ("City", "XMP-photoshop:City")),
    FieldMapping(
        "core.country",
        ("Country-PrimaryLocationName", "XMP-photoshop:Country"),
    ),
    FieldMapping("core.rights_usage_terms", ("XMP-xmpRights:UsageTerms",)),
    # --- AI classification ---
    FieldMapping("extension.scene_type", (_vendor("SceneType"),)),
    FieldMapping("extension.subjects", (_vendor("PrimarySubjects"),), ValueKind.LIST),
    FieldMapping("extension.emotional_tone", (_vendor("EmotionalTone"),)),
    FieldMapping("extension.intent", (_vendor("Intent"),)),
    FieldMapping(
        "extension.safety_validated",
        (_vendor("SafetyValidated"),),
        ValueKind.BOOL,
    ),
    FieldMapping("extension.style_fingerprint_id", (_vendor("StyleFingerprintId"),)),
    FieldMapping(
        "extension.vision_confidence",
        (_vendor("VisionConfidenceScore"),),
        ValueKind.INT,
    ),
    FieldMapping("extension.enhancement_trace_id", (_vendor("EnhancementTraceId"),)),
    # --- Business identity ---
    FieldMapping("extension.business_name", (_vendor("BusinessName"),)),
    FieldMapping(
        "extension.business_website",
        (_vendor("BusinessWebsite"), "XMP-xmpRights:WebStatement"),
    ),
    FieldMapping("extension.creator_role", (_vendor("CreatorRole"),)),
    # --- Job evidence ---
    FieldMapping("extension.job_type", (_vendor("JobType"),)),
    FieldMapping("extension.service_category", (_vendor("ServiceCategory"),)),
    FieldMapping(
        "extension.context_line",
        (_vendor("ContextLine"), "XMP-photoshop:Instructions"),
    ),
    FieldMapping("extension.outcome_proof", (_vendor("OutcomeProof"),)),
    # --- Location ---
    FieldMapping("extension.geo_focus", (_vendor("GeoFocus"),)),
    # --- Continuity / linkage ---
    FieldMapping("extension.asset_id", (_vendor("AssetId"),)),
    FieldMapping(
        "extension.export_id",
        (
            _vendor("ExportId"),
            "TransmissionReference",
            "XMP-photoshop:TransmissionReference",
        ),
    ),
    FieldMapping("extension.manifest_ref", (_vendor("ManifestRef"),)),
    FieldMapping("extension.checksum", (_vendor("Checksum"),)),
    # --- IA structure ---
    FieldMapping("extension.target_page", (_vendor("TargetPage"),)),
    FieldMapping("extension.page_role", (_vendor("PageRole"),)),
    FieldMapping("extension.cluster_id", (_vendor("ClusterId"),)),
    FieldMapping("extension.metadata_version", (_vendor("MetadataVersion"),)),
    # --- Public verification ---
    FieldMapping("extension.verification_token", (_vendor("VerificationToken"),)),
    FieldMapping("extension.verification_url", (_vendor("VerificationUrl"),)),
)

# Vendor tags written outside the table (derived, attribution, governance).
DERIVED_VENDOR_TAGS = (
    "EmbeddedBy",
    "EmbeddingMethod",
    "PipelineVersion",
    "EmbedTier",
    "AIGenerated",
    "AIConfidence",
    "GovernanceStatus",
    "GovernancePolicy",
    "GovernanceReason",
    "GovernanceCheckedAt",
    "GovernanceDecisionRef",
)

# Written by export profiles only.
PROFILE_VENDOR_TAGS = (
    "Version",
    "ExportProfile",
    "Timestamp",
    "RunID",
    "BaselineID",
    "OriginalHash",
    "FileSizeOriginal",
)

_MAPPINGS_BY_FIELD: Dict[str, FieldMapping] = {m.field: m for m in FIELD_MAPPINGS}


def vendor_tag_names() -> List[str]:
    """Every tag name written into the vendor namespace, table order first."""
    names: List[str] = []
    for mapping in FIELD_MAPPINGS:
        for tag in mapping.tags:
            if tag.startswith(VENDOR_GROUP + ":"):
                names.append(tag.split(":", 1)[1])
    names.extend(DERIVED_VENDOR_TAGS)
    names.extend(PROFILE_VENDOR_TAGS)
    return names


def tags_for_field(field: str) -> Tuple[str, ...]:
    """
    Physical tags a logical field is written to.

    Accepts the dotted name ("core.city") or the bare attribute name
    ("city"). Unknown fields map to no tags.
    """
    mapping = _MAPPINGS_BY_FIELD.get(field)
    if mapping is None:
        for candidate in FIELD_MAPPINGS:
            if candidate.field.split(".", 1)[1] == field:
                mapping = candidate
                break
    return mapping.tags if mapping is not None else ()


# ---------------------------------------------------------------------------
# Value conversion
# ---------------------------------------------------------------------------


def _single_line(value: str) -> str:
    return " ".join(value.splitlines()).strip()


def compose_credit(credit: Optional[str]) -> str:
    """User credit first, attribution appended. The user value is kept verbatim."""
    if is_blank(credit):
        return Attribution.CREDIT_LINE
    credit = credit.strip()
    if credit.endswith(CREDIT_DELIMITER + Attribution.CREDIT_LINE):
        return credit
    return f"{credit}{CREDIT_DELIMITER}{Attribution.CREDIT_LINE}"


def _convert(value: Any, kind: ValueKind) -> Optional[TagValue]:
    if kind is ValueKind.BOOL:
        if value is None:
            return None
        return "True" if value else "False"

    if kind is ValueKind.INT:
        if value is None:
            return None
        return str(int(value))

    if kind is ValueKind.KEYWORDS:
        keywords = sanitize_keywords(value or [])
        return keywords or None

    if kind is ValueKind.LIST:
        items = [_single_line(v) for v in (value or []) if not is_blank(v)]
        return ", ".join(items) if items else None

    if kind is ValueKind.CREDIT:
        return compose_credit(value)

    if is_blank(value):
        return None

    text = _single_line(enum_value(value))
    if kind is ValueKind.TITLE:
        text = text[:TITLE_MAX_LENGTH]
    return text


def _field_value(contract: MetadataContract, field: str) -> Any:
    section, name = field.split(".", 1)
    record = getattr(contract, section)
    if record is None:
        return None
    return getattr(record, name)


# ---------------------------------------------------------------------------
# Governance
# ---------------------------------------------------------------------------


def governance_bool(value: Optional[bool]) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    return "unknown"


def governance_confidence(value: Optional[float]) -> Optional[str]:
    if value is None or math.isnan(value):
        return None
    return f"{max(0.0, min(1.0, value)):.2f}"


def governance_tags(governance: GovernanceAttestation) -> TagMap:
    tags: TagMap = {
        _vendor("AIGenerated"): governance_bool(governance.ai_generated),
        _vendor("GovernanceStatus"): enum_value(governance.status),
        _vendor("GovernancePolicy"): enum_value(governance.policy),
    }

    confidence = governance_confidence(governance.ai_confidence)
    if confidence is not None:
        tags[_vendor("AIConfidence")] = confidence

    if not is_blank(governance.reason):
        tags[_vendor("GovernanceReason")] = _single_line(governance.reason)[
            :GOVERNANCE_REASON_MAX_LENGTH
        ]

    checked_at = to_utc_iso(governance.checked_at)
    if checked_at is not None:
        tags[_vendor("GovernanceCheckedAt")] = checked_at

    if not is_blank(governance.decision_ref):
        tags[_vendor("GovernanceDecisionRef")] = governance.decision_ref.strip()[
            :GOVERNANCE_DECISION_REF_MAX_LENGTH
        ]

    return tags


# ---------------------------------------------------------------------------
# Side channel
# ---------------------------------------------------------------------------


def _side_channel_tags(
    contract: MetadataContract,
    existing: Optional[SideChannelEnvelope],
    max_bytes: int,
    tags: TagMap,
) -> None:
    context = contract.context
    newer = SideChannelEnvelope.from_context(context) if context is not None else None
    envelope = merge_envelopes(existing, newer)

    if envelope is not None:
        encoded = encode_envelope(envelope, max_bytes)
        if encoded is not None:
            tags[SIDE_CHANNEL_TAG] = encoded

    if context is None:
        return

    if context.audit is not None and not is_blank(context.audit.embedded_at):
        tags["XMP-xmp:ModifyDate"] = context.audit.embedded_at

    anchor = context.event_anchor
    if anchor is not None:
        if "TransmissionReference" not in tags:
            tags["TransmissionReference"] = anchor.event_id
            tags["XMP-photoshop:TransmissionReference"] = anchor.event_id
        if anchor.story_sequence is not None:
            tags["XMP-iptcExt:SeriesName"] = anchor.event_name or anchor.event_id
            tags["XMP-iptcExt:Episode"] = f"{anchor.story_sequence:04d}"

    intent = context.intent
    if intent is not None and not is_blank(intent.narrative_role):
        tags["SpecialInstructions"] = f"Narrative: {intent.narrative_role.strip()}"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_tag_set(
    contract: MetadataContract,
    *,
    existing_envelope: Optional[SideChannelEnvelope] = None,
    side_channel_max_bytes: int = DEFAULT_MAX_BYTES,
) -> TagMap:
    """
    Expand a contract into the flat tag set handed to the tag writer.

    Args:
        contract: contract to map; it is not validated here.
        existing_envelope: side-channel envelope already present in the
            target file; new facts are merged on top of it.
        side_channel_max_bytes: byte budget of the encoded envelope.

    Raises:
        SideChannelOverflowError: if the audit section alone exceeds
            the side-channel budget.
    """
    tags: TagMap = {}

    for mapping in FIELD_MAPPINGS:
        if mapping.kind is ValueKind.CREDIT and contract.core is None:
            continue
        value = _convert(_field_value(contract, mapping.field), mapping.kind)
        if value is None:
            continue
        for tag in mapping.tags:
            tags[tag] = value

    core = contract.core
    if core is not None and not is_blank(core.copyright_notice):
        tags["XMP-xmpRights:Marked"] = "True"

    extension = contract.extension
    if extension is not None:
        if is_blank(extension.geo_focus) and core is not None:
            if not is_blank(core.city) and not is_blank(core.country):
                tags[_vendor("GeoFocus")] = f"{core.city.strip()}, {core.country.strip()}"

        if not is_blank(extension.asset_id):
            asset_id = extension.asset_id.strip()
            instance = (extension.export_id or "local").strip() or "local"
            tags["XMP-xmpMM:DocumentID"] = f"xmp.did:{asset_id}"
            tags["XMP-xmpMM:InstanceID"] = f"xmp.iid:{asset_id}-{instance}"

        if extension.governance is not None:
            tags.update(governance_tags(extension.governance))

    tags[_vendor("EmbeddedBy")] = Attribution.EMBEDDED_BY
    tags[_vendor("EmbeddingMethod")] = Attribution.EMBEDDING_METHOD
    tags[_vendor("PipelineVersion")] = Attribution.PIPELINE_VERSION
    tags[_vendor("EmbedTier")] = calculate_embed_tier(contract).value

    _side_channel_tags(contract, existing_envelope, side_channel_max_bytes, tags)

    logger.debug("Built tag set with %d tags", len(tags))
    return tags


def lookup_tag(tags: Mapping[str, Any], names: Tuple[str, ...]) -> Any:
    """First non-blank value among ``names``, trying each bare name too."""
    for name in names:
        for key in (name, name.split(":", 1)[-1]):
            value = tags.get(key)
            if not is_blank(value):
                return value
    return None
