"""
Metadata contract schema.

Defines the authoritative shape of the provenance metadata embedded into
an image file:

- IPTCCore: descriptive and rights fields mirrored into legacy and
  modern tag namespaces
- XMPExtension: secondary AI classification, proof-first evidence,
  continuity/linkage, IA structure and governance attestation
- MetadataContract: the pair of the above, plus optional side-channel
  facts

This schema is:
- immutable once constructed (frozen)
- permissive about values (bounds are enforced by the validator, not
  by construction, so any candidate can be validated and reported on)
- strict about shape (unknown keys are rejected)

Closed enumerations are str Enums. Contract fields typed with an
enumeration hold the enum member when the value is in the set and the
raw string otherwise; the validator reports the latter.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Callable, List, Optional, Type, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from embedder.app.schemas.side_channel import ProvenanceContext


METADATA_VERSION = "2.1"


# ---------------------------------------------------------------------------
# Enumerations (FROZEN CONTRACTS)
# ---------------------------------------------------------------------------


class JobType(str, Enum):
    """Evidence classification of the job the image documents."""

    SERVICE_PROOF = "service-proof"
    CASE_STUDY = "case-study"
    PORTFOLIO = "portfolio"
    TESTIMONIAL = "testimonial"
    BEFORE_AFTER = "before-after"


class PageRole(str, Enum):
    """Role of the target page in the site's information architecture."""

    MONEY = "money"
    TRUST = "trust"
    SUPPORT = "support"
    AUTHORITY = "authority"


class GovernanceStatus(str, Enum):
    APPROVED = "approved"
    BLOCKED = "blocked"
    WARNING = "warning"
    PENDING = "pending"


class GovernancePolicy(str, Enum):
    DENY_AI_PROOF = "deny_ai_proof"
    CONDITIONAL = "conditional"
    ALLOW = "allow"


def _closed_set(enum_cls: Type[Enum]) -> Callable[[Any], Any]:
    """
    Coerce in-set strings to their enum member and pass anything else
    through untouched, so out-of-set values survive for reporting.
    """

    def coerce(value: Any) -> Any:
        if isinstance(value, str) and not isinstance(value, Enum):
            try:
                return enum_cls(value)
            except ValueError:
                return value
        return value

    return coerce


JobTypeValue = Annotated[Union[JobType, str], BeforeValidator(_closed_set(JobType))]
PageRoleValue = Annotated[Union[PageRole, str], BeforeValidator(_closed_set(PageRole))]
GovernanceStatusValue = Annotated[
    Union[GovernanceStatus, str],
    BeforeValidator(_closed_set(GovernanceStatus)),
]
GovernancePolicyValue = Annotated[
    Union[GovernancePolicy, str],
    BeforeValidator(_closed_set(GovernancePolicy)),
]


def _unknown_as_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip().lower() == "unknown":
        return None
    return value


TriState = Annotated[Optional[bool], BeforeValidator(_unknown_as_none)]


class EmbedTier(str, Enum):
    """
    Completeness classification of an embed.

    Ordering is intentional and MUST remain stable:
        INCOMPLETE < BASIC < EVIDENCE < AUTHORITY

    A tier is always derived from field presence. It is never stored as
    a state transition.
    """

    INCOMPLETE = "INCOMPLETE"
    BASIC = "BASIC"
    EVIDENCE = "EVIDENCE"
    AUTHORITY = "AUTHORITY"

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, EmbedTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, EmbedTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, EmbedTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, EmbedTier):
            return NotImplemented
        return self.rank >= other.rank


# ---------------------------------------------------------------------------
# Governance attestation
# ---------------------------------------------------------------------------


class GovernanceAttestation(BaseModel):
    """
    Portable record of an upstream AI-content policy decision.

    Carried through unchanged so third parties can inspect the decision
    from the file or the manifest alone.
    """

    ai_generated: TriState = Field(
        None,
        description="True/False, or None (\"unknown\") when detection was inconclusive",
    )

    ai_confidence: Optional[float] = Field(
        None,
        description="Detector confidence in 0.00..1.00",
    )

    status: GovernanceStatusValue = GovernanceStatus.PENDING

    policy: GovernancePolicyValue = GovernancePolicy.CONDITIONAL

    reason: Optional[str] = None

    checked_at: Optional[str] = Field(
        None,
        description="ISO 8601 timestamp of the governance decision",
    )

    decision_ref: Optional[str] = Field(
        None,
        description="Short reference/hash/id for audit lookup",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# IPTC core
# ---------------------------------------------------------------------------


class IPTCCore(BaseModel):
    """
    Descriptive and rights fields.

    Every field is optional at construction; see the validator for
    what is required for export.
    """

    object_name: Optional[str] = Field(
        None,
        description="Branded title, at most 60 characters",
    )

    caption_abstract: Optional[str] = Field(
        None,
        description="Full semantic description, 200..1200 characters",
    )

    by_line: Optional[str] = Field(None, description="Creator / photographer")

    credit: Optional[str] = Field(None, description="Studio or brand credit")

    copyright_notice: Optional[str] = None

    source: Optional[str] = None

    keywords: List[str] = Field(
        default_factory=list,
        description="Atomic keywords, 5..15 items of at most 24 characters",
    )

    city: Optional[str] = None

    country: Optional[str] = None

    rights_usage_terms: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# XMP vendor extension
# ---------------------------------------------------------------------------


class XMPExtension(BaseModel):
    """
    Vendor-namespace extension record.

    Proof-first evidence fields assert who did the work and for what
    kind of job, as opposed to purely descriptive content.
    """

    # --- AI classification (secondary) ---
    scene_type: Optional[str] = None
    subjects: List[str] = Field(default_factory=list)
    emotional_tone: Optional[str] = None
    intent: Optional[str] = None
    safety_validated: Optional[bool] = None
    style_fingerprint_id: Optional[str] = None
    vision_confidence: Optional[int] = Field(
        None,
        description="AI vision confidence score, 0..100",
    )
    enhancement_trace_id: Optional[str] = None

    # --- Business identity (proof-first) ---
    business_name: Optional[str] = None
    business_website: Optional[str] = None
    creator_role: Optional[str] = None

    # --- Job evidence (proof-first) ---
    job_type: Optional[JobTypeValue] = None
    service_category: Optional[str] = None
    context_line: Optional[str] = None
    outcome_proof: Optional[str] = None

    # --- Location ---
    geo_focus: Optional[str] = None

    # --- Continuity / linkage ---
    asset_id: Optional[str] = None
    export_id: Optional[str] = None
    manifest_ref: Optional[str] = None
    checksum: Optional[str] = None

    # --- IA structure ---
    target_page: Optional[str] = None
    page_role: Optional[PageRoleValue] = None
    cluster_id: Optional[str] = None

    metadata_version: str = METADATA_VERSION

    # --- Governance attestation ---
    governance: Optional[GovernanceAttestation] = None

    # --- Public verification (opt-in) ---
    verification_token: Optional[str] = None
    verification_url: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Full contract
# ---------------------------------------------------------------------------


class MetadataContract(BaseModel):
    """
    Canonical metadata contract for one asset.

    Constructed once per asset, then treated as immutable input to
    validation and mapping. It is never persisted directly; the manifest
    stores a copy inside each ManifestAsset.
    """

    core: Optional[IPTCCore] = None
    extension: Optional[XMPExtension] = None
    context: Optional[ProvenanceContext] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


__all__ = [
    "METADATA_VERSION",
    "JobType",
    "PageRole",
    "GovernanceStatus",
    "GovernancePolicy",
    "EmbedTier",
    "GovernanceAttestation",
    "IPTCCore",
    "XMPExtension",
    "MetadataContract",
    "TriState",
]
