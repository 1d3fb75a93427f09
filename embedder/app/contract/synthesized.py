"""
Adapter from upstream synthesized metadata to a MetadataContract.

The vision/LLM pipeline that produces SynthesizedMetadataInput is an
external collaborator. Its output is accepted leniently (unknown keys
are ignored) and turned into a contract with the brand, rights and
location context supplied by the caller.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from embedder.app.contract.formatting import (
    DEFAULT_SESSION_TYPE,
    detect_session_type,
    extract_primary_subjects,
    format_title,
)
from embedder.app.contract.keywords import sanitize_keywords
from embedder.app.schemas.contract import (
    GovernanceAttestation,
    GovernancePolicy,
    GovernanceStatus,
    IPTCCore,
    JobType,
    MetadataContract,
    TriState,
    XMPExtension,
)
from embedder.app.schemas.side_channel import ProvenanceContext


DEFAULT_USAGE_TERMS = (
    "Personal use only. Commercial licensing available upon request."
)
DEFAULT_SCENE_TYPE = "portrait"
DEFAULT_EMOTIONAL_TONE = "neutral"
DEFAULT_INTENT = "portfolio"


# ---------------------------------------------------------------------------
# Input shapes
# ---------------------------------------------------------------------------


class SceneInfo(BaseModel):
    scene_type: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore")


class IntentInfo(BaseModel):
    purpose: Optional[str] = None
    emotional_tone: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore")


class ConfidenceInfo(BaseModel):
    overall: Optional[float] = Field(None, description="0.0..1.0")

    model_config = ConfigDict(frozen=True, extra="ignore")


class SynthesizedMetadataInput(BaseModel):
    """Candidate values produced by the upstream vision/LLM pipeline."""

    headline: Optional[str] = None
    description: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    title: Optional[str] = None
    scene: Optional[SceneInfo] = None
    intent: Optional[IntentInfo] = None
    confidence: Optional[ConfidenceInfo] = None

    model_config = ConfigDict(frozen=True, extra="ignore")


class GovernanceOptions(BaseModel):
    ai_generated: TriState = None
    ai_confidence: Optional[float] = None
    status: Optional[GovernanceStatus] = None
    policy: Optional[GovernancePolicy] = None
    reason: Optional[str] = None
    checked_at: Optional[str] = None
    decision_ref: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class ContractOptions(BaseModel):
    """Business, rights and location context for a contract."""

    brand: str
    photographer_name: str
    city: str
    country: str
    credit: Optional[str] = None
    copyright_template: Optional[str] = None
    usage_terms: Optional[str] = None
    session_type: Optional[str] = None
    job_type: JobType = JobType.PORTFOLIO
    safety_validated: Optional[bool] = Field(
        None,
        description="Upstream confirmation that sensitive subjects were reviewed",
    )
    governance: Optional[GovernanceOptions] = None
    context: Optional[ProvenanceContext] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def _build_governance(
    options: Optional[GovernanceOptions],
    now: datetime,
) -> Optional[GovernanceAttestation]:
    if options is None:
        return None
    return GovernanceAttestation(
        ai_generated=options.ai_generated,
        ai_confidence=options.ai_confidence,
        status=options.status or GovernanceStatus.APPROVED,
        policy=options.policy or GovernancePolicy.CONDITIONAL,
        reason=options.reason,
        checked_at=options.checked_at or now.isoformat(),
        decision_ref=options.decision_ref,
    )


def to_metadata_contract(
    synthesized: SynthesizedMetadataInput,
    options: ContractOptions,
    *,
    now: Optional[datetime] = None,
) -> MetadataContract:
    """
    Fill a MetadataContract from synthesized values and caller context.

    Generates the branded title, the default copyright line, default
    usage terms, sanitized keywords and a fresh UUID4 asset id.
    """
    now = now or datetime.now(timezone.utc)

    scene_type = synthesized.scene.scene_type if synthesized.scene else None
    session_type = (
        options.session_type
        or detect_session_type(scene_type)
        or DEFAULT_SESSION_TYPE
    )

    description = synthesized.description or ""
    subjects = extract_primary_subjects(description)
    title_subject = synthesized.title or synthesized.headline or ", ".join(subjects)

    copyright_notice = (
        options.copyright_template
        or f"© {now.year} {options.brand}. All Rights Reserved."
    )

    core = IPTCCore(
        object_name=format_title(options.brand, session_type, title_subject),
        caption_abstract=description,
        by_line=options.photographer_name,
        credit=options.credit or options.brand,
        copyright_notice=copyright_notice,
        source=f"{session_type} - {options.brand}",
        keywords=sanitize_keywords(synthesized.keywords),
        city=options.city,
        country=options.country,
        rights_usage_terms=options.usage_terms or DEFAULT_USAGE_TERMS,
    )

    intent = synthesized.intent
    confidence = synthesized.confidence
    vision_confidence = (
        round(confidence.overall * 100)
        if confidence is not None and confidence.overall is not None
        else None
    )

    extension = XMPExtension(
        scene_type=scene_type or DEFAULT_SCENE_TYPE,
        subjects=subjects,
        emotional_tone=(intent.emotional_tone if intent else None)
        or DEFAULT_EMOTIONAL_TONE,
        intent=(intent.purpose if intent else None) or DEFAULT_INTENT,
        safety_validated=options.safety_validated,
        vision_confidence=vision_confidence,
        business_name=options.brand,
        job_type=options.job_type,
        service_category=session_type,
        geo_focus=f"{options.city}, {options.country}",
        asset_id=str(uuid.uuid4()),
        governance=_build_governance(options.governance, now),
    )

    return MetadataContract(core=core, extension=extension, context=options.context)
