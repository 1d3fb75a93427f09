"""
Per-asset health scoring.

Score starts at 100 and is reduced by weighted deductions:

    -8  per missing required core field
    -6  per missing required evidence field
    -5  keyword count outside 5..15 (when keywords are present)
    -5  caption length outside 200..1200 (when a caption is present)
    -2  per closed-enumeration violation
    -1  per missing recommended field

The result is clamped to 0..100. Status follows the embed tier, not the
score.
"""

from __future__ import annotations

from typing import List

from embedder.app.contract.constraints import (
    CORE_CONSTRAINTS,
    KEYWORD_CONSTRAINTS,
    RECOMMENDED_FIELDS,
    enum_value,
    is_blank,
    is_member,
)
from embedder.app.schemas.contract import (
    EmbedTier,
    JobType,
    MetadataContract,
    PageRole,
)
from embedder.app.schemas.manifest import HealthReport, HealthStatus
from embedder.app.writer.tiering import (
    calculate_embed_tier,
    missing_core_fields,
    missing_evidence_fields,
)


CORE_FIELD_PENALTY = 8
EVIDENCE_FIELD_PENALTY = 6
RANGE_PENALTY = 5
ENUM_PENALTY = 2
RECOMMENDED_FIELD_PENALTY = 1

_STATUS_BY_TIER = {
    EmbedTier.AUTHORITY: HealthStatus.EVIDENCE_EMBEDDED,
    EmbedTier.EVIDENCE: HealthStatus.EVIDENCE_EMBEDDED,
    EmbedTier.BASIC: HealthStatus.PARTIALLY_EMBEDDED,
    EmbedTier.INCOMPLETE: HealthStatus.NOT_EMBEDDED,
}


def health_status_for_tier(tier: EmbedTier) -> HealthStatus:
    return _STATUS_BY_TIER[tier]


def calculate_health_report(contract: MetadataContract) -> HealthReport:
    missing: List[str] = []
    warnings: List[str] = []
    score = 100

    # Keyword count is scored below, not as a missing field.
    core_missing = [
        f for f in missing_core_fields(contract)
        if not (f == "keywords" and contract.core is not None and contract.core.keywords)
    ]
    for field in core_missing:
        missing.append(f"core.{field}")
        score -= CORE_FIELD_PENALTY

    core = contract.core
    if core is not None:
        count = len(core.keywords)
        if 0 < count < KEYWORD_CONSTRAINTS.min_count:
            warnings.append(
                f"Only {count} keywords (minimum {KEYWORD_CONSTRAINTS.min_count})"
            )
            score -= RANGE_PENALTY
        elif count > KEYWORD_CONSTRAINTS.max_count:
            warnings.append(
                f"{count} keywords may be seen as spam "
                f"(maximum {KEYWORD_CONSTRAINTS.max_count})"
            )
            score -= RANGE_PENALTY

        caption = core.caption_abstract
        bounds = CORE_CONSTRAINTS["caption_abstract"]
        if not is_blank(caption):
            if len(caption) < bounds.min_length:
                warnings.append(
                    f"Caption too short: {len(caption)} chars "
                    f"(min {bounds.min_length})"
                )
                score -= RANGE_PENALTY
            elif len(caption) > bounds.max_length:
                warnings.append(
                    f"Caption too long: {len(caption)} chars "
                    f"(max {bounds.max_length})"
                )
                score -= RANGE_PENALTY

    for field in missing_evidence_fields(contract):
        missing.append(f"extension.{field}")
        score -= EVIDENCE_FIELD_PENALTY

    extension = contract.extension
    for field in RECOMMENDED_FIELDS:
        if extension is None or is_blank(getattr(extension, field)):
            warnings.append(f"Recommended field missing: {field}")
            score -= RECOMMENDED_FIELD_PENALTY

    if extension is not None:
        if not is_blank(extension.job_type) and not is_member(extension.job_type, JobType):
            warnings.append(f"Invalid job_type: {enum_value(extension.job_type)}")
            score -= ENUM_PENALTY
        if not is_blank(extension.page_role) and not is_member(extension.page_role, PageRole):
            warnings.append(f"Invalid page_role: {enum_value(extension.page_role)}")
            score -= ENUM_PENALTY

    tier = calculate_embed_tier(contract)

    return HealthReport(
        score=max(0, min(100, score)),
        status=health_status_for_tier(tier),
        embed_tier=tier,
        missing_fields=missing,
        warnings=warnings,
    )
