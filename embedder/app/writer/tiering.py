"""
Embed tier classification.

The tier is a pure function of field presence, recomputed on every call:

    BASIC      every required core field present, at least 5 keywords
    EVIDENCE   BASIC + business_name, job_type, service_category, asset_id
    AUTHORITY  EVIDENCE + target_page AND page_role
                        AND (context_line OR outcome_proof)

Each level requires the one below it, so adding fields never lowers the
tier. Presence means "not blank"; value validity is the validator's job.
"""

from __future__ import annotations

from typing import List

from embedder.app.contract.constraints import (
    KEYWORD_CONSTRAINTS,
    REQUIRED_CORE_FIELDS,
    REQUIRED_EVIDENCE_FIELDS,
    is_blank,
)
from embedder.app.schemas.contract import EmbedTier, MetadataContract


def missing_core_fields(contract: MetadataContract) -> List[str]:
    core = contract.core
    if core is None:
        return list(REQUIRED_CORE_FIELDS)

    missing = []
    for field in REQUIRED_CORE_FIELDS:
        if field == "keywords":
            if len(core.keywords) < KEYWORD_CONSTRAINTS.min_count:
                missing.append(field)
        elif is_blank(getattr(core, field)):
            missing.append(field)
    return missing


def missing_evidence_fields(contract: MetadataContract) -> List[str]:
    extension = contract.extension
    if extension is None:
        return list(REQUIRED_EVIDENCE_FIELDS)
    return [f for f in REQUIRED_EVIDENCE_FIELDS if is_blank(getattr(extension, f))]


def has_authority_fields(contract: MetadataContract) -> bool:
    extension = contract.extension
    if extension is None:
        return False
    has_structure = not is_blank(extension.target_page) and not is_blank(
        extension.page_role
    )
    has_proof = not is_blank(extension.context_line) or not is_blank(
        extension.outcome_proof
    )
    return has_structure and has_proof


def calculate_embed_tier(contract: MetadataContract) -> EmbedTier:
    if missing_core_fields(contract):
        return EmbedTier.INCOMPLETE
    if missing_evidence_fields(contract):
        return EmbedTier.BASIC
    if not has_authority_fields(contract):
        return EmbedTier.EVIDENCE
    return EmbedTier.AUTHORITY
