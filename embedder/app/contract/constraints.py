"""
Contract constraints.

Length and count limits, the spam blocklist, the sensitive-subject terms
behind the safety gate, and the fixed export failure messages.

These values are LOCKED. They are part of the contract version
(METADATA_VERSION) and change only together with it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Type


@dataclass(frozen=True)
class FieldConstraint:
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None


@dataclass(frozen=True)
class KeywordConstraint:
    min_count: int = 5
    max_count: int = 15
    item_max_length: int = 24


# ---------------------------------------------------------------------------
# Field limits
# ---------------------------------------------------------------------------

CORE_CONSTRAINTS: Dict[str, FieldConstraint] = {
    "object_name": FieldConstraint(required=True, max_length=60),
    "caption_abstract": FieldConstraint(
        required=True, min_length=200, max_length=1200
    ),
    "by_line": FieldConstraint(required=True, max_length=80),
    "credit": FieldConstraint(required=True, max_length=120),
    "copyright_notice": FieldConstraint(required=True, max_length=160),
    "source": FieldConstraint(required=False, max_length=120),
    "city": FieldConstraint(required=True, max_length=80),
    "country": FieldConstraint(required=True, max_length=80),
    "rights_usage_terms": FieldConstraint(required=True, max_length=500),
}

EXTENSION_CONSTRAINTS: Dict[str, FieldConstraint] = {
    "business_name": FieldConstraint(required=True, max_length=120),
    "business_website": FieldConstraint(max_length=255),
    "creator_role": FieldConstraint(max_length=80),
    "job_type": FieldConstraint(required=True),
    "service_category": FieldConstraint(required=True, max_length=60),
    "context_line": FieldConstraint(max_length=200),
    "outcome_proof": FieldConstraint(max_length=200),
    "geo_focus": FieldConstraint(max_length=60),
    "asset_id": FieldConstraint(required=True),
    "manifest_ref": FieldConstraint(max_length=255),
    "target_page": FieldConstraint(max_length=255),
    "cluster_id": FieldConstraint(max_length=60),
}

KEYWORD_CONSTRAINTS = KeywordConstraint()

TITLE_MAX_LENGTH = CORE_CONSTRAINTS["object_name"].max_length
TITLE_SUBJECT_MIN_LENGTH = 10

LOW_VISION_CONFIDENCE = 70

GOVERNANCE_REASON_MAX_LENGTH = 280
GOVERNANCE_DECISION_REF_MAX_LENGTH = 80


# ---------------------------------------------------------------------------
# Field groups
# ---------------------------------------------------------------------------

# Core fields that must all be present (keywords counted separately).
REQUIRED_CORE_FIELDS = (
    "object_name",
    "caption_abstract",
    "by_line",
    "credit",
    "copyright_notice",
    "keywords",
    "city",
    "country",
    "rights_usage_terms",
)

REQUIRED_EVIDENCE_FIELDS = (
    "business_name",
    "job_type",
    "service_category",
    "asset_id",
)

RECOMMENDED_FIELDS = (
    "context_line",
    "outcome_proof",
    "geo_focus",
    "target_page",
    "page_role",
    "checksum",
    "manifest_ref",
)


# ---------------------------------------------------------------------------
# Spam blocklist
# ---------------------------------------------------------------------------

SPAM_KEYWORDS = (
    "best", "top", "cheap", "affordable", "amazing", "awesome", "incredible",
    "professional", "expert", "quality", "guaranteed", "free", "#1",
    "number one", "leading", "premier", "elite", "ultimate", "perfect",
    "excellent", "luxury", "exclusive", "premium", "world-class",
    "unbeatable", "superb", "stunning",
)


# ---------------------------------------------------------------------------
# Safety gate
# ---------------------------------------------------------------------------

# Hard-coded compliance rule. Not business-configurable.
SENSITIVE_SUBJECT_TERMS = (
    "newborn", "infant", "baby", "child", "children", "minor",
)


# ---------------------------------------------------------------------------
# Export failure messages
# ---------------------------------------------------------------------------

class ExportFailure:
    TITLE_MISSING = "Title is required"
    TITLE_TOO_LONG = "Title too long: exceeds 60 characters"
    CAPTION_MISSING = "Caption/description is required"
    CAPTION_TOO_SHORT = "Caption too short: at least 200 characters required"
    KEYWORDS_TOO_FEW = "Too few keywords: at least 5 are required"
    CREATOR_MISSING = "Creator/photographer name is required"
    COPYRIGHT_MISSING = "Copyright notice is required"
    CITY_MISSING = "City is required for proper attribution"
    COUNTRY_MISSING = "Country is required for proper attribution"
    SAFETY_NOT_VALIDATED = (
        "Safety validation required for images containing minors"
    )
    CREDIT_MISSING = "Credit/brand is required"
    RIGHTS_MISSING = "Usage rights terms are required"


REQUIRED_CORE_MESSAGES: Dict[str, str] = {
    "object_name": ExportFailure.TITLE_MISSING,
    "caption_abstract": ExportFailure.CAPTION_MISSING,
    "by_line": ExportFailure.CREATOR_MISSING,
    "credit": ExportFailure.CREDIT_MISSING,
    "copyright_notice": ExportFailure.COPYRIGHT_MISSING,
    "keywords": ExportFailure.KEYWORDS_TOO_FEW,
    "city": ExportFailure.CITY_MISSING,
    "country": ExportFailure.COUNTRY_MISSING,
    "rights_usage_terms": ExportFailure.RIGHTS_MISSING,
}


# ---------------------------------------------------------------------------
# Presence and membership helpers
# ---------------------------------------------------------------------------

def is_blank(value: Any) -> bool:
    """True for None, whitespace-only strings and empty collections."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def enum_value(value: Any) -> Optional[str]:
    """Plain string form of an enum member or raw string."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def is_member(value: Any, enum_cls: Type[Enum]) -> bool:
    """Closed-set membership by value."""
    return enum_value(value) in {str(m.value) for m in enum_cls}


def allowed_values(enum_cls: Type[Enum]) -> str:
    return ", ".join(str(m.value) for m in enum_cls)
