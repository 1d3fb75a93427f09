"""
Export profile schemas.

An export profile turns a caller identity plus optional per-asset
content into a flat tag map. Profiles are an alternative to the full
metadata contract for exports that only need authorship and rights
(PRODUCTION_STANDARD) or that instrument a file for stripping tests
(LAB_FORENSIC).
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BuiltinProfile(str, Enum):
    PRODUCTION_STANDARD = "PRODUCTION_STANDARD"
    LAB_FORENSIC = "LAB_FORENSIC"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class UserContext(BaseModel):
    """Identity of the person the export is attributed to."""

    display_name: str = Field(
        ...,
        description="Goes into Artist, By-line and dc:creator",
    )
    business_name: Optional[str] = Field(
        None,
        description="Credit; falls back to display_name",
    )
    website: Optional[str] = Field(
        None,
        description="Source; falls back to 'Created by {display_name}'",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("display_name")
    @classmethod
    def display_name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("display_name must not be blank.")
        return v


class ForensicContext(BaseModel):
    """Baseline facts a lab embed carries so later reads can be diffed."""

    baseline_id: str = "UNKNOWN"
    original_hash: str = ""
    file_size_original: int = Field(0, ge=0)

    model_config = ConfigDict(frozen=True, extra="forbid")


class AssetContext(BaseModel):
    """Per-asset content a profile may consume. Every field is optional."""

    short_alt: Optional[str] = Field(
        None,
        description="Short alt text for EXIF ImageDescription",
    )
    long_description: Optional[str] = Field(
        None,
        description="Caption-Abstract and dc:description",
    )
    structured_keywords: List[str] = Field(default_factory=list)
    forensic: Optional[ForensicContext] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class EmbedOptions(BaseModel):
    overwrite: bool = Field(
        False,
        description=(
            "Overwrite existing user metadata in the target. When false, "
            "non-blank values already in the file are kept."
        ),
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


class ProfileVerification(BaseModel):
    verified: bool
    present: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")


class ProfileEmbedResult(BaseModel):
    success: bool
    profile_name: str
    output_path: str
    fields_written: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    verification: ProfileVerification = ProfileVerification(verified=False)
    duration_ms: int = 0
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


__all__ = [
    "BuiltinProfile",
    "UserContext",
    "ForensicContext",
    "AssetContext",
    "EmbedOptions",
    "ProfileVerification",
    "ProfileEmbedResult",
]
