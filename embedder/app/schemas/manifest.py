"""
Export manifest schema.

The manifest is the portable record of everything embedded into a batch
of exported files. If a platform later strips in-file metadata, the
stored contracts are sufficient to re-embed.

The manifest is:
- versioned (MANIFEST_VERSION)
- self-sealing (manifest_checksum covers every other field)
- forensic (each asset carries a full copy of its contract)
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from embedder.app.schemas.contract import EmbedTier, MetadataContract


MANIFEST_VERSION = "2.1"
GENERATED_BY = "ProofEmbed"


class HealthStatus(str, Enum):
    EVIDENCE_EMBEDDED = "EVIDENCE_EMBEDDED"
    PARTIALLY_EMBEDDED = "PARTIALLY_EMBEDDED"
    NOT_EMBEDDED = "NOT_EMBEDDED"


class HealthReport(BaseModel):
    score: int = Field(..., ge=0, le=100)
    status: HealthStatus
    embed_tier: EmbedTier
    missing_fields: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Manifest records
# ---------------------------------------------------------------------------


class ManifestAsset(BaseModel):
    """Persisted projection of one embedded asset."""

    file_name: str
    original_file_name: Optional[str] = None
    asset_id: str

    checksum: str = Field(..., description="Hex SHA-256 of the file bytes")
    checksum_algorithm: str = "sha256"

    embed_tier: EmbedTier
    embedded_at: str
    metadata_version: str

    contract: MetadataContract

    health_score: int = Field(..., ge=0, le=100)
    health_status: HealthStatus
    missing_fields: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")


class TierSummary(BaseModel):
    authority: int = 0
    evidence: int = 0
    basic: int = 0
    incomplete: int = 0

    model_config = ConfigDict(frozen=True, extra="forbid")


class ExportManifest(BaseModel):
    manifest_version: str = MANIFEST_VERSION
    generated_at: str
    generated_by: str = GENERATED_BY

    export_id: str
    project_id: Optional[str] = None

    business_name: str
    business_website: Optional[str] = None

    total_assets: int
    embed_tier_summary: TierSummary
    assets: List[ManifestAsset] = Field(default_factory=list)

    manifest_checksum: str = Field(
        "",
        description="SHA-256 over the canonical JSON of every other field",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Generation input
# ---------------------------------------------------------------------------


class ManifestInput(BaseModel):
    file_path: str
    contract: MetadataContract
    original_file_name: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class GenerateManifestOptions(BaseModel):
    export_id: str
    business_name: str
    assets: List[ManifestInput] = Field(default_factory=list)
    project_id: Optional[str] = None
    business_website: Optional[str] = None
    output_path: Optional[str] = Field(
        None,
        description="Where to persist manifest.json; not persisted when None",
    )
    max_workers: Optional[int] = Field(
        None,
        ge=1,
        description="Parallel per-asset workers; defaults to configuration",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------


class ChecksumMismatch(BaseModel):
    asset_id: str
    expected: str
    actual: str

    model_config = ConfigDict(frozen=True, extra="forbid")


class ManifestDiff(BaseModel):
    added_assets: List[str] = Field(default_factory=list)
    removed_assets: List[str] = Field(default_factory=list)
    modified_assets: List[str] = Field(default_factory=list)
    checksum_mismatches: List[ChecksumMismatch] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")

    def has_changes(self) -> bool:
        return bool(self.added_assets or self.removed_assets or self.modified_assets)


__all__ = [
    "MANIFEST_VERSION",
    "GENERATED_BY",
    "HealthStatus",
    "HealthReport",
    "ManifestAsset",
    "TierSummary",
    "ExportManifest",
    "ManifestInput",
    "GenerateManifestOptions",
    "ChecksumMismatch",
    "ManifestDiff",
]
