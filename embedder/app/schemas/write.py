"""
Authoritative write request and result schemas.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from embedder.app.schemas.contract import EmbedTier, MetadataContract
from embedder.app.schemas.validation import ValidationResult


class WriteErrorCode(str, Enum):
    VALIDATION_FAILED = "VALIDATION_FAILED"
    STAGING_FAILED = "STAGING_FAILED"
    MAPPING_FAILED = "MAPPING_FAILED"
    WRITE_FAILED = "WRITE_FAILED"


class WriteErrorInfo(BaseModel):
    code: WriteErrorCode
    message: str

    model_config = ConfigDict(frozen=True, extra="forbid")


class WriteRequest(BaseModel):
    source_path: str
    output_path: Optional[str] = Field(
        None,
        description="Copy the source here before writing; write in place when unset",
    )
    contract: MetadataContract

    validate_before_write: Optional[bool] = Field(
        None,
        description="Overrides VALIDATE_BEFORE_WRITE when set",
    )
    verify_after_write: Optional[bool] = Field(
        None,
        description="Overrides VERIFY_AFTER_WRITE when set",
    )
    merge_existing_side_channel: bool = Field(
        False,
        description="Merge new side-channel facts onto the envelope already in the target",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


class VerificationResult(BaseModel):
    """
    Read-back check of the required tag whitelist.

    A miss never fails the write. critical_missing lists the misses that
    concern creator or copyright so callers can escalate them.
    """

    verified: bool
    present_fields: List[str] = Field(default_factory=list)
    missing_fields: List[str] = Field(default_factory=list)
    critical_missing: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")


class WriteResult(BaseModel):
    success: bool
    output_path: Optional[str] = None
    validation: Optional[ValidationResult] = None
    fields_written: List[str] = Field(default_factory=list)
    verification: Optional[VerificationResult] = None
    embed_tier: Optional[EmbedTier] = None
    error: Optional[WriteErrorInfo] = None
    logs: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")


__all__ = [
    "WriteErrorCode",
    "WriteErrorInfo",
    "WriteRequest",
    "VerificationResult",
    "WriteResult",
]
