"""
Validation result schema.

Errors block an export; warnings advise. Both are collected
exhaustively by the validator and are never short-circuited, so a
caller can present a complete remediation list in one pass.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ValidationFailure(BaseModel):
    """A blocking violation of the metadata contract."""

    field: str = Field(..., description="Contract field the rule applies to")
    rule: str = Field(..., description="Rule identifier (e.g. 'required', 'max_length')")
    message: str
    value: Optional[Any] = Field(
        None,
        description="Offending value or measurement, when useful",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


class ValidationWarning(BaseModel):
    """An advisory quality issue. Never blocks."""

    field: str
    message: str

    model_config = ConfigDict(frozen=True, extra="forbid")


class ValidationResult(BaseModel):
    valid: bool
    errors: List[ValidationFailure] = Field(default_factory=list)
    warnings: List[ValidationWarning] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")

    def error_fields(self) -> List[str]:
        return [e.field for e in self.errors]


__all__ = [
    "ValidationFailure",
    "ValidationWarning",
    "ValidationResult",
]
