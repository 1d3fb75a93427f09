"""
Metadata contract validator.

Rule-based, pure validation of a candidate MetadataContract.

Every rule runs on every call. Violations are collected exhaustively and
never short-circuited, so a caller gets the complete remediation list in
one pass.

Errors block an export:
- required core fields, length and count bounds
- the safety gate for sensitive subjects (hard-coded compliance rule)
- proof-first evidence fields; a missing extension record is itself an
  error (caption-only embeds are refused)
- values outside closed enumerations

Warnings advise and never block:
- keyword quality (spam, duplicates, sentence fragments, over-count)
- borderline lengths, low vision confidence
- missing recommended fields that hold back tier advancement
- governance attestation quality
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, List, Optional

from embedder.app.contract.constraints import (
    CORE_CONSTRAINTS,
    EXTENSION_CONSTRAINTS,
    KEYWORD_CONSTRAINTS,
    LOW_VISION_CONFIDENCE,
    REQUIRED_CORE_MESSAGES,
    REQUIRED_EVIDENCE_FIELDS,
    ExportFailure,
    allowed_values,
    enum_value,
    is_blank,
    is_member,
)
from embedder.app.contract.formatting import requires_safety_validation
from embedder.app.contract.keywords import (
    find_duplicates,
    is_sentence_like,
    is_spam_keyword,
)
from embedder.app.schemas.contract import (
    GovernanceAttestation,
    GovernancePolicy,
    GovernanceStatus,
    IPTCCore,
    JobType,
    MetadataContract,
    PageRole,
    XMPExtension,
)
from embedder.app.schemas.validation import (
    ValidationFailure,
    ValidationResult,
    ValidationWarning,
)
from embedder.app.utils.timestamps import parse_timestamp

logger = logging.getLogger(__name__)


class MetadataValidationError(ValueError):
    """Raised when a contract fails blocking validation."""

    def __init__(self, result: ValidationResult):
        self.result = result
        summary = "; ".join(f"{e.field}: {e.message}" for e in result.errors)
        super().__init__(f"Metadata validation failed: {summary}")


class _Collector:
    def __init__(self) -> None:
        self.errors: List[ValidationFailure] = []
        self.warnings: List[ValidationWarning] = []

    def error(self, field: str, rule: str, message: str, value: Any = None) -> None:
        self.errors.append(
            ValidationFailure(field=field, rule=rule, message=message, value=value)
        )

    def warn(self, field: str, message: str) -> None:
        self.warnings.append(ValidationWarning(field=field, message=message))

    def result(self) -> ValidationResult:
        return ValidationResult(
            valid=not self.errors,
            errors=self.errors,
            warnings=self.warnings,
        )


# ---------------------------------------------------------------------------
# Core fields
# ---------------------------------------------------------------------------


def _check_core(core: Optional[IPTCCore], out: _Collector) -> None:
    if core is None:
        for field, message in REQUIRED_CORE_MESSAGES.items():
            out.error(field, "required", message)
        return

    for field, constraint in CORE_CONSTRAINTS.items():
        value = getattr(core, field)

        if is_blank(value):
            if constraint.required:
                out.error(field, "required", REQUIRED_CORE_MESSAGES[field])
            continue

        length = len(value)

        if field == "caption_abstract":
            if length < constraint.min_length:
                out.error(
                    field,
                    "min_length",
                    f"{ExportFailure.CAPTION_TOO_SHORT} (got {length})",
                    length,
                )
            elif length > constraint.max_length:
                out.warn(
                    field,
                    f"Caption longer than {constraint.max_length} characters "
                    f"({length}); some readers truncate it",
                )
            continue

        if constraint.max_length is not None and length > constraint.max_length:
            message = (
                ExportFailure.TITLE_TOO_LONG
                if field == "object_name"
                else f"{field} exceeds {constraint.max_length} characters"
            )
            out.error(field, "max_length", f"{message} (got {length})", length)

    _check_keywords(core.keywords, out)


def _check_keywords(keywords: List[str], out: _Collector) -> None:
    limits = KEYWORD_CONSTRAINTS
    count = len(keywords)

    if count < limits.min_count:
        out.error(
            "keywords",
            "min_count",
            f"{ExportFailure.KEYWORDS_TOO_FEW} (got {count})",
            count,
        )
    elif count > limits.max_count:
        out.warn(
            "keywords",
            f"Too many keywords: {count} (max {limits.max_count}); "
            "extra keywords are dropped on write",
        )

    for keyword in keywords:
        if len(keyword) > limits.item_max_length:
            out.warn(
                "keywords",
                f'Keyword too long: "{keyword}" '
                f"(max {limits.item_max_length} characters)",
            )
        if is_sentence_like(keyword):
            out.warn("keywords", f'Keyword looks like a sentence: "{keyword}"')
        if is_spam_keyword(keyword):
            out.warn("keywords", f'Spam keyword: "{keyword}"')

    duplicates = find_duplicates(keywords)
    if duplicates:
        out.warn("keywords", f"Duplicate keywords: {', '.join(duplicates)}")


# ---------------------------------------------------------------------------
# Extension fields
# ---------------------------------------------------------------------------


def _check_safety(extension: XMPExtension, out: _Collector) -> None:
    if not requires_safety_validation(extension.scene_type, extension.subjects):
        return
    if extension.safety_validated is not True:
        out.error(
            "safety_validated",
            "safety_gate",
            ExportFailure.SAFETY_NOT_VALIDATED,
        )


def _check_evidence(extension: XMPExtension, out: _Collector) -> None:
    for field in REQUIRED_EVIDENCE_FIELDS:
        if is_blank(getattr(extension, field)):
            out.error(
                field,
                "required",
                f"{field} is required for proof-first embedding",
            )

    if not is_blank(extension.job_type) and not is_member(extension.job_type, JobType):
        out.error(
            "job_type",
            "enum",
            f"Invalid job_type '{enum_value(extension.job_type)}'; "
            f"expected one of: {allowed_values(JobType)}",
            enum_value(extension.job_type),
        )

    if not is_blank(extension.page_role) and not is_member(extension.page_role, PageRole):
        out.error(
            "page_role",
            "enum",
            f"Invalid page_role '{enum_value(extension.page_role)}'; "
            f"expected one of: {allowed_values(PageRole)}",
            enum_value(extension.page_role),
        )

    if not is_blank(extension.asset_id):
        try:
            uuid.UUID(extension.asset_id)
        except ValueError:
            out.warn("asset_id", "asset_id should be a UUID")

    for field, constraint in EXTENSION_CONSTRAINTS.items():
        if constraint.max_length is None:
            continue
        value = getattr(extension, field)
        if isinstance(value, str) and len(value) > constraint.max_length:
            out.warn(
                field,
                f"{field} exceeds {constraint.max_length} characters "
                f"({len(value)}); readers may truncate it",
            )


def _check_confidence(extension: XMPExtension, out: _Collector) -> None:
    score = extension.vision_confidence
    if score is None:
        return
    if score < 0 or score > 100:
        out.warn("vision_confidence", f"vision_confidence {score} outside 0..100")
    elif score < LOW_VISION_CONFIDENCE:
        out.warn(
            "vision_confidence",
            f"Low AI vision confidence ({score}); review recommended",
        )


def _check_recommended(extension: XMPExtension, out: _Collector) -> None:
    if is_blank(extension.context_line) and is_blank(extension.outcome_proof):
        out.warn(
            "context_line",
            "Add context_line or outcome_proof to reach the AUTHORITY tier",
        )
    if is_blank(extension.target_page):
        out.warn("target_page", "target_page is recommended for the AUTHORITY tier")
    if is_blank(extension.page_role):
        out.warn("page_role", "page_role is recommended for the AUTHORITY tier")
    if is_blank(extension.checksum):
        out.warn("checksum", "checksum is recommended for continuity tracking")
    if is_blank(extension.manifest_ref):
        out.warn("manifest_ref", "manifest_ref is recommended for continuity tracking")


def _check_governance(governance: GovernanceAttestation, out: _Collector) -> None:
    if not is_member(governance.status, GovernanceStatus):
        out.error(
            "governance.status",
            "enum",
            f"Invalid governance status '{enum_value(governance.status)}'; "
            f"expected one of: {allowed_values(GovernanceStatus)}",
            enum_value(governance.status),
        )
    if not is_member(governance.policy, GovernancePolicy):
        out.error(
            "governance.policy",
            "enum",
            f"Invalid governance policy '{enum_value(governance.policy)}'; "
            f"expected one of: {allowed_values(GovernancePolicy)}",
            enum_value(governance.policy),
        )

    confidence = governance.ai_confidence
    if confidence is not None and not 0.0 <= confidence <= 1.0:
        out.warn(
            "governance.ai_confidence",
            f"ai_confidence {confidence} outside 0.00..1.00; it will be clamped",
        )

    if governance.checked_at and parse_timestamp(governance.checked_at) is None:
        out.warn(
            "governance.checked_at",
            "checked_at is not an ISO 8601 timestamp and will be omitted",
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_metadata_contract(contract: MetadataContract) -> ValidationResult:
    """Validate a (possibly partial) contract. Never raises for content."""
    out = _Collector()

    _check_core(contract.core, out)

    extension = contract.extension
    if extension is None:
        out.error(
            "extension",
            "required",
            "Extension record is required: caption-only embeds are not "
            "accepted by this contract version",
        )
    else:
        _check_safety(extension, out)
        _check_evidence(extension, out)
        _check_confidence(extension, out)
        _check_recommended(extension, out)
        if extension.governance is not None:
            _check_governance(extension.governance, out)

    result = out.result()
    logger.debug(
        "Validated contract: valid=%s errors=%d warnings=%d",
        result.valid,
        len(result.errors),
        len(result.warnings),
    )
    return result


def assert_valid_metadata(contract: MetadataContract) -> ValidationResult:
    """
    Validate and raise on any blocking error.

    Raises:
        MetadataValidationError: carrying the full ValidationResult.
    """
    result = validate_metadata_contract(contract)
    if not result.valid:
        raise MetadataValidationError(result)
    return result


def is_export_ready(contract: MetadataContract) -> bool:
    return validate_metadata_contract(contract).valid


def get_validation_report(contract: MetadataContract) -> str:
    """Human-readable pass/fail report with itemized errors and warnings."""
    result = validate_metadata_contract(contract)

    lines = ["=== METADATA VALIDATION REPORT ===", ""]
    if result.valid:
        lines.append("PASSED - ready for export")
    else:
        lines.append("FAILED - export blocked")

    if result.errors:
        lines.append("")
        lines.append("ERRORS (must fix):")
        lines.extend(f"  [x] {e.field}: {e.message}" for e in result.errors)

    if result.warnings:
        lines.append("")
        lines.append("WARNINGS (review recommended):")
        lines.extend(f"  [!] {w.field}: {w.message}" for w in result.warnings)

    return "\n".join(lines)
