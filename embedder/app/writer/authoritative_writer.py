"""
Authoritative metadata writer.

Orchestrates one asset through:

    1. validate     (blocking; skippable)
    2. stage        (copy to output path, or write in place)
    3. map          (contract -> flat tag set)
    4. write        (external tag primitive, overwrite directive)
    5. verify       (read-back against the required whitelist; skippable)
    6. classify     (embed tier from field completeness)

IMPORTANT:
- Only validation, staging, mapping and the physical write can fail the
  call. Verification misses are warnings.
- Failures are returned as a WriteResult with success=False and an error
  code. Nothing in the pipeline raises to the caller.
- Every step appends to an ordered log trail returned with the result.
"""

from __future__ import annotations

import logging
import os
import shutil
from typing import List, Optional

from embedder.app.checks.validator import validate_metadata_contract
from embedder.app.config import EmbedderConfig
from embedder.app.mapping.side_channel import (
    SideChannelOverflowError,
    decode_envelope,
)
from embedder.app.mapping.tag_map import SIDE_CHANNEL_TAG, TagMap, build_tag_set
from embedder.app.schemas.side_channel import SideChannelEnvelope
from embedder.app.schemas.validation import ValidationResult
from embedder.app.schemas.write import (
    VerificationResult,
    WriteErrorCode,
    WriteErrorInfo,
    WriteRequest,
    WriteResult,
)
from embedder.app.writer.exiftool import (
    OVERWRITE_ORIGINAL,
    ExifToolError,
    TagSession,
)
from embedder.app.writer.tiering import calculate_embed_tier
from embedder.app.writer.verification import verify_metadata_write, verify_tags

logger = logging.getLogger(__name__)


class AuthoritativeWriter:
    """
    Writes one contract into one file through a caller-owned TagSession.
    """

    def __init__(self, session: TagSession, config: Optional[EmbedderConfig] = None):
        self.session = session
        self.config = config or EmbedderConfig()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _failure(
        self,
        code: WriteErrorCode,
        message: str,
        logs: List[str],
        *,
        output_path: Optional[str] = None,
        validation: Optional[ValidationResult] = None,
        fields_written: Optional[List[str]] = None,
    ) -> WriteResult:
        logs.append(f"Error [{code.value}]: {message}")
        return WriteResult(
            success=False,
            output_path=output_path,
            validation=validation,
            fields_written=fields_written or [],
            error=WriteErrorInfo(code=code, message=message),
            logs=logs,
        )

    def _existing_envelope(self, path: str, logs: List[str]) -> Optional[SideChannelEnvelope]:
        try:
            tags = self.session.read(path)
        except ExifToolError as exc:
            logger.warning("Could not read existing side channel from %s: %s", path, exc)
            logs.append(f"Warning: existing side channel not readable ({exc})")
            return None

        envelope = decode_envelope(tags.get(SIDE_CHANNEL_TAG))
        if envelope is not None:
            logs.append("Merging onto existing side-channel envelope")
        return envelope

    def _verify(self, path: str, logs: List[str]) -> VerificationResult:
        logs.append("Verifying metadata write")
        try:
            verification = verify_metadata_write(self.session, path)
        except ExifToolError as exc:
            logger.warning("Read-back of %s failed: %s", path, exc)
            logs.append(f"Warning: read-back failed ({exc})")
            verification = verify_tags({})

        if verification.verified:
            logs.append("Verification passed")
        else:
            logs.append(
                "Verification warning: missing fields: "
                + ", ".join(verification.missing_fields)
            )
        return verification

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def write(self, request: WriteRequest) -> WriteResult:
        logs: List[str] = []
        contract = request.contract

        validate = (
            self.config.VALIDATE_BEFORE_WRITE
            if request.validate_before_write is None
            else request.validate_before_write
        )
        verify = (
            self.config.VERIFY_AFTER_WRITE
            if request.verify_after_write is None
            else request.verify_after_write
        )

        # 1. Validate
        validation: Optional[ValidationResult] = None
        if validate:
            logs.append("Validating metadata contract")
            validation = validate_metadata_contract(contract)
            if not validation.valid:
                message = "Validation failed: " + "; ".join(
                    f"{e.field}: {e.message}" for e in validation.errors
                )
                logger.info("Write of %s blocked by validation", request.source_path)
                return self._failure(
                    WriteErrorCode.VALIDATION_FAILED,
                    message,
                    logs,
                    validation=validation,
                )
            logs.append(
                f"Validation passed ({len(validation.warnings)} warnings)"
            )
        else:
            logs.append("Validation skipped")

        # 2. Stage
        output_path = request.output_path or request.source_path
        if request.output_path and os.path.abspath(request.output_path) != os.path.abspath(
            request.source_path
        ):
            try:
                shutil.copy2(request.source_path, request.output_path)
            except OSError as exc:
                logger.exception("Staging copy of %s failed", request.source_path)
                return self._failure(
                    WriteErrorCode.STAGING_FAILED,
                    f"Could not copy source to output path: {exc}",
                    logs,
                    validation=validation,
                )
            logs.append(f"Copied source to: {output_path}")
        elif not os.path.isfile(output_path):
            return self._failure(
                WriteErrorCode.STAGING_FAILED,
                f"Source file not found: {output_path}",
                logs,
                validation=validation,
            )

        # 3. Map
        existing = (
            self._existing_envelope(output_path, logs)
            if request.merge_existing_side_channel
            else None
        )
        try:
            tags: TagMap = build_tag_set(
                contract,
                existing_envelope=existing,
                side_channel_max_bytes=self.config.SIDE_CHANNEL_MAX_BYTES,
            )
        except SideChannelOverflowError as exc:
            return self._failure(
                WriteErrorCode.MAPPING_FAILED,
                str(exc),
                logs,
                output_path=output_path,
                validation=validation,
            )
        logs.append(f"Built {len(tags)} metadata tags")

        # 4. Physical write
        try:
            self.session.write(output_path, tags, [OVERWRITE_ORIGINAL])
        except (ExifToolError, OSError) as exc:
            logger.exception("Tag write to %s failed", output_path)
            return self._failure(
                WriteErrorCode.WRITE_FAILED,
                str(exc),
                logs,
                output_path=output_path,
                validation=validation,
                fields_written=list(tags),
            )
        fields_written = list(tags)
        logs.append(f"Wrote {len(fields_written)} fields")

        # 5. Verify
        verification = self._verify(output_path, logs) if verify else None

        # 6. Classify
        tier = calculate_embed_tier(contract)
        logs.append(f"Embed tier: {tier.value}")
        logger.info("Embedded %s (tier=%s)", output_path, tier.value)

        return WriteResult(
            success=True,
            output_path=output_path,
            validation=validation,
            fields_written=fields_written,
            verification=verification,
            embed_tier=tier,
            logs=logs,
        )


def write_authoritative_metadata(
    request: WriteRequest,
    session: TagSession,
    config: Optional[EmbedderConfig] = None,
) -> WriteResult:
    return AuthoritativeWriter(session, config).write(request)
