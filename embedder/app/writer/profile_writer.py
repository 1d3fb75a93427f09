"""
Profile-based embedding.

embed_with_profile() runs one file through a named export profile:

    1. resolve     (registry lookup; lab-only profiles need LAB_MODE)
    2. stage       (copy to the output path; originals are never mutated)
    3. build       (profile tag map; existing values kept unless overwrite)
    4. write       (external tag primitive, overwrite directive)
    5. verify      (read back every written tag)

Unlike the authoritative writer there is no contract, no validation and
no tier. An unknown or disabled profile raises before any file is
touched. Everything after that is reported in the result.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from embedder.app.config import EmbedderConfig
from embedder.app.mapping.tag_map import VENDOR_GROUP, TagMap, lookup_tag
from embedder.app.profiles.registry import get_profile
from embedder.app.schemas.profiles import (
    AssetContext,
    EmbedOptions,
    ProfileEmbedResult,
    ProfileVerification,
    UserContext,
)
from embedder.app.writer.exiftool import OVERWRITE_ORIGINAL, ExifToolError, TagSession
from embedder.app.writer.verification import verify_written_tags

logger = logging.getLogger(__name__)


class ProfileNotEnabledError(RuntimeError):
    """A lab-only profile was requested while LAB_MODE is off."""


def default_output_path(source_path: str) -> str:
    """``<dir>/<stem>_embedded<ext>`` next to the source."""
    directory, filename = os.path.split(source_path)
    stem, ext = os.path.splitext(filename)
    return os.path.join(directory, f"{stem}_embedded{ext}")


def _keep_existing(
    session: TagSession,
    path: str,
    tags: TagMap,
    warnings: List[str],
) -> TagMap:
    """
    Drop tags whose target already holds a non-blank value.

    Vendor-namespace tags are always written: they identify the export.
    """
    try:
        existing = session.read(path)
    except ExifToolError as exc:
        logger.warning("Could not read existing metadata from %s: %s", path, exc)
        warnings.append(f"Existing metadata not readable ({exc}); writing all tags")
        return tags

    kept: TagMap = {}
    for name, value in tags.items():
        if not name.startswith(VENDOR_GROUP + ":") and lookup_tag(existing, (name,)) is not None:
            warnings.append(f"Kept existing value: {name}")
            continue
        kept[name] = value
    return kept


def _stage(source_path: str, output_path: str) -> None:
    if os.path.abspath(source_path) == os.path.abspath(output_path):
        if not os.path.isfile(source_path):
            raise FileNotFoundError(f"Source file not found: {source_path}")
        return
    shutil.copy2(source_path, output_path)


def _verify(session: TagSession, path: str, tags: TagMap) -> Tuple[ProfileVerification, List[str]]:
    try:
        actual = session.read(path)
    except ExifToolError as exc:
        logger.warning("Read-back of %s failed: %s", path, exc)
        return (
            ProfileVerification(verified=False, missing=list(tags)),
            [f"Read-back failed ({exc})"],
        )
    verification = verify_written_tags(tags, actual)
    return verification, [f"Missing after write: {name}" for name in verification.missing]


def embed_with_profile(
    session: TagSession,
    source_path: str,
    profile_name: str,
    user: UserContext,
    asset: Optional[AssetContext] = None,
    options: Optional[EmbedOptions] = None,
    *,
    output_path: Optional[str] = None,
    config: Optional[EmbedderConfig] = None,
    now: Optional[datetime] = None,
) -> ProfileEmbedResult:
    """
    Embed a profile's tags into a copy of ``source_path``.

    Raises:
        UnknownProfileError: if no profile is registered under the name.
        ProfileNotEnabledError: if the profile is lab-only and LAB_MODE
            is off.
    """
    started = time.monotonic()
    config = config or EmbedderConfig()
    asset = asset or AssetContext()
    options = options or EmbedOptions()
    now = now or datetime.now(timezone.utc)

    profile = get_profile(profile_name)
    if profile.lab_only and not config.LAB_MODE:
        raise ProfileNotEnabledError(
            f"Export profile {profile.name} is lab-only; enable LAB_MODE to use it."
        )

    output_path = output_path or default_output_path(source_path)
    warnings: List[str] = []

    def elapsed_ms() -> int:
        return int((time.monotonic() - started) * 1000)

    try:
        _stage(source_path, output_path)
        tags = profile.build_tags(user, asset, options, now)
        if not options.overwrite:
            tags = _keep_existing(session, output_path, tags, warnings)
        session.write(output_path, tags, [OVERWRITE_ORIGINAL])
    except (ExifToolError, OSError) as exc:
        logger.exception("Profile embed %s into %s failed", profile.name, output_path)
        return ProfileEmbedResult(
            success=False,
            profile_name=profile.name,
            output_path=output_path,
            warnings=warnings,
            duration_ms=elapsed_ms(),
            error=str(exc),
        )

    verification, missing = _verify(session, output_path, tags)
    warnings.extend(missing)

    logger.info(
        "Profile %s embedded %d tags into %s (verified=%s)",
        profile.name,
        len(tags),
        output_path,
        verification.verified,
    )

    return ProfileEmbedResult(
        success=True,
        profile_name=profile.name,
        output_path=output_path,
        fields_written=list(tags),
        warnings=warnings,
        verification=verification,
        duration_ms=elapsed_ms(),
    )


__all__ = [
    "ProfileNotEnabledError",
    "default_output_path",
    "embed_with_profile",
]
