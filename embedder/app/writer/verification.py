"""
Read-back verification.

After a physical write the file is read again and a fixed whitelist of
required fields is looked up. Readers disagree on canonical naming, so
every field has a list of alternate tag names and a hit on any of them
counts as present.

Misses are reported, never raised: the write itself already succeeded.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Tuple

from embedder.app.mapping.tag_map import lookup_tag
from embedder.app.schemas.profiles import ProfileVerification
from embedder.app.schemas.write import VerificationResult
from embedder.app.writer.exiftool import TagSession

logger = logging.getLogger(__name__)


REQUIRED_VERIFICATION_FIELDS: Tuple[str, ...] = (
    "ObjectName",
    "Caption-Abstract",
    "By-line",
    "CopyrightNotice",
    "Keywords",
    "City",
    "Country-PrimaryLocationName",
)

ALTERNATE_TAG_NAMES: Dict[str, Tuple[str, ...]] = {
    "ObjectName": ("Title", "XMP-dc:Title", "Headline"),
    "Caption-Abstract": ("Description", "ImageDescription", "XMP-dc:Description"),
    "By-line": ("Artist", "Creator", "XMP-dc:Creator"),
    "CopyrightNotice": ("Copyright", "Rights", "XMP-dc:Rights"),
    "Keywords": ("Subject", "XMP-dc:Subject"),
    "City": ("XMP-photoshop:City",),
    "Country-PrimaryLocationName": ("Country", "XMP-photoshop:Country"),
}

CRITICAL_VERIFICATION_FIELDS: Tuple[str, ...] = ("By-line", "CopyrightNotice")


def verify_tags(tags: Mapping[str, Any]) -> VerificationResult:
    present = []
    missing = []

    for field in REQUIRED_VERIFICATION_FIELDS:
        names = (field,) + ALTERNATE_TAG_NAMES.get(field, ())
        if lookup_tag(tags, names) is not None:
            present.append(field)
        else:
            missing.append(field)

    critical = [f for f in missing if f in CRITICAL_VERIFICATION_FIELDS]

    if missing:
        logger.warning("Read-back verification missing fields: %s", ", ".join(missing))
    if critical:
        logger.warning(
            "Read-back verification missing creator/copyright fields: %s",
            ", ".join(critical),
        )

    return VerificationResult(
        verified=not missing,
        present_fields=present,
        missing_fields=missing,
        critical_missing=critical,
    )


def verify_metadata_write(session: TagSession, path: str) -> VerificationResult:
    return verify_tags(session.read(path))


def verify_written_tags(
    expected: Iterable[str],
    tags: Mapping[str, Any],
) -> ProfileVerification:
    """
    Check that every tag that was written reads back non-blank, under
    its grouped name or its bare name.
    """
    present = []
    missing = []
    for name in expected:
        if lookup_tag(tags, (name,)) is not None:
            present.append(name)
        else:
            missing.append(name)

    if missing:
        logger.warning("Written tags missing after read-back: %s", ", ".join(missing))

    return ProfileVerification(verified=not missing, present=present, missing=missing)
