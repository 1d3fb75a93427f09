"""
LAB_FORENSIC export profile.

Instrumentation for metadata-stripping tests. Every container gets its
own marker so a read after a platform round trip shows exactly which
layers survived:

- authorship is written to all three containers, tagged with the
  baseline id
- ImageDescription, Caption-Abstract and dc:description each carry a
  marker unique to their container
- a long multi-byte caption in UserComment exposes truncation and
  encoding damage
- twelve numbered keywords expose list truncation
- the vendor namespace records run id, baseline id and the original
  file hash and size

Lab only: refused unless LAB_MODE is enabled.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List

from embedder.app.mapping.tag_map import TagMap
from embedder.app.profiles.base import (
    PROFILE_TOOL_VERSION,
    build_copyright,
    sanitize_text,
    vendor_tag,
)
from embedder.app.schemas.profiles import (
    AssetContext,
    BuiltinProfile,
    EmbedOptions,
    ForensicContext,
    UserContext,
)


TEST_KEYWORDS: List[str] = [f"LAB_TEST_{i:02d}" for i in range(1, 13)]


def build_long_caption(baseline_id: str) -> str:
    """Caption over 300 characters with multi-byte characters and an end marker."""
    return (
        f"LAB Forensic Caption - Baseline {baseline_id}. "
        "This caption is intentionally long to stress-test platform handling "
        "of multi-byte UTF-8 characters and field-length limits. "
        "Special chars: © copyright, € euro, ü umlaut, é accent, ß eszett. "
        "Lorem ipsum dolor sit amet, consectetur adipiscing elit. "
        "Sed do eiusmod tempor incididunt ut labore et dolore magna aliqua. "
        "Ut enim ad minim veniam, quis nostrud exercitation ullamco laboris. "
        f"End marker: LAB_CAPTION_END_{baseline_id}."
    )


class LabForensicProfile:
    name = BuiltinProfile.LAB_FORENSIC.value
    description = (
        "Forensic embed for stripping tests: layer-specific markers and integrity fields."
    )
    lab_only = True

    def build_tags(
        self,
        user: UserContext,
        asset: AssetContext,
        options: EmbedOptions,
        now: datetime,
    ) -> TagMap:
        forensic = asset.forensic or ForensicContext()
        baseline = sanitize_text(forensic.baseline_id) or "UNKNOWN"
        name = sanitize_text(user.display_name)

        artist = f"{name} | LAB_{baseline}"
        copyright_line = f"{build_copyright(name, now.year)} | LAB_{baseline}"
        credit = f"LAB_CREDIT_{baseline}"
        source = f"LAB_SOURCE_{baseline}"

        tags: TagMap = {}

        # Cross-layer authorship
        tags["Artist"] = artist
        tags["Copyright"] = copyright_line
        tags["By-line"] = artist
        tags["CopyrightNotice"] = copyright_line
        tags["Credit"] = credit
        tags["Source"] = source
        tags["XMP-dc:Creator"] = artist
        tags["XMP-dc:Rights"] = copyright_line
        tags["XMP-photoshop:Credit"] = credit
        tags["XMP-xmpRights:Marked"] = "True"

        # Layer fingerprints
        tags["ImageDescription"] = f"EXIF_ONLY_MARKER_{baseline}"
        tags["Caption-Abstract"] = f"IPTC_ONLY_MARKER_{baseline}"
        tags["XMP-dc:Description"] = f"XMP_ONLY_MARKER_{baseline}"

        # Vendor namespace
        tags[vendor_tag("RunID")] = str(uuid.uuid4())
        tags[vendor_tag("BaselineID")] = baseline
        tags[vendor_tag("ExportProfile")] = self.name
        tags[vendor_tag("Timestamp")] = now.isoformat()
        if forensic.original_hash:
            tags[vendor_tag("OriginalHash")] = forensic.original_hash
        tags[vendor_tag("FileSizeOriginal")] = str(forensic.file_size_original)
        tags[vendor_tag("Version")] = PROFILE_TOOL_VERSION

        # Integrity controls
        tags["UserComment"] = build_long_caption(baseline)
        tags["XMP-photoshop:Headline"] = "OK"
        tags["Keywords"] = list(TEST_KEYWORDS)
        tags["XMP-dc:Subject"] = list(TEST_KEYWORDS)

        return tags


lab_forensic = LabForensicProfile()
