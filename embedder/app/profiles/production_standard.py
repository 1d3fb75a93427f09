"""
PRODUCTION_STANDARD export profile.

Authorship and rights across EXIF, IPTC and XMP with cross-container
redundancy. No forensic markers.

    EXIF    Artist, Copyright, ImageDescription
    IPTC    By-line, CopyrightNotice, Credit, Source, Caption-Abstract, Keywords
    XMP     dc:creator, dc:rights, dc:description, dc:subject,
            photoshop:Credit, xmpRights:Marked
    vendor  Version, ExportProfile, Timestamp
"""

from __future__ import annotations

from datetime import datetime

from embedder.app.mapping.tag_map import TagMap
from embedder.app.profiles.base import (
    PROFILE_TOOL_VERSION,
    build_copyright,
    clean_keyword_list,
    sanitize_text,
    vendor_tag,
)
from embedder.app.schemas.profiles import (
    AssetContext,
    BuiltinProfile,
    EmbedOptions,
    UserContext,
)


class ProductionStandardProfile:
    name = BuiltinProfile.PRODUCTION_STANDARD.value
    description = (
        "Professional authorship metadata across EXIF/IPTC/XMP with clean redundancy."
    )
    lab_only = False

    def build_tags(
        self,
        user: UserContext,
        asset: AssetContext,
        options: EmbedOptions,
        now: datetime,
    ) -> TagMap:
        name = sanitize_text(user.display_name)
        copyright_line = build_copyright(name, now.year)
        credit = sanitize_text(user.business_name) or name
        source = sanitize_text(user.website) or f"Created by {name}"

        short_alt = sanitize_text(asset.short_alt)
        description = sanitize_text(asset.long_description)
        keywords = clean_keyword_list(asset.structured_keywords)

        tags: TagMap = {}

        # EXIF
        tags["Artist"] = name
        tags["Copyright"] = copyright_line
        if short_alt:
            tags["ImageDescription"] = short_alt

        # IPTC
        tags["By-line"] = name
        tags["CopyrightNotice"] = copyright_line
        tags["Credit"] = credit
        tags["Source"] = source
        if description:
            tags["Caption-Abstract"] = description
        if keywords:
            tags["Keywords"] = keywords

        # XMP
        tags["XMP-dc:Creator"] = name
        tags["XMP-dc:Rights"] = copyright_line
        if description:
            tags["XMP-dc:Description"] = description
        if keywords:
            tags["XMP-dc:Subject"] = list(keywords)
        tags["XMP-photoshop:Credit"] = credit
        tags["XMP-xmpRights:Marked"] = "True"

        # Vendor namespace
        tags[vendor_tag("Version")] = PROFILE_TOOL_VERSION
        tags[vendor_tag("ExportProfile")] = self.name
        tags[vendor_tag("Timestamp")] = now.isoformat()

        return tags


production_standard = ProductionStandardProfile()
