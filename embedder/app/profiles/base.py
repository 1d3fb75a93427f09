"""
Export profile contract and shared helpers.

A profile is a named, pure tag builder. It receives the caller identity,
optional per-asset content and write options, and returns the flat tag
map handed to the tag writer. Writing, verification and file handling
live in writer/profile_writer.py.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Iterable, List, Optional, Protocol

from embedder.app.mapping.tag_map import VENDOR_GROUP, TagMap
from embedder.app.schemas.profiles import AssetContext, EmbedOptions, UserContext


PROFILE_TOOL_VERSION = "2.1.0"

# C0 controls except tab/newline/carriage return, plus DEL.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


class ExportProfile(Protocol):
    name: str
    description: str
    lab_only: bool

    def build_tags(
        self,
        user: UserContext,
        asset: AssetContext,
        options: EmbedOptions,
        now: datetime,
    ) -> TagMap:
        ...


def sanitize_text(value: Optional[str]) -> str:
    """Strip control characters and surrounding whitespace."""
    if not value:
        return ""
    return _CONTROL_CHARS.sub("", value).strip()


def clean_keyword_list(keywords: Iterable[str]) -> List[str]:
    return [k for k in (sanitize_text(k) for k in keywords) if k]


def build_copyright(name: str, year: int) -> str:
    return f"© {year} {name}"


def vendor_tag(name: str) -> str:
    return f"{VENDOR_GROUP}:{name}"


__all__ = [
    "PROFILE_TOOL_VERSION",
    "ExportProfile",
    "sanitize_text",
    "clean_keyword_list",
    "build_copyright",
    "vendor_tag",
]
