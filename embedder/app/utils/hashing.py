"""
Checksum primitives.

Provides the SHA-256 helpers used for file fingerprints and for the
self-sealing manifest checksum.

IMPORTANT DESIGN RULE:
- File checksums hash raw file bytes, read in fixed-size chunks.
- Structured values are hashed only through canonical_json_bytes, so
  the same content always produces the same digest regardless of key
  order or whitespace.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Union

CHECKSUM_ALGORITHM = "sha256"

_CHUNK_SIZE = 64 * 1024


def calculate_file_checksum(path: Union[str, Path]) -> str:
    """
    Compute the lowercase hex SHA-256 digest of a file's bytes.

    Raises:
        OSError: if the file cannot be read.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def calculate_bytes_checksum(data: Union[bytes, bytearray]) -> str:
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError(
            "calculate_bytes_checksum expects bytes, "
            f"got {type(data).__name__}"
        )
    return hashlib.sha256(data).hexdigest()


def calculate_string_checksum(value: str) -> str:
    return calculate_bytes_checksum(value.encode("utf-8"))


def canonical_json_bytes(value: Any) -> bytes:
    """
    Canonical JSON encoding: sorted keys, no insignificant whitespace,
    UTF-8 without ASCII escaping.
    """
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
