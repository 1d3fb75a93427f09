"""
Runtime configuration for the Embedder service.

This module centralizes environment-driven configuration for the
metadata embedding engine: which pipeline stages run by default, how the
external ExifTool process is located and bounded, and the size budget of
the side-channel envelope.

Configuration is read-only at runtime. It selects behavior; it never
alters the semantics of the metadata contract.
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class EmbedderConfig(BaseModel):
    """
    Runtime configuration for the Embedder service.

    Configuration is environment-driven, read-only at runtime, and must
    not introduce non-deterministic behavior into mapping or checksums.
    """

    # ------------------------------------------------------------------
    # External tag tool (ExifTool)
    # ------------------------------------------------------------------

    EXIFTOOL_PATH: str = Field(
        "exiftool",
        description="Executable used for physical tag read/write",
    )

    EXIFTOOL_TIMEOUT_SECONDS: float = Field(
        60.0,
        description=(
            "Upper bound for a single ExifTool command. A command that "
            "exceeds it terminates the session process."
        ),
    )

    EXIFTOOL_CONFIG_PATH: Optional[str] = Field(
        None,
        description=(
            "Optional pre-existing ExifTool config file. When unset, a "
            "config registering the vendor XMP namespace is generated."
        ),
    )

    # ------------------------------------------------------------------
    # HTTP workspace
    # ------------------------------------------------------------------

    WORKSPACE_ROOT: str = Field(
        ".",
        description=(
            "Directory that every file path received over HTTP must "
            "resolve inside. Relative request paths are taken from here."
        ),
    )

    # ------------------------------------------------------------------
    # Pipeline defaults
    # ------------------------------------------------------------------

    VALIDATE_BEFORE_WRITE: bool = Field(
        True,
        description="Run contract validation before any physical write",
    )

    VERIFY_AFTER_WRITE: bool = Field(
        True,
        description="Read tags back after writing and check required fields",
    )

    # ------------------------------------------------------------------
    # Export profiles
    # ------------------------------------------------------------------

    LAB_MODE: bool = Field(
        False,
        description=(
            "Allow lab-only export profiles (forensic marker embeds). "
            "Never enable for public exports."
        ),
    )

    # ------------------------------------------------------------------
    # Side-channel envelope
    # ------------------------------------------------------------------

    SIDE_CHANNEL_MAX_BYTES: int = Field(
        2048,
        description=(
            "Maximum encoded size of the JSON envelope stored in the "
            "generic free-text tag, marker included"
        ),
    )

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    MANIFEST_FILENAME: str = Field(
        "manifest.json",
        description="File name used when a manifest is written into a directory",
    )

    MANIFEST_MAX_WORKERS: int = Field(
        1,
        description="Worker threads for per-asset checksum and health scoring",
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("EXIFTOOL_TIMEOUT_SECONDS")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("EXIFTOOL_TIMEOUT_SECONDS must be positive.")
        return v

    @field_validator("SIDE_CHANNEL_MAX_BYTES")
    @classmethod
    def side_channel_budget_floor(cls, v: int) -> int:
        if v < 256:
            raise ValueError(
                "SIDE_CHANNEL_MAX_BYTES must be at least 256 bytes "
                f"(got {v})."
            )
        return v

    @field_validator("MANIFEST_MAX_WORKERS")
    @classmethod
    def workers_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MANIFEST_MAX_WORKERS must be >= 1.")
        return v

    @field_validator("WORKSPACE_ROOT")
    @classmethod
    def workspace_root_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("WORKSPACE_ROOT must not be empty.")
        return v

    @field_validator("MANIFEST_FILENAME")
    @classmethod
    def manifest_filename_is_plain(cls, v: str) -> str:
        if not v or "/" in v or "\\" in v:
            raise ValueError(
                f"MANIFEST_FILENAME must be a plain file name, got '{v}'."
            )
        return v

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "EmbedderConfig":
        """
        Load configuration from environment variables.

        All values are parsed once at startup and must remain immutable.
        """

        def env_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        return cls(
            EXIFTOOL_PATH=os.getenv("EMBEDDER_EXIFTOOL_PATH", "exiftool"),
            EXIFTOOL_TIMEOUT_SECONDS=float(
                os.getenv("EMBEDDER_EXIFTOOL_TIMEOUT_SECONDS", "60")
            ),
            EXIFTOOL_CONFIG_PATH=os.getenv("EMBEDDER_EXIFTOOL_CONFIG_PATH") or None,
            WORKSPACE_ROOT=os.getenv("EMBEDDER_WORKSPACE_ROOT", "."),
            VALIDATE_BEFORE_WRITE=env_bool(
                "EMBEDDER_VALIDATE_BEFORE_WRITE", True
            ),
            VERIFY_AFTER_WRITE=env_bool(
                "EMBEDDER_VERIFY_AFTER_WRITE", True
            ),
            LAB_MODE=env_bool("EMBEDDER_LAB_MODE", False),
            SIDE_CHANNEL_MAX_BYTES=int(
                os.getenv("EMBEDDER_SIDE_CHANNEL_MAX_BYTES", "2048")
            ),
            MANIFEST_FILENAME=os.getenv(
                "EMBEDDER_MANIFEST_FILENAME", "manifest.json"
            ),
            MANIFEST_MAX_WORKERS=int(
                os.getenv("EMBEDDER_MANIFEST_MAX_WORKERS", "1")
            ),
        )

    model_config = {
        "frozen": True,
    }
