"""
FastAPI entrypoint for the Embedder service.

Thin HTTP surface over the embedding engine for integration callers:
contract validation, authoritative writes, export-profile embeds and
manifest generation and diffing. File paths in request bodies must
resolve inside the configured workspace root. Routing concerns beyond
this (auth, queues, uploads) belong to the calling system.

The tag session is supplied through the get_tag_session dependency so
callers and tests can inject their own.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict
from starlette.responses import Response

from embedder.app.checks.validator import (
    get_validation_report,
    validate_metadata_contract,
)
from embedder.app.config import EmbedderConfig
from embedder.app.manifest.generator import compare_manifests, generate_manifest
from embedder.app.profiles.registry import (
    UnknownProfileError,
    get_profile,
    list_profiles,
)
from embedder.app.schemas.contract import MetadataContract
from embedder.app.schemas.manifest import (
    ExportManifest,
    GenerateManifestOptions,
    ManifestDiff,
)
from embedder.app.schemas.profiles import (
    AssetContext,
    EmbedOptions,
    ProfileEmbedResult,
    UserContext,
)
from embedder.app.schemas.validation import ValidationResult
from embedder.app.schemas.write import WriteRequest, WriteResult
from embedder.app.utils.paths import (
    WorkspacePathError,
    resolve_optional_in_workspace,
)
from embedder.app.writer.authoritative_writer import write_authoritative_metadata
from embedder.app.writer.exiftool import ExifToolError, ExifToolSession, TagSession
from embedder.app.writer.profile_writer import (
    ProfileNotEnabledError,
    default_output_path,
    embed_with_profile,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Presentation helpers (presentation-only)
# ---------------------------------------------------------------------------

def pretty_json(data: Any) -> str:
    """
    Pretty-print JSON for human-readable output.

    PRESENTATION ONLY: manifest checksums are computed over canonical
    JSON, never over this rendering.
    """
    return json.dumps(
        data,
        ensure_ascii=False,
        allow_nan=False,
        indent=2,
        separators=(", ", ": "),
    )


class PrettyJSONResponse(Response):
    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        return pretty_json(content).encode("utf-8")


class CompareManifestsRequest(BaseModel):
    old: ExportManifest
    new: ExportManifest

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Application setup
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Embedder Service",
    description="Provenance metadata embedding and manifest service",
    version="2.1.0",
)


def get_config(request: Request) -> EmbedderConfig:
    config = getattr(request.app.state, "config", None)
    if config is None:
        config = EmbedderConfig.from_env()
        request.app.state.config = config
    return config


def get_tag_session(
    request: Request,
    config: EmbedderConfig = Depends(get_config),
) -> TagSession:
    """
    Shared, lazily created ExifTool session.

    The session restarts its own process when it has exited, so one
    instance serves the lifetime of the application.
    """
    session = getattr(request.app.state, "tag_session", None)
    if session is None:
        session = ExifToolSession.from_config(config)
        request.app.state.tag_session = session
    return session


@app.on_event("shutdown")
def shutdown_event() -> None:
    session = getattr(app.state, "tag_session", None)
    if isinstance(session, ExifToolSession):
        session.close()


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

@app.post(
    "/v1/contracts/validate",
    response_model=ValidationResult,
    summary="Validate a metadata contract",
)
def validate_contract(contract: MetadataContract) -> ValidationResult:
    return validate_metadata_contract(contract)


@app.post(
    "/v1/contracts/report",
    response_class=PlainTextResponse,
    summary="Human-readable validation report",
)
def contract_report(contract: MetadataContract) -> str:
    return get_validation_report(contract)


# ---------------------------------------------------------------------------
# Workspace containment
# ---------------------------------------------------------------------------

def _in_workspace(config: EmbedderConfig, path: Optional[str]) -> Optional[str]:
    """Resolve a request path inside the workspace root, or fail with 400."""
    try:
        return resolve_optional_in_workspace(config.WORKSPACE_ROOT, path)
    except WorkspacePathError as exc:
        logger.error("Rejected request path outside workspace: %s", path)
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Embedding
# ---------------------------------------------------------------------------

@app.post(
    "/v1/embed",
    response_model=WriteResult,
    summary="Write a metadata contract into an image file",
)
def embed(
    write_request: WriteRequest,
    session: TagSession = Depends(get_tag_session),
    config: EmbedderConfig = Depends(get_config),
) -> WriteResult:
    """
    Failures are reported in the body (success=false, error code), not
    as HTTP errors: the write pipeline never raises. Paths outside the
    workspace root are rejected with 400 before anything is touched.
    """
    write_request = write_request.model_copy(
        update={
            "source_path": _in_workspace(config, write_request.source_path),
            "output_path": _in_workspace(config, write_request.output_path),
        }
    )
    return write_authoritative_metadata(write_request, session, config)


# ---------------------------------------------------------------------------
# Manifests
# ---------------------------------------------------------------------------

@app.post(
    "/v1/manifests",
    response_model=ExportManifest,
    response_class=PrettyJSONResponse,
    summary="Generate a sealed export manifest",
)
def create_manifest(
    options: GenerateManifestOptions,
    config: EmbedderConfig = Depends(get_config),
) -> ExportManifest:
    options = options.model_copy(
        update={
            "output_path": _in_workspace(config, options.output_path),
            "assets": [
                asset.model_copy(
                    update={"file_path": _in_workspace(config, asset.file_path)}
                )
                for asset in options.assets
            ],
        }
    )
    try:
        return generate_manifest(options, config)
    except OSError as exc:
        raise HTTPException(
            status_code=400,
            detail=f"Manifest generation failed: {exc}",
        ) from exc


@app.post(
    "/v1/manifests/compare",
    response_model=ManifestDiff,
    summary="Diff two manifest generations",
)
def diff_manifests(body: CompareManifestsRequest) -> ManifestDiff:
    return compare_manifests(body.old, body.new)


# ---------------------------------------------------------------------------
# Export profiles
# ---------------------------------------------------------------------------

class ProfileEmbedRequest(BaseModel):
    source_path: str
    output_path: Optional[str] = None
    user: UserContext
    asset: AssetContext = AssetContext()
    options: EmbedOptions = EmbedOptions()

    model_config = ConfigDict(frozen=True, extra="forbid")


@app.get(
    "/v1/profiles",
    summary="List registered export profiles",
)
def export_profiles() -> list:
    return [
        {
            "name": name,
            "description": get_profile(name).description,
            "lab_only": get_profile(name).lab_only,
        }
        for name in list_profiles()
    ]


@app.post(
    "/v1/profiles/{profile_name}/embed",
    response_model=ProfileEmbedResult,
    summary="Embed a copy of an image with a named export profile",
)
def embed_profile(
    profile_name: str,
    body: ProfileEmbedRequest,
    session: TagSession = Depends(get_tag_session),
    config: EmbedderConfig = Depends(get_config),
) -> ProfileEmbedResult:
    source_path = _in_workspace(config, body.source_path)
    output_path = _in_workspace(
        config, body.output_path or default_output_path(source_path)
    )
    try:
        return embed_with_profile(
            session,
            source_path,
            profile_name,
            body.user,
            body.asset,
            body.options,
            output_path=output_path,
            config=config,
        )
    except UnknownProfileError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ProfileNotEnabledError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Health Check
# ---------------------------------------------------------------------------

@app.get(
    "/health",
    summary="Service health check",
)
def health_check(session: TagSession = Depends(get_tag_session)) -> dict:
    try:
        if isinstance(session, ExifToolSession):
            version = session.health_check()
        else:
            version = session.version()
    except ExifToolError as exc:
        logger.error("Tag tool health check failed: %s", exc)
        raise HTTPException(
            status_code=503,
            detail=f"Tag tool unavailable: {exc}",
        ) from exc

    return {
        "status": "ok",
        "service": "embedder",
        "tag_tool_version": version,
    }
