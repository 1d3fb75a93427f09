"""
Export manifest generation, reading and diffing.

The manifest is portable truth for a batch of exported files: if a
platform strips or re-encodes a file, its stored contract is enough to
re-embed it.

Integrity:
    manifest_checksum = sha256(canonical JSON of the manifest without
    the manifest_checksum field)

It is a pure function of content. On read the checksum is recomputed;
a mismatch is logged as tampering or corruption and the manifest is
still returned. The caller decides whether to trust or regenerate it.

Concurrency:
    Per-asset checksum and health work is independent and may run on a
    thread pool (input order is preserved). Writing the manifest file is
    serialized by a module lock and replaces the target atomically.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from embedder.app.config import EmbedderConfig
from embedder.app.manifest.health import calculate_health_report
from embedder.app.schemas.contract import METADATA_VERSION, EmbedTier, MetadataContract
from embedder.app.schemas.manifest import (
    ChecksumMismatch,
    ExportManifest,
    GenerateManifestOptions,
    ManifestAsset,
    ManifestDiff,
    ManifestInput,
    TierSummary,
)
from embedder.app.utils.hashing import (
    CHECKSUM_ALGORITHM,
    calculate_bytes_checksum,
    calculate_file_checksum,
    canonical_json_bytes,
)

logger = logging.getLogger(__name__)

_write_lock = threading.Lock()


# ---------------------------------------------------------------------------
# Integrity
# ---------------------------------------------------------------------------


def compute_manifest_checksum(manifest: ExportManifest) -> str:
    payload = manifest.model_dump(mode="json", exclude={"manifest_checksum"})
    return calculate_bytes_checksum(canonical_json_bytes(payload))


def verify_manifest_integrity(manifest: ExportManifest) -> bool:
    return compute_manifest_checksum(manifest) == manifest.manifest_checksum


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def build_manifest_asset(item: ManifestInput, embedded_at: str) -> ManifestAsset:
    """Checksum and score one exported file."""
    contract = item.contract
    extension = contract.extension
    report = calculate_health_report(contract)

    asset_id = (
        extension.asset_id.strip()
        if extension is not None and extension.asset_id and extension.asset_id.strip()
        else str(uuid.uuid4())
    )

    return ManifestAsset(
        file_name=os.path.basename(item.file_path),
        original_file_name=item.original_file_name,
        asset_id=asset_id,
        checksum=calculate_file_checksum(item.file_path),
        checksum_algorithm=CHECKSUM_ALGORITHM,
        embed_tier=report.embed_tier,
        embedded_at=embedded_at,
        metadata_version=(
            extension.metadata_version if extension is not None else METADATA_VERSION
        ),
        contract=contract,
        health_score=report.score,
        health_status=report.status,
        missing_fields=report.missing_fields,
        warnings=report.warnings,
    )


def summarize_tiers(assets: List[ManifestAsset]) -> TierSummary:
    counts = {tier: 0 for tier in EmbedTier}
    for asset in assets:
        counts[asset.embed_tier] += 1
    return TierSummary(
        authority=counts[EmbedTier.AUTHORITY],
        evidence=counts[EmbedTier.EVIDENCE],
        basic=counts[EmbedTier.BASIC],
        incomplete=counts[EmbedTier.INCOMPLETE],
    )


def seal_manifest(manifest: ExportManifest) -> ExportManifest:
    return manifest.model_copy(
        update={"manifest_checksum": compute_manifest_checksum(manifest)}
    )


def generate_manifest(
    options: GenerateManifestOptions,
    config: Optional[EmbedderConfig] = None,
    *,
    now: Optional[datetime] = None,
) -> ExportManifest:
    """
    Build, seal and optionally persist the manifest for a batch.

    Raises:
        OSError: if an asset file cannot be read or the manifest cannot
            be written.
    """
    config = config or EmbedderConfig()
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    workers = options.max_workers or config.MANIFEST_MAX_WORKERS

    if workers > 1 and len(options.assets) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            assets = list(
                pool.map(lambda item: build_manifest_asset(item, timestamp), options.assets)
            )
    else:
        assets = [build_manifest_asset(item, timestamp) for item in options.assets]

    manifest = seal_manifest(
        ExportManifest(
            generated_at=timestamp,
            export_id=options.export_id,
            project_id=options.project_id,
            business_name=options.business_name,
            business_website=options.business_website,
            total_assets=len(assets),
            embed_tier_summary=summarize_tiers(assets),
            assets=assets,
        )
    )

    logger.info(
        "Generated manifest for export %s: %d assets",
        manifest.export_id,
        manifest.total_assets,
    )

    if options.output_path:
        write_manifest(manifest, options.output_path, config)

    return manifest


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def resolve_manifest_path(
    path: Union[str, Path],
    config: Optional[EmbedderConfig] = None,
) -> Path:
    target = Path(path)
    if target.is_dir():
        target = target / (config or EmbedderConfig()).MANIFEST_FILENAME
    return target


def write_manifest(
    manifest: ExportManifest,
    path: Union[str, Path],
    config: Optional[EmbedderConfig] = None,
) -> Path:
    """Atomically replace ``path`` with the serialized manifest."""
    target = resolve_manifest_path(path, config)
    body = json.dumps(
        manifest.model_dump(mode="json"),
        indent=2,
        ensure_ascii=False,
    )

    with _write_lock:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(target.parent),
            prefix=f".{target.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(body)
                fh.write("\n")
            os.replace(tmp_path, target)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    logger.info("Wrote manifest to %s", target)
    return target


def read_manifest(
    path: Union[str, Path],
    config: Optional[EmbedderConfig] = None,
) -> Optional[ExportManifest]:
    """
    Load a manifest, verifying its seal.

    Returns None when the file is missing or unreadable. A checksum
    mismatch is logged, not raised.
    """
    target = resolve_manifest_path(path, config)
    try:
        raw = target.read_text(encoding="utf-8")
        manifest = ExportManifest.model_validate(json.loads(raw))
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        logger.error("Failed to read manifest %s: %s", target, exc)
        return None

    if not verify_manifest_integrity(manifest):
        logger.warning(
            "Manifest checksum mismatch for %s; file may have been modified",
            target,
        )

    return manifest


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------


def _index_by_asset_id(manifest: ExportManifest, label: str) -> Dict[str, ManifestAsset]:
    """Assets keyed by asset_id; on duplicates the last entry wins."""
    indexed: Dict[str, ManifestAsset] = {}
    duplicates: List[str] = []
    for asset in manifest.assets:
        if asset.asset_id in indexed and asset.asset_id not in duplicates:
            duplicates.append(asset.asset_id)
        indexed[asset.asset_id] = asset

    if duplicates:
        logger.warning(
            "Duplicate asset ids in %s manifest %s; comparing the last entry of: %s",
            label,
            manifest.export_id,
            ", ".join(duplicates),
        )
    return indexed


def compare_manifests(old: ExportManifest, new: ExportManifest) -> ManifestDiff:
    """
    Diff two manifest generations by asset_id.

    A changed file checksum marks the asset as modified, which usually
    means a platform re-encoded it or stripped its metadata. Duplicate
    asset ids within one manifest are logged and collapse to their last
    entry.
    """
    old_assets = _index_by_asset_id(old, "old")
    new_assets = _index_by_asset_id(new, "new")

    added: List[str] = []
    modified: List[str] = []
    mismatches: List[ChecksumMismatch] = []

    for asset_id, asset in new_assets.items():
        previous = old_assets.get(asset_id)
        if previous is None:
            added.append(asset_id)
        elif previous.checksum != asset.checksum:
            modified.append(asset_id)
            mismatches.append(
                ChecksumMismatch(
                    asset_id=asset_id,
                    expected=previous.checksum,
                    actual=asset.checksum,
                )
            )

    removed = [asset_id for asset_id in old_assets if asset_id not in new_assets]

    return ManifestDiff(
        added_assets=added,
        removed_assets=removed,
        modified_assets=modified,
        checksum_mismatches=mismatches,
    )


def contracts_for_reembed(
    old: ExportManifest,
    diff: ManifestDiff,
) -> Dict[str, MetadataContract]:
    """Stored contracts of the modified assets, keyed by asset_id."""
    by_id = {a.asset_id: a for a in old.assets}
    return {
        asset_id: by_id[asset_id].contract
        for asset_id in diff.modified_assets
        if asset_id in by_id
    }
