import json
import logging
import uuid
from datetime import datetime, timezone

from embedder.app.manifest.generator import (
    compare_manifests,
    compute_manifest_checksum,
    contracts_for_reembed,
    generate_manifest,
    read_manifest,
    resolve_manifest_path,
    verify_manifest_integrity,
    write_manifest,
)
from embedder.app.schemas.contract import EmbedTier
from embedder.app.schemas.manifest import (
    GenerateManifestOptions,
    HealthStatus,
    ManifestInput,
)
from embedder.app.utils.hashing import calculate_file_checksum
from embedder.tests.fixtures.contracts import (
    ASSET_ID,
    authority_fields,
    core_fields,
    evidence_contract,
    make_contract,
)


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _file(tmp_path, name, body=b"image bytes"):
    path = tmp_path / name
    path.write_bytes(body)
    return path


def _options(tmp_path, items, **kwargs):
    kwargs.setdefault("export_id", "EXP-2026-03")
    kwargs.setdefault("business_name", "Harbor Light Studio")
    return GenerateManifestOptions(assets=items, **kwargs)


def _item(path, contract=None, **kwargs):
    return ManifestInput(
        file_path=str(path),
        contract=contract if contract is not None else make_contract(),
        **kwargs,
    )


# ------------------------------------------------------------------
# Generation
# ------------------------------------------------------------------

def test_single_complete_asset(tmp_path):
    path = _file(tmp_path, "vows.jpg")

    manifest = generate_manifest(
        _options(tmp_path, [_item(path, original_file_name="IMG_0042.CR3")]),
        now=NOW,
    )

    assert manifest.total_assets == 1
    assert manifest.generated_at == NOW.isoformat()
    assert manifest.embed_tier_summary.authority == 1
    [asset] = manifest.assets
    assert asset.file_name == "vows.jpg"
    assert asset.original_file_name == "IMG_0042.CR3"
    assert asset.asset_id == ASSET_ID
    assert asset.checksum == calculate_file_checksum(path)
    assert asset.embed_tier is EmbedTier.AUTHORITY
    assert asset.health_score == 100
    assert asset.health_status is HealthStatus.EVIDENCE_EMBEDDED
    assert asset.embedded_at == manifest.generated_at
    assert verify_manifest_integrity(manifest)


def test_tier_summary_counts_each_asset(tmp_path):
    items = [
        _item(_file(tmp_path, "a.jpg"), make_contract()),
        _item(_file(tmp_path, "b.jpg"), evidence_contract()),
        _item(_file(tmp_path, "c.jpg"), make_contract(without_extension=True)),
        _item(
            _file(tmp_path, "d.jpg"),
            make_contract(core=core_fields(keywords=["one"]), without_extension=True),
        ),
    ]

    manifest = generate_manifest(_options(tmp_path, items), now=NOW)

    summary = manifest.embed_tier_summary
    assert (summary.authority, summary.evidence, summary.basic, summary.incomplete) == (
        1,
        1,
        1,
        1,
    )


def test_missing_asset_id_gets_a_generated_one(tmp_path):
    contract = make_contract(extension=authority_fields(asset_id=None))

    manifest = generate_manifest(
        _options(tmp_path, [_item(_file(tmp_path, "a.jpg"), contract)]),
        now=NOW,
    )

    uuid.UUID(manifest.assets[0].asset_id)


def test_parallel_generation_keeps_input_order(tmp_path):
    items = [
        _item(
            _file(tmp_path, f"{i}.jpg", body=bytes([i]) * 100),
            make_contract(extension=authority_fields(asset_id=f"asset-{i}")),
        )
        for i in range(8)
    ]

    manifest = generate_manifest(
        _options(tmp_path, items, max_workers=4), now=NOW
    )

    assert [a.asset_id for a in manifest.assets] == [f"asset-{i}" for i in range(8)]


# ------------------------------------------------------------------
# Integrity
# ------------------------------------------------------------------

def test_checksum_is_a_pure_function_of_content(tmp_path):
    options = _options(tmp_path, [_item(_file(tmp_path, "a.jpg"))])

    first = generate_manifest(options, now=NOW)
    second = generate_manifest(options, now=NOW)

    assert first.manifest_checksum == second.manifest_checksum
    assert len(first.manifest_checksum) == 64
    assert compute_manifest_checksum(first) == first.manifest_checksum


def test_any_field_change_breaks_the_seal(tmp_path):
    manifest = generate_manifest(
        _options(tmp_path, [_item(_file(tmp_path, "a.jpg"))]), now=NOW
    )

    tampered = manifest.model_copy(update={"business_name": "Someone Else"})

    assert not verify_manifest_integrity(tampered)


def test_file_bytes_change_the_asset_checksum(tmp_path):
    first = generate_manifest(
        _options(tmp_path, [_item(_file(tmp_path, "a.jpg", b"one"))]), now=NOW
    )
    second = generate_manifest(
        _options(tmp_path, [_item(_file(tmp_path, "a.jpg", b"two"))]), now=NOW
    )

    assert first.assets[0].checksum != second.assets[0].checksum
    assert first.manifest_checksum != second.manifest_checksum


# ------------------------------------------------------------------
# Persistence
# ------------------------------------------------------------------

def test_write_and_read_back(tmp_path):
    output = tmp_path / "out.json"
    manifest = generate_manifest(
        _options(
            tmp_path,
            [_item(_file(tmp_path, "a.jpg"))],
            output_path=str(output),
        ),
        now=NOW,
    )

    assert output.exists()
    assert read_manifest(output) == manifest


def test_directory_target_uses_configured_file_name(tmp_path):
    manifest = generate_manifest(
        _options(tmp_path, [_item(_file(tmp_path, "a.jpg"))]), now=NOW
    )

    path = write_manifest(manifest, tmp_path)

    assert path == tmp_path / "manifest.json"
    assert resolve_manifest_path(tmp_path) == path
    assert read_manifest(tmp_path) == manifest
    assert not list(tmp_path.glob(".manifest.json.*.tmp"))


def test_tampered_file_is_returned_with_a_warning(tmp_path, caplog):
    manifest = generate_manifest(
        _options(tmp_path, [_item(_file(tmp_path, "a.jpg"))]), now=NOW
    )
    path = write_manifest(manifest, tmp_path / "m.json")

    data = json.loads(path.read_text(encoding="utf-8"))
    data["business_name"] = "Someone Else"
    path.write_text(json.dumps(data), encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        loaded = read_manifest(path)

    assert loaded is not None
    assert loaded.business_name == "Someone Else"
    assert "checksum mismatch" in caplog.text


def test_unreadable_manifest_returns_none(tmp_path):
    garbage = tmp_path / "garbage.json"
    garbage.write_text("{not json", encoding="utf-8")

    assert read_manifest(tmp_path / "missing.json") is None
    assert read_manifest(garbage) is None


# ------------------------------------------------------------------
# Diff
# ------------------------------------------------------------------

def _manifest_for(tmp_path, files):
    items = [
        _item(
            _file(tmp_path, f"{asset_id}.jpg", body),
            make_contract(extension=authority_fields(asset_id=asset_id)),
        )
        for asset_id, body in files.items()
    ]
    return generate_manifest(_options(tmp_path, items), now=NOW)


def test_compare_manifests(tmp_path):
    old = _manifest_for(tmp_path, {"keep": b"k", "change": b"before", "gone": b"g"})
    new = _manifest_for(tmp_path, {"keep": b"k", "change": b"after", "fresh": b"f"})

    diff = compare_manifests(old, new)

    assert diff.added_assets == ["fresh"]
    assert diff.removed_assets == ["gone"]
    assert diff.modified_assets == ["change"]
    [mismatch] = diff.checksum_mismatches
    assert mismatch.asset_id == "change"
    assert mismatch.expected == old.assets[1].checksum
    assert diff.has_changes()


def test_identical_manifests_have_no_changes(tmp_path):
    manifest = _manifest_for(tmp_path, {"a": b"a"})

    assert not compare_manifests(manifest, manifest).has_changes()


def test_contracts_for_reembed(tmp_path):
    old = _manifest_for(tmp_path, {"keep": b"k", "change": b"before"})
    new = _manifest_for(tmp_path, {"keep": b"k", "change": b"after"})

    contracts = contracts_for_reembed(old, compare_manifests(old, new))

    assert list(contracts) == ["change"]
    assert contracts["change"].extension.asset_id == "change"


def test_identical_files_with_distinct_asset_ids_are_separate_entries(tmp_path):
    items = [
        _item(
            _file(tmp_path, f"{asset_id}.jpg", b"identical bytes"),
            make_contract(extension=authority_fields(asset_id=asset_id)),
        )
        for asset_id in ("asset-a", "asset-b")
    ]

    manifest = generate_manifest(_options(tmp_path, items), now=NOW)

    assert manifest.total_assets == 2
    assert [a.asset_id for a in manifest.assets] == ["asset-a", "asset-b"]
    assert manifest.assets[0].checksum == manifest.assets[1].checksum
    assert manifest.embed_tier_summary.authority == 2


def test_duplicate_asset_ids_are_logged_when_compared(tmp_path, caplog):
    contract = make_contract(extension=authority_fields(asset_id="twin"))
    items = [
        _item(_file(tmp_path, "first.jpg", b"one"), contract),
        _item(_file(tmp_path, "second.jpg", b"two"), contract),
    ]
    duplicated = generate_manifest(_options(tmp_path, items), now=NOW)
    single = generate_manifest(_options(tmp_path, items[1:]), now=NOW)

    with caplog.at_level(logging.WARNING):
        diff = compare_manifests(duplicated, single)

    assert "Duplicate asset ids" in caplog.text
    assert "twin" in caplog.text
    assert not diff.has_changes()


def test_unique_asset_ids_log_nothing(tmp_path, caplog):
    manifest = _manifest_for(tmp_path, {"a": b"a", "b": b"b"})

    with caplog.at_level(logging.WARNING):
        compare_manifests(manifest, manifest)

    assert "Duplicate asset ids" not in caplog.text
