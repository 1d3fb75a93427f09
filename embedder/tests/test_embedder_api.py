import pytest
from fastapi.testclient import TestClient

from embedder.app.config import EmbedderConfig
from embedder.app.main import app, get_config, get_tag_session
from embedder.app.writer.exiftool import ExifToolError
from embedder.tests.fixtures.contracts import core_fields, make_contract
from embedder.tests.fixtures.fake_session import FakeTagSession


class BrokenTagSession(FakeTagSession):
    def version(self) -> str:
        raise ExifToolError("exiftool not installed")


@pytest.fixture
def session():
    return FakeTagSession()


@pytest.fixture
def client(session, tmp_path):
    config = EmbedderConfig(WORKSPACE_ROOT=str(tmp_path))
    app.dependency_overrides[get_tag_session] = lambda: session
    app.dependency_overrides[get_config] = lambda: config
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _contract_json(contract=None):
    return (contract or make_contract()).model_dump(mode="json")


# ------------------------------------------------------------------
# Health
# ------------------------------------------------------------------

def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "service": "embedder",
        "tag_tool_version": "13.00",
    }


def test_health_reports_unavailable_tool():
    app.dependency_overrides[get_tag_session] = lambda: BrokenTagSession()
    app.dependency_overrides[get_config] = lambda: EmbedderConfig()
    try:
        response = TestClient(app).get("/health")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert "exiftool not installed" in response.json()["detail"]


# ------------------------------------------------------------------
# Contracts
# ------------------------------------------------------------------

def test_validate_endpoint(client):
    invalid = make_contract(core=core_fields(keywords=["a"]))

    ok = client.post("/v1/contracts/validate", json=_contract_json())
    bad = client.post("/v1/contracts/validate", json=_contract_json(invalid))

    assert ok.status_code == 200
    assert ok.json()["valid"] is True
    assert bad.json()["valid"] is False
    assert bad.json()["errors"][0]["field"] == "keywords"


def test_unknown_contract_keys_are_rejected(client):
    payload = _contract_json()
    payload["core"]["headline"] = "not a contract field"

    response = client.post("/v1/contracts/validate", json=payload)

    assert response.status_code == 422


def test_unknown_ai_generated_is_accepted(client):
    payload = _contract_json()
    payload["extension"]["governance"] = {
        "ai_generated": "unknown",
        "status": "pending",
        "policy": "conditional",
    }

    response = client.post("/v1/contracts/validate", json=payload)

    assert response.status_code == 200
    assert response.json()["valid"] is True


def test_report_endpoint(client):
    response = client.post("/v1/contracts/report", json=_contract_json())

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "PASSED - ready for export" in response.text


# ------------------------------------------------------------------
# Embedding
# ------------------------------------------------------------------

def test_embed_endpoint(client, session, tmp_path):
    image = tmp_path / "a.jpg"
    image.write_bytes(b"\xff\xd8 body")

    response = client.post(
        "/v1/embed",
        json={"source_path": str(image), "contract": _contract_json()},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["embed_tier"] == "AUTHORITY"
    assert len(session.writes) == 1


def test_embed_failure_is_reported_in_body(client, tmp_path):
    response = client.post(
        "/v1/embed",
        json={"source_path": str(tmp_path / "missing.jpg"), "contract": _contract_json()},
    )

    assert response.status_code == 200
    assert response.json()["error"]["code"] == "STAGING_FAILED"


def test_embed_rejects_source_outside_workspace(client, session, tmp_path):
    response = client.post(
        "/v1/embed",
        json={
            "source_path": "/etc/hostname",
            "output_path": str(tmp_path / "copied.txt"),
            "contract": _contract_json(),
        },
    )

    assert response.status_code == 400
    assert "workspace" in response.json()["detail"]
    assert not (tmp_path / "copied.txt").exists()
    assert session.writes == []


def test_embed_rejects_output_escaping_workspace(client, session, tmp_path):
    image = tmp_path / "a.jpg"
    image.write_bytes(b"\xff\xd8 body")

    response = client.post(
        "/v1/embed",
        json={
            "source_path": str(image),
            "output_path": "../outside.jpg",
            "contract": _contract_json(),
        },
    )

    assert response.status_code == 400
    assert not (tmp_path.parent / "outside.jpg").exists()
    assert session.writes == []


def test_embed_resolves_relative_paths_in_workspace(client, tmp_path):
    (tmp_path / "a.jpg").write_bytes(b"\xff\xd8 body")

    response = client.post(
        "/v1/embed",
        json={
            "source_path": "a.jpg",
            "output_path": "copy.jpg",
            "contract": _contract_json(),
        },
    )

    assert response.json()["success"] is True
    assert (tmp_path / "copy.jpg").exists()
    assert response.json()["output_path"] == str((tmp_path / "copy.jpg").resolve())


# ------------------------------------------------------------------
# Manifests
# ------------------------------------------------------------------

def _manifest_request(path):
    return {
        "export_id": "EXP-1",
        "business_name": "Harbor Light Studio",
        "assets": [{"file_path": str(path), "contract": _contract_json()}],
    }


def test_manifest_endpoints(client, tmp_path):
    image = tmp_path / "a.jpg"
    image.write_bytes(b"one")
    first = client.post("/v1/manifests", json=_manifest_request(image))

    image.write_bytes(b"two")
    second = client.post("/v1/manifests", json=_manifest_request(image))

    assert first.status_code == 200
    assert "\n  " in first.text
    assert first.json()["total_assets"] == 1
    assert len(first.json()["manifest_checksum"]) == 64

    diff = client.post(
        "/v1/manifests/compare",
        json={"old": first.json(), "new": second.json()},
    )

    assert diff.status_code == 200
    assert diff.json()["modified_assets"] == [first.json()["assets"][0]["asset_id"]]


def test_manifest_with_missing_file_is_a_client_error(client, tmp_path):
    response = client.post(
        "/v1/manifests", json=_manifest_request(tmp_path / "missing.jpg")
    )

    assert response.status_code == 400


def test_manifest_rejects_files_outside_workspace(client):
    response = client.post("/v1/manifests", json=_manifest_request("/etc/hostname"))

    assert response.status_code == 400
    assert "workspace" in response.json()["detail"]


def test_manifest_rejects_output_outside_workspace(client, tmp_path):
    image = tmp_path / "a.jpg"
    image.write_bytes(b"one")
    request = _manifest_request(image)
    request["output_path"] = str(tmp_path.parent / "manifest.json")

    response = client.post("/v1/manifests", json=request)

    assert response.status_code == 400
    assert not (tmp_path.parent / "manifest.json").exists()


# ------------------------------------------------------------------
# Export profiles
# ------------------------------------------------------------------

def test_list_profiles(client):
    response = client.get("/v1/profiles")

    assert response.status_code == 200
    listed = {p["name"]: p["lab_only"] for p in response.json()}
    assert listed["PRODUCTION_STANDARD"] is False
    assert listed["LAB_FORENSIC"] is True


def test_profile_embed_endpoint(client, session, tmp_path):
    (tmp_path / "hero.jpg").write_bytes(b"\xff\xd8 body")

    response = client.post(
        "/v1/profiles/PRODUCTION_STANDARD/embed",
        json={"source_path": "hero.jpg", "user": {"display_name": "Jordan Avery"}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["output_path"] == str((tmp_path / "hero_embedded.jpg").resolve())
    assert body["verification"]["verified"] is True
    assert len(session.writes) == 1


def test_profile_embed_unknown_profile_is_404(client, tmp_path):
    (tmp_path / "hero.jpg").write_bytes(b"body")

    response = client.post(
        "/v1/profiles/NOPE/embed",
        json={"source_path": "hero.jpg", "user": {"display_name": "Jordan Avery"}},
    )

    assert response.status_code == 404


def test_profile_embed_lab_profile_is_403_without_lab_mode(client, tmp_path):
    (tmp_path / "hero.jpg").write_bytes(b"body")

    response = client.post(
        "/v1/profiles/LAB_FORENSIC/embed",
        json={"source_path": "hero.jpg", "user": {"display_name": "Jordan Avery"}},
    )

    assert response.status_code == 403
    assert "LAB_MODE" in response.json()["detail"]


def test_profile_embed_rejects_paths_outside_workspace(client, session):
    response = client.post(
        "/v1/profiles/PRODUCTION_STANDARD/embed",
        json={"source_path": "/etc/hostname", "user": {"display_name": "Jordan Avery"}},
    )

    assert response.status_code == 400
    assert session.writes == []
