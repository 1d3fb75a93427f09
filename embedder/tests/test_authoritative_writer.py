from embedder.app.config import EmbedderConfig
from embedder.app.mapping.side_channel import decode_envelope, encode_envelope
from embedder.app.mapping.tag_map import SIDE_CHANNEL_TAG
from embedder.app.schemas.contract import EmbedTier
from embedder.app.schemas.side_channel import (
    AuditTrail,
    EntityLinks,
    ProvenanceContext,
    SideChannelEnvelope,
)
from embedder.app.schemas.write import WriteErrorCode, WriteRequest
from embedder.app.writer.authoritative_writer import (
    AuthoritativeWriter,
    write_authoritative_metadata,
)
from embedder.app.writer.exiftool import OVERWRITE_ORIGINAL
from embedder.tests.fixtures.contracts import (
    complete_contract,
    core_fields,
    evidence_contract,
    make_contract,
)
from embedder.tests.fixtures.fake_session import FakeTagSession


def _image(tmp_path, name="source.jpg"):
    path = tmp_path / name
    path.write_bytes(b"\xff\xd8\xff\xe0 fake jpeg body")
    return path


def _request(source, **kwargs):
    kwargs.setdefault("contract", complete_contract())
    return WriteRequest(source_path=str(source), **kwargs)


# ------------------------------------------------------------------
# Success path
# ------------------------------------------------------------------

def test_successful_write_in_place(tmp_path):
    source = _image(tmp_path)
    session = FakeTagSession()

    result = write_authoritative_metadata(_request(source), session)

    assert result.success is True
    assert result.error is None
    assert result.output_path == str(source)
    assert result.embed_tier is EmbedTier.AUTHORITY
    assert result.verification.verified is True
    assert result.validation.valid is True

    [(path, tags, flags)] = session.writes
    assert path == str(source)
    assert flags == [OVERWRITE_ORIGINAL]
    assert sorted(result.fields_written) == sorted(tags)


def test_log_trail_is_ordered(tmp_path):
    result = write_authoritative_metadata(_request(_image(tmp_path)), FakeTagSession())

    assert result.logs[0] == "Validating metadata contract"
    assert result.logs[1] == "Validation passed (0 warnings)"
    assert "Verification passed" in result.logs
    assert result.logs[-1] == "Embed tier: AUTHORITY"


def test_output_path_receives_a_copy(tmp_path):
    source = _image(tmp_path)
    output = tmp_path / "export" / "final.jpg"
    output.parent.mkdir()

    session = FakeTagSession()
    result = write_authoritative_metadata(
        _request(source, output_path=str(output)), session
    )

    assert result.success is True
    assert output.read_bytes() == source.read_bytes()
    assert session.writes[0][0] == str(output)
    assert any(line.startswith("Copied source to") for line in result.logs)


def test_tier_reported_for_evidence_contract(tmp_path):
    result = write_authoritative_metadata(
        _request(_image(tmp_path), contract=evidence_contract()),
        FakeTagSession(),
    )

    assert result.success is True
    assert result.embed_tier is EmbedTier.EVIDENCE


# ------------------------------------------------------------------
# Validation gate
# ------------------------------------------------------------------

def test_invalid_contract_is_not_written(tmp_path):
    session = FakeTagSession()
    contract = make_contract(core=core_fields(keywords=["a", "b"]))

    result = write_authoritative_metadata(
        _request(_image(tmp_path), contract=contract), session
    )

    assert result.success is False
    assert result.error.code is WriteErrorCode.VALIDATION_FAILED
    assert "keywords" in result.error.message
    assert result.validation.valid is False
    assert session.writes == []


def test_validation_can_be_skipped_per_request(tmp_path):
    session = FakeTagSession()
    contract = make_contract(core=core_fields(keywords=["a", "b"]))

    result = write_authoritative_metadata(
        _request(_image(tmp_path), contract=contract, validate_before_write=False),
        session,
    )

    assert result.success is True
    assert result.validation is None
    assert result.embed_tier is EmbedTier.INCOMPLETE
    assert "Validation skipped" in result.logs
    assert len(session.writes) == 1


def test_validation_can_be_disabled_by_config(tmp_path):
    config = EmbedderConfig(VALIDATE_BEFORE_WRITE=False)
    contract = make_contract(without_extension=True, core=core_fields(city=None))

    result = write_authoritative_metadata(
        _request(_image(tmp_path), contract=contract), FakeTagSession(), config
    )

    assert result.success is True
    assert result.embed_tier is EmbedTier.INCOMPLETE


# ------------------------------------------------------------------
# Staging and write failures
# ------------------------------------------------------------------

def test_missing_source_fails_staging(tmp_path):
    session = FakeTagSession()

    result = write_authoritative_metadata(
        _request(tmp_path / "missing.jpg"), session
    )

    assert result.success is False
    assert result.error.code is WriteErrorCode.STAGING_FAILED
    assert session.writes == []


def test_copy_failure_fails_staging(tmp_path):
    result = write_authoritative_metadata(
        _request(
            tmp_path / "missing.jpg",
            output_path=str(tmp_path / "out.jpg"),
        ),
        FakeTagSession(),
    )

    assert result.error.code is WriteErrorCode.STAGING_FAILED


def test_tool_failure_reports_write_failed(tmp_path):
    result = write_authoritative_metadata(
        _request(_image(tmp_path)), FakeTagSession(fail_writes=True)
    )

    assert result.success is False
    assert result.error.code is WriteErrorCode.WRITE_FAILED
    assert "simulated write failure" in result.error.message
    assert "ObjectName" in result.fields_written
    assert result.logs[-1].startswith("Error [WRITE_FAILED]")


def test_side_channel_overflow_fails_mapping(tmp_path):
    config = EmbedderConfig(SIDE_CHANNEL_MAX_BYTES=256)
    contract = make_contract(
        context=ProvenanceContext(audit=AuditTrail(source_hash="f" * 400)),
    )
    session = FakeTagSession()

    result = write_authoritative_metadata(
        _request(_image(tmp_path), contract=contract), session, config
    )

    assert result.error.code is WriteErrorCode.MAPPING_FAILED
    assert session.writes == []


# ------------------------------------------------------------------
# Verification
# ------------------------------------------------------------------

def test_verification_miss_is_a_warning(tmp_path):
    session = FakeTagSession(drop_on_read={"By-line", "XMP-dc:Creator", "Artist"})

    result = write_authoritative_metadata(_request(_image(tmp_path)), session)

    assert result.success is True
    assert result.verification.verified is False
    assert result.verification.missing_fields == ["By-line"]
    assert result.verification.critical_missing == ["By-line"]
    assert "Verification warning: missing fields: By-line" in result.logs


def test_failed_read_back_reports_everything_missing(tmp_path):
    result = write_authoritative_metadata(
        _request(_image(tmp_path)), FakeTagSession(fail_reads=True)
    )

    assert result.success is True
    assert result.verification.verified is False
    assert result.verification.present_fields == []
    assert "By-line" in result.verification.critical_missing


def test_verification_can_be_skipped(tmp_path):
    session = FakeTagSession()

    result = write_authoritative_metadata(
        _request(_image(tmp_path), verify_after_write=False), session
    )

    assert result.verification is None
    assert session.reads == []


# ------------------------------------------------------------------
# Side-channel merge
# ------------------------------------------------------------------

def test_existing_side_channel_is_merged(tmp_path):
    source = _image(tmp_path)
    existing = encode_envelope(
        SideChannelEnvelope(entities=EntityLinks(gallery_id="g-9"))
    )
    session = FakeTagSession(existing={str(source): {SIDE_CHANNEL_TAG: existing}})
    contract = make_contract(
        context=ProvenanceContext(audit=AuditTrail(pipeline_version="2.1")),
    )

    writer = AuthoritativeWriter(session)
    result = writer.write(
        _request(source, contract=contract, merge_existing_side_channel=True)
    )

    assert result.success is True
    written = decode_envelope(session.writes[0][1][SIDE_CHANNEL_TAG])
    assert written.entities.gallery_id == "g-9"
    assert written.audit.pipeline_version == "2.1"
    assert "Merging onto existing side-channel envelope" in result.logs
