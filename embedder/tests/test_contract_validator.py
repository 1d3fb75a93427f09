import pytest

from embedder.app.checks.validator import (
    MetadataValidationError,
    assert_valid_metadata,
    get_validation_report,
    is_export_ready,
    validate_metadata_contract,
)
from embedder.app.schemas.contract import GovernanceAttestation
from embedder.tests.fixtures.contracts import (
    authority_fields,
    complete_contract,
    core_fields,
    evidence_contract,
    make_contract,
)


def _errors_for(result, field):
    return [e for e in result.errors if e.field == field]


def _warnings_for(result, field):
    return [w for w in result.warnings if w.field == field]


# ------------------------------------------------------------------
# Happy path
# ------------------------------------------------------------------

def test_complete_contract_is_valid_without_warnings():
    result = validate_metadata_contract(complete_contract())

    assert result.valid is True
    assert result.errors == []
    assert result.warnings == []


# ------------------------------------------------------------------
# Core fields
# ------------------------------------------------------------------

def test_too_few_keywords_blocks_export():
    contract = make_contract(core=core_fields(keywords=["wedding", "sunset", "bride"]))

    result = validate_metadata_contract(contract)

    assert result.valid is False
    [error] = _errors_for(result, "keywords")
    assert error.rule == "min_count"
    assert "Too few keywords" in error.message


def test_title_longer_than_sixty_characters_blocks_export():
    contract = make_contract(core=core_fields(object_name="T" * 70))

    result = validate_metadata_contract(contract)

    assert result.valid is False
    [error] = _errors_for(result, "object_name")
    assert error.rule == "max_length"
    assert "Title too long" in error.message


@pytest.mark.parametrize(
    "field",
    [
        "object_name",
        "caption_abstract",
        "by_line",
        "credit",
        "copyright_notice",
        "keywords",
        "city",
        "country",
        "rights_usage_terms",
    ],
)
def test_missing_required_core_field_is_reported_on_that_field(field):
    value = [] if field == "keywords" else None
    contract = make_contract(core=core_fields(**{field: value}))

    result = validate_metadata_contract(contract)

    assert result.valid is False
    assert field in result.error_fields()


def test_blank_strings_count_as_missing():
    contract = make_contract(core=core_fields(city="   "))

    result = validate_metadata_contract(contract)

    assert "city" in result.error_fields()


def test_source_is_optional():
    contract = make_contract(core=core_fields(source=None))

    assert validate_metadata_contract(contract).valid is True


def test_short_caption_is_an_error_and_long_caption_a_warning():
    short = validate_metadata_contract(
        make_contract(core=core_fields(caption_abstract="Too short."))
    )
    long = validate_metadata_contract(
        make_contract(core=core_fields(caption_abstract="word " * 300))
    )

    assert _errors_for(short, "caption_abstract")[0].rule == "min_length"
    assert long.valid is True
    assert _warnings_for(long, "caption_abstract")


def test_over_long_core_field_is_an_error():
    contract = make_contract(core=core_fields(by_line="N" * 81))

    result = validate_metadata_contract(contract)

    assert _errors_for(result, "by_line")[0].rule == "max_length"


def test_keyword_quality_issues_are_warnings_only():
    keywords = ["wedding", "sunset", "bride", "groom", "Wedding", "best shots"]
    contract = make_contract(core=core_fields(keywords=keywords))

    result = validate_metadata_contract(contract)

    assert result.valid is True
    messages = [w.message for w in _warnings_for(result, "keywords")]
    assert any("Spam keyword" in m for m in messages)
    assert any("Duplicate keywords" in m for m in messages)


def test_missing_core_record_reports_every_required_field():
    result = validate_metadata_contract(make_contract(without_core=True))

    for field in ("object_name", "caption_abstract", "keywords", "rights_usage_terms"):
        assert field in result.error_fields()


# ------------------------------------------------------------------
# Safety gate
# ------------------------------------------------------------------

def test_sensitive_subject_without_safety_validation_is_blocking():
    contract = make_contract(
        extension=authority_fields(scene_type="newborn session", safety_validated=None)
    )

    result = validate_metadata_contract(contract)

    assert result.valid is False
    [error] = _errors_for(result, "safety_validated")
    assert error.rule == "safety_gate"


def test_sensitive_subject_with_safety_validation_passes():
    contract = make_contract(
        extension=authority_fields(subjects=["children"], safety_validated=True)
    )

    assert validate_metadata_contract(contract).valid is True


def test_safety_flag_false_does_not_satisfy_gate():
    contract = make_contract(
        extension=authority_fields(subjects=["baby"], safety_validated=False)
    )

    assert "safety_validated" in validate_metadata_contract(contract).error_fields()


# ------------------------------------------------------------------
# Proof-first evidence
# ------------------------------------------------------------------

def test_missing_extension_is_an_error_and_core_checks_still_run():
    contract = make_contract(
        core=core_fields(city=None),
        without_extension=True,
    )

    result = validate_metadata_contract(contract)

    assert "extension" in result.error_fields()
    assert "city" in result.error_fields()


@pytest.mark.parametrize(
    "field", ["business_name", "job_type", "service_category", "asset_id"]
)
def test_missing_evidence_field_is_an_error(field):
    contract = make_contract(extension=authority_fields(**{field: None}))

    result = validate_metadata_contract(contract)

    assert result.valid is False
    assert _errors_for(result, field)[0].rule == "required"


def test_values_outside_closed_sets_are_errors():
    contract = make_contract(
        extension=authority_fields(job_type="wedding-shoot", page_role="homepage")
    )

    result = validate_metadata_contract(contract)

    assert _errors_for(result, "job_type")[0].rule == "enum"
    assert _errors_for(result, "page_role")[0].rule == "enum"
    assert _errors_for(result, "job_type")[0].value == "wedding-shoot"


def test_non_uuid_asset_id_is_a_warning():
    contract = make_contract(extension=authority_fields(asset_id="IMG_0042"))

    result = validate_metadata_contract(contract)

    assert result.valid is True
    assert _warnings_for(result, "asset_id")


def test_low_vision_confidence_is_a_warning_only():
    contract = make_contract(extension=authority_fields(vision_confidence=40))

    result = validate_metadata_contract(contract)

    assert result.valid is True
    assert "Low AI vision confidence" in _warnings_for(result, "vision_confidence")[0].message


def test_missing_recommended_fields_warn_without_blocking():
    result = validate_metadata_contract(evidence_contract())

    assert result.valid is True
    warned = {w.field for w in result.warnings}
    assert {"context_line", "target_page", "page_role"} <= warned


# ------------------------------------------------------------------
# Governance attestation
# ------------------------------------------------------------------

def test_governance_values_are_checked():
    governance = GovernanceAttestation(
        status="maybe",
        policy="allow",
        ai_confidence=1.5,
        checked_at="yesterday",
    )
    contract = make_contract(extension=authority_fields(governance=governance))

    result = validate_metadata_contract(contract)

    assert result.error_fields() == ["governance.status"]
    warned = {w.field for w in result.warnings}
    assert {"governance.ai_confidence", "governance.checked_at"} <= warned


def test_valid_governance_attestation_passes():
    governance = GovernanceAttestation(
        ai_generated=False,
        ai_confidence=0.12,
        status="approved",
        policy="deny_ai_proof",
        checked_at="2026-02-01T10:00:00Z",
    )
    contract = make_contract(extension=authority_fields(governance=governance))

    result = validate_metadata_contract(contract)

    assert result.valid is True
    assert result.warnings == []


# ------------------------------------------------------------------
# Wrappers
# ------------------------------------------------------------------

def test_assert_valid_metadata_raises_with_full_result():
    contract = make_contract(core=core_fields(keywords=["a"], object_name="T" * 70))

    with pytest.raises(MetadataValidationError) as excinfo:
        assert_valid_metadata(contract)

    assert isinstance(excinfo.value, ValueError)
    assert {"keywords", "object_name"} <= set(excinfo.value.result.error_fields())


def test_assert_valid_metadata_returns_result_when_valid():
    assert assert_valid_metadata(complete_contract()).valid is True


def test_is_export_ready():
    assert is_export_ready(complete_contract()) is True
    assert is_export_ready(make_contract(without_extension=True)) is False


def test_validation_report_lists_errors_and_warnings():
    contract = make_contract(
        core=core_fields(keywords=["wedding", "sunset", "bride"]),
        extension=authority_fields(vision_confidence=10),
    )

    report = get_validation_report(contract)

    assert "FAILED - export blocked" in report
    assert "ERRORS (must fix):" in report
    assert "keywords:" in report
    assert "WARNINGS (review recommended):" in report


def test_validation_report_for_passing_contract():
    report = get_validation_report(complete_contract())

    assert "PASSED - ready for export" in report
    assert "ERRORS" not in report


@pytest.mark.parametrize(
    "raw, expected",
    [(True, True), (False, False), (None, None), ("unknown", None), ("Unknown", None)],
)
def test_ai_generated_is_tri_state(raw, expected):
    governance = GovernanceAttestation.model_validate(
        {"ai_generated": raw, "status": "approved", "policy": "conditional"}
    )

    assert governance.ai_generated is expected
