import pytest

from embedder.app.contract.constraints import KEYWORD_CONSTRAINTS, SPAM_KEYWORDS
from embedder.app.contract.keywords import (
    is_spam_keyword,
    normalize_keyword,
    sanitize_keywords,
    validate_keywords,
)


# ------------------------------------------------------------------
# Sanitization
# ------------------------------------------------------------------

def test_sanitize_applies_every_rule_in_order():
    raw = [
        "wedding",
        "Wedding",
        "the sunset",
        "a bride is smiling",
        "best photographer",
        "family having fun today.",
        "x" * 25,
        "  groom  ",
        "",
    ]

    assert sanitize_keywords(raw) == ["wedding", "sunset", "bride smiling", "groom"]


def test_first_occurrence_wins_on_case_insensitive_duplicates():
    assert sanitize_keywords(["Sunset", "sunset", "SUNSET"]) == ["Sunset"]


def test_sentence_fragments_are_dropped():
    assert sanitize_keywords(["couple walking on beach", "what a view!", "beach"]) == [
        "beach"
    ]


def test_output_is_truncated_to_maximum_count():
    raw = [f"kw{i}" for i in range(20)]

    result = sanitize_keywords(raw)

    assert len(result) == KEYWORD_CONSTRAINTS.max_count
    assert result == raw[: KEYWORD_CONSTRAINTS.max_count]


def test_duplicates_do_not_count_towards_the_limit():
    raw = ["alpha"] * 10 + [f"kw{i}" for i in range(20)]

    result = sanitize_keywords(raw)

    assert result[0] == "alpha"
    assert len(result) == KEYWORD_CONSTRAINTS.max_count
    assert result.count("alpha") == 1


@pytest.mark.parametrize(
    "raw",
    [
        ["a the dog", "dog is are cat", "The An Apple"],
        ["wedding", "Wedding", "the sunset", "a bride is smiling"],
        ["  spaced   out  ", "an  island", "it was been fun"],
        [f"kw{i}" for i in range(30)],
        ["free", "cheap", "stunning view", "#1 studio"],
        [],
    ],
)
def test_sanitize_is_idempotent(raw):
    once = sanitize_keywords(raw)

    assert sanitize_keywords(once) == once


@pytest.mark.parametrize(
    "raw",
    [
        ["wedding", "amazing sunset", "top studio", "freedom", "Elite Crew"],
        [f"keyword number {i}" for i in range(40)],
        ["a" * 24, "b" * 25, "c d e", "c d e f"],
    ],
)
def test_sanitized_output_respects_limits(raw):
    result = sanitize_keywords(raw)

    assert len(result) <= KEYWORD_CONSTRAINTS.max_count
    assert all(len(k) <= KEYWORD_CONSTRAINTS.item_max_length for k in result)
    assert not any(spam in k.lower() for k in result for spam in SPAM_KEYWORDS)


def test_normalize_reaches_a_fixed_point():
    assert normalize_keyword("a the dog") == "dog"
    assert normalize_keyword("dog is are cat") == "dog cat"
    assert normalize_keyword("  family   portrait ") == "family portrait"


# ------------------------------------------------------------------
# Spam detection
# ------------------------------------------------------------------

def test_spam_matches_exact_and_substring_case_insensitively():
    assert is_spam_keyword("Best")
    assert is_spam_keyword("world-class service")
    assert is_spam_keyword("PREMIUM prints")
    assert not is_spam_keyword("sunset")


# ------------------------------------------------------------------
# Keyword validation
# ------------------------------------------------------------------

def test_validate_keywords_rejects_too_few():
    report = validate_keywords(["wedding", "sunset", "bride"])

    assert report.valid is False
    assert any("At least 5" in e for e in report.errors)


def test_validate_keywords_warns_but_passes_with_enough_survivors():
    report = validate_keywords(
        ["wedding", "sunset", "bride", "groom", "vineyard", "best photographer"]
    )

    assert report.valid is True
    assert any("Spam keyword" in w for w in report.warnings)
    assert "best photographer" not in report.sanitized


def test_validate_keywords_is_invalid_when_sanitization_leaves_too_few():
    report = validate_keywords(["wedding", "sunset", "bride", "cheap", "amazing"])

    assert report.errors == []
    assert report.valid is False
    assert report.sanitized == ["wedding", "sunset", "bride"]


def test_validate_keywords_reports_duplicates():
    report = validate_keywords(["sunset", "Sunset", "a", "b", "c"])

    assert any("Duplicate keywords found: sunset" in w for w in report.warnings)
