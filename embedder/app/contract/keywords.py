"""
Keyword rules.

Keywords must be atomic concepts: short noun phrases, no sentences, no
punctuation, no marketing spam.

    Bad:  "family having fun today.", "best photographer", "the big red barn door"
    Good: "family portrait", "sunset", "studio photography"

sanitize_keywords is idempotent: every item it emits is already a fixed
point of normalization and passes every filter, so re-applying it to its
own output changes nothing.
"""

from __future__ import annotations

import re
from typing import List, Sequence

from pydantic import BaseModel, ConfigDict, Field

from embedder.app.contract.constraints import KEYWORD_CONSTRAINTS, SPAM_KEYWORDS


_LEADING_ARTICLE = re.compile(r"^(a|an|the)\s+", re.IGNORECASE)
_LINKING_VERB = re.compile(r"\s+(is|are|was|were|being|been)\s+", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_SENTENCE_PUNCTUATION = (".", "!", "?")

MAX_WORDS = 3


def is_spam_keyword(keyword: str) -> bool:
    """Exact or substring match against the blocklist, case-insensitive."""
    lower = keyword.lower().strip()
    return any(lower == spam or spam in lower for spam in SPAM_KEYWORDS)


def normalize_keyword(keyword: str) -> str:
    """
    Strip leading articles and linking verbs and collapse whitespace.

    Applied until stable, so "a the dog" and "dog is are cat" reduce
    fully in one call.
    """
    current = keyword.strip()
    while True:
        reduced = _LEADING_ARTICLE.sub("", current)
        reduced = _LINKING_VERB.sub(" ", reduced)
        reduced = _WHITESPACE.sub(" ", reduced).strip()
        if reduced == current:
            return reduced
        current = reduced


def _word_count(keyword: str) -> int:
    return len(keyword.split())


def is_sentence_like(keyword: str) -> bool:
    return _word_count(keyword) > MAX_WORDS or any(
        p in keyword for p in _SENTENCE_PUNCTUATION
    )


def _is_acceptable(keyword: str) -> bool:
    if not keyword:
        return False
    if len(keyword) > KEYWORD_CONSTRAINTS.item_max_length:
        return False
    if is_sentence_like(keyword):
        return False
    if is_spam_keyword(keyword):
        return False
    return True


def sanitize_keywords(raw: Sequence[str]) -> List[str]:
    """
    Produce the keyword list that is actually written.

    Steps: normalize, drop unacceptable items (too long, sentence-like,
    spam, empty), deduplicate case-insensitively keeping the first
    occurrence and its casing, then truncate to the maximum count.
    """
    seen: set[str] = set()
    result: List[str] = []

    for item in raw:
        if not isinstance(item, str):
            continue

        keyword = normalize_keyword(item)
        if not _is_acceptable(keyword):
            continue

        key = keyword.casefold()
        if key in seen:
            continue
        seen.add(key)
        result.append(keyword)

        if len(result) == KEYWORD_CONSTRAINTS.max_count:
            break

    return result


class KeywordValidation(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    sanitized: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")


def find_duplicates(keywords: Sequence[str]) -> List[str]:
    """Case-insensitive duplicates, each reported once, in first-seen order."""
    seen: set[str] = set()
    duplicates: List[str] = []
    for keyword in keywords:
        key = keyword.casefold()
        if key in seen and key not in duplicates:
            duplicates.append(key)
        seen.add(key)
    return duplicates


def validate_keywords(keywords: Sequence[str]) -> KeywordValidation:
    """
    Check a raw keyword list against the constraints.

    The list is valid when the raw count meets the minimum and enough
    keywords survive sanitization to still meet it.
    """
    errors: List[str] = []
    warnings: List[str] = []
    limits = KEYWORD_CONSTRAINTS

    if len(keywords) < limits.min_count:
        errors.append(
            f"At least {limits.min_count} keywords required "
            f"(got {len(keywords)})"
        )
    if len(keywords) > limits.max_count:
        warnings.append(
            f"Too many keywords: {len(keywords)} (max {limits.max_count}) "
            "- will be truncated"
        )

    for keyword in keywords:
        if len(keyword) > limits.item_max_length:
            warnings.append(
                f'Keyword too long: "{keyword}" ({len(keyword)} chars, '
                f"max {limits.item_max_length})"
            )
        if is_spam_keyword(keyword):
            warnings.append(f'Spam keyword detected: "{keyword}" - will be removed')

    duplicates = find_duplicates(keywords)
    if duplicates:
        warnings.append(f"Duplicate keywords found: {', '.join(duplicates)}")

    sanitized = sanitize_keywords(keywords)

    return KeywordValidation(
        valid=not errors and len(sanitized) >= limits.min_count,
        errors=errors,
        warnings=warnings,
        sanitized=sanitized,
    )
