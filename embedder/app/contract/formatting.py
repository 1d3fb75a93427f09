"""
Title, caption and session-type helpers.

Title format (LOCKED):

    {brand} – {session type} – {primary subject}

Caption structure:

    1. who is present
    2. what is happening
    3. emotional tone
    4. environment (studio / location)
    5. optional single brand mention
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from embedder.app.contract.constraints import (
    SENSITIVE_SUBJECT_TERMS,
    TITLE_MAX_LENGTH,
    TITLE_SUBJECT_MIN_LENGTH,
)


TITLE_SEPARATOR = " – "

DEFAULT_SESSION_TYPE = "Portrait Session"

SESSION_TYPES = (
    "Family Portrait",
    "Wedding",
    "Newborn Portrait",
    "Maternity Portrait",
    "Corporate Headshot",
    "Product Photography",
    "Real Estate",
    "Event Coverage",
    "Lifestyle",
    "Fashion",
    "Portrait Session",
    "Studio Session",
    "Location Session",
    "Editorial",
    "Commercial",
)

# First match wins.
_SESSION_TYPE_HINTS = (
    (("wedding",), "Wedding"),
    (("newborn",), "Newborn Portrait"),
    (("maternity",), "Maternity Portrait"),
    (("family",), "Family Portrait"),
    (("corporate", "headshot"), "Corporate Headshot"),
    (("product",), "Product Photography"),
    (("real estate", "property"), "Real Estate"),
    (("event",), "Event Coverage"),
    (("fashion",), "Fashion"),
    (("editorial",), "Editorial"),
    (("commercial",), "Commercial"),
)

_SUBJECT_HINTS = (
    (("family",), "family"),
    (("couple",), "couple"),
    (("baby", "newborn", "infant"), "newborn"),
    (("child", "children"), "children"),
    (("portrait",), "portrait subject"),
)


# ---------------------------------------------------------------------------
# Title
# ---------------------------------------------------------------------------

def format_title(brand: str, session_type: str, subject: str) -> str:
    """
    Build the branded title, never longer than TITLE_MAX_LENGTH.

    When the full title is too long the subject is cut to fit, but never
    below TITLE_SUBJECT_MIN_LENGTH characters. If brand and session type
    alone leave no room for that minimum, the assembled title is cut at
    the limit.
    """
    brand = brand.strip()
    session_type = session_type.strip()
    subject = subject.strip()

    title = TITLE_SEPARATOR.join((brand, session_type, subject))
    if len(title) <= TITLE_MAX_LENGTH:
        return title

    prefix = brand + TITLE_SEPARATOR + session_type + TITLE_SEPARATOR
    room = TITLE_MAX_LENGTH - len(prefix)
    subject = subject[: max(TITLE_SUBJECT_MIN_LENGTH, room)].rstrip()

    return (prefix + subject)[:TITLE_MAX_LENGTH].rstrip()


# ---------------------------------------------------------------------------
# Caption
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CaptionElements:
    subjects: str
    action: str
    emotional_tone: str
    environment: str
    brand_mention: Optional[str] = None


def format_caption(elements: CaptionElements) -> str:
    parts = [
        elements.subjects,
        elements.action,
        f"The atmosphere is {elements.emotional_tone.strip().lower()}."
        if elements.emotional_tone and elements.emotional_tone.strip()
        else "",
        elements.environment,
        elements.brand_mention or "",
    ]
    return " ".join(p.strip() for p in parts if p and p.strip())


# ---------------------------------------------------------------------------
# Session type and subjects
# ---------------------------------------------------------------------------

def _contains_any(text: str, needles: Iterable[str]) -> bool:
    return any(n in text for n in needles)


def detect_session_type(scene_type: Optional[str]) -> Optional[str]:
    """
    Map a free-form scene classification onto a session type label.

    Returns None for an empty scene type and DEFAULT_SESSION_TYPE when
    nothing matches.
    """
    if not scene_type or not scene_type.strip():
        return None

    lower = scene_type.lower()
    for hints, label in _SESSION_TYPE_HINTS:
        if _contains_any(lower, hints):
            return label
    return DEFAULT_SESSION_TYPE


def extract_primary_subjects(description: str) -> List[str]:
    lower = (description or "").lower()
    subjects = [label for hints, label in _SUBJECT_HINTS if _contains_any(lower, hints)]
    return subjects or ["subject"]


# ---------------------------------------------------------------------------
# Safety gate
# ---------------------------------------------------------------------------

def requires_safety_validation(
    scene_type: Optional[str],
    subjects: Iterable[str] = (),
) -> bool:
    """True when the scene or any subject names a sensitive category."""
    texts = [scene_type or ""] + [s for s in subjects if isinstance(s, str)]
    return any(
        term in text.lower()
        for text in texts
        for term in SENSITIVE_SUBJECT_TERMS
    )
