"""
Export profile registry.

Maps profile names to profile instances. The built-in profiles are
registered at import; callers may register their own at runtime.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from embedder.app.profiles.base import ExportProfile
from embedder.app.profiles.lab_forensic import lab_forensic
from embedder.app.profiles.production_standard import production_standard

logger = logging.getLogger(__name__)


class UnknownProfileError(KeyError):
    """No profile is registered under the requested name."""

    def __str__(self) -> str:
        return f"Unknown export profile: {self.args[0]}"


PROFILE_REGISTRY: Dict[str, ExportProfile] = {
    production_standard.name: production_standard,
    lab_forensic.name: lab_forensic,
}


def get_profile(name: str) -> ExportProfile:
    try:
        return PROFILE_REGISTRY[name]
    except KeyError:
        raise UnknownProfileError(name) from None


def list_profiles() -> List[str]:
    """Registered profile names in registration order."""
    return list(PROFILE_REGISTRY)


def register_profile(profile: ExportProfile) -> None:
    """Register ``profile``, replacing any profile of the same name."""
    if profile.name in PROFILE_REGISTRY:
        logger.info("Replacing registered export profile %s", profile.name)
    PROFILE_REGISTRY[profile.name] = profile


__all__ = [
    "UnknownProfileError",
    "PROFILE_REGISTRY",
    "get_profile",
    "list_profiles",
    "register_profile",
]
