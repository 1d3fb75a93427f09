"""
Workspace path containment.

Paths received over HTTP name files on the server. They are resolved
against the configured workspace root and rejected when the resolved
path escapes it, symlinks included.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class WorkspacePathError(ValueError):
    """Raised when a path resolves outside the workspace root."""


def resolve_in_workspace(root: Union[str, Path], path: str) -> str:
    """
    Resolve ``path`` inside ``root`` and return it as an absolute string.

    Relative paths are taken relative to the root.

    Raises:
        WorkspacePathError: if the resolved path is outside the root.
    """
    workspace = Path(root).resolve()
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = workspace / candidate
    candidate = candidate.resolve()

    try:
        candidate.relative_to(workspace)
    except ValueError:
        raise WorkspacePathError(
            f"Path escapes the workspace root: {path}"
        ) from None

    return str(candidate)


def resolve_optional_in_workspace(
    root: Union[str, Path], path: Optional[str]
) -> Optional[str]:
    if path is None:
        return None
    return resolve_in_workspace(root, path)


__all__ = [
    "WorkspacePathError",
    "resolve_in_workspace",
    "resolve_optional_in_workspace",
]
