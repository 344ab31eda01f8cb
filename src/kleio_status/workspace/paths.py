"""Path normalization shared by the status cache, diagnostics and explorer."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final

WINDOWS_ABSOLUTE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:[\\/]")
KLEIO_FILE_PATTERN: Final[re.Pattern[str]] = re.compile(r"(\.cli|\.CLI|\.kleio|\.KLEIO)$")


class PathBlockedError(Exception):
    """Raised when a requested path escapes the workspace root."""

    def __init__(self, reason: str, hint: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint


def to_unix(path: str) -> str:
    """Return ``path`` with forward slashes only."""
    return path.replace("\\", "/")


def normalize_service_path(path: str) -> str:
    """Normalize to the service convention: relative, forward slashes, no edge slashes."""
    parts = [part for part in to_unix(path).split("/") if part not in ("", ".")]
    return "/".join(parts)


def relative_service_path(path: str, mhk_home: str = "", kleio_home: str = "") -> str:
    """Map a local path to the path the translation service expects.

    The mhk-home prefix is stripped and the service-side ``kleio_home`` is
    prepended, so ``/data/mhk/sources/a.cli`` with mhk home ``/data/mhk``
    becomes ``sources/a.cli``.
    """
    unix_path = to_unix(path)
    home = to_unix(mhk_home).rstrip("/")
    if home and (unix_path == home or unix_path.startswith(f"{home}/")):
        unix_path = unix_path[len(home) :]
    if kleio_home:
        unix_path = f"{to_unix(kleio_home).rstrip('/')}/{unix_path.lstrip('/')}"
    return normalize_service_path(unix_path)


def is_kleio_file(name: str) -> bool:
    """Return True for Kleio source file names."""
    return KLEIO_FILE_PATTERN.search(name) is not None


def _normalize_relative_input(candidate: str) -> tuple[str, bool]:
    """Normalize path separators and detect absolute-style inputs."""
    normalized = to_unix(candidate)
    if normalized.startswith("/"):
        return normalized, True
    if WINDOWS_ABSOLUTE_PATTERN.match(normalized):
        return normalized, True
    return normalized, False


def resolve_workspace_path(workspace_root: Path, candidate: str) -> Path:
    """Resolve a candidate path against the workspace root with sandbox enforcement."""
    root = workspace_root.resolve()
    normalized, is_absolute_style = _normalize_relative_input(candidate)

    if not normalized:
        raise PathBlockedError(
            reason="Path is empty.",
            hint="Provide a workspace-relative path such as 'sources/example.cli'.",
        )

    if is_absolute_style:
        resolved_absolute = Path(normalized).resolve(strict=False)
        if not resolved_absolute.is_relative_to(root):
            raise PathBlockedError(
                reason="Absolute path is outside the workspace root.",
                hint="Use a path located under the configured workspace root.",
            )
        return resolved_absolute

    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if any(part == ".." for part in parts):
        raise PathBlockedError(
            reason="Path traversal is blocked.",
            hint="Remove '..' segments and use a workspace-relative path.",
        )

    resolved = root.joinpath(*parts).resolve(strict=False)
    if not resolved.is_relative_to(root):
        raise PathBlockedError(
            reason="Resolved path escapes the workspace root.",
            hint="Use a path located under the configured workspace root.",
        )
    return resolved
