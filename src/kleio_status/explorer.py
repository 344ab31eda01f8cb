"""Directory listings for file tree views, filtered by translation status."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from kleio_status.status import STATUS_LABELS, StatusCache, StatusCode, parse_status_code
from kleio_status.workspace import is_kleio_file, resolve_workspace_path


@dataclass(slots=True, frozen=True)
class TreeEntry:
    """One child of a listed directory."""

    name: str
    path: Path
    is_directory: bool

    def to_dict(self, workspace_root: Path) -> dict[str, object]:
        return {
            "name": self.name,
            "path": self.path.relative_to(workspace_root).as_posix(),
            "type": "directory" if self.is_directory else "file",
        }


def status_label(code: StatusCode | str) -> str | None:
    """Return the human label for a status code, or None for unknown codes."""
    parsed = parse_status_code(code)
    if parsed is None:
        return None
    return STATUS_LABELS[parsed]


def sort_entries(entries: Iterable[TreeEntry]) -> list[TreeEntry]:
    """Directories first, then alphabetical."""
    return sorted(entries, key=lambda entry: (not entry.is_directory, entry.name))


def visible_entries(entries: Iterable[TreeEntry], show_all_files: bool) -> list[TreeEntry]:
    """Hide dotfiles and, unless ``show_all_files``, every non-Kleio file."""
    output: list[TreeEntry] = []
    for entry in entries:
        if entry.name.startswith("."):
            continue
        if entry.is_directory or show_all_files or is_kleio_file(entry.name):
            output.append(entry)
    return output


def status_view_entries(
    cache: StatusCache,
    entries: Iterable[TreeEntry],
    status: StatusCode | str,
    service_path: Callable[[str], str],
) -> list[TreeEntry]:
    """Keep Kleio files and the directories that hold a file with ``status``."""
    output: list[TreeEntry] = []
    for entry in entries:
        if entry.name.startswith("."):
            continue
        if entry.is_directory:
            if cache.contains_status(service_path(str(entry.path)), status):
                output.append(entry)
            continue
        if is_kleio_file(entry.name) and cache.filter_by_status(
            str(entry.path), is_directory=False, status=status
        ):
            output.append(entry)
    return output


def list_directory(workspace_root: Path, relative: str) -> list[TreeEntry]:
    """Read the direct children of a workspace directory."""
    directory = (
        workspace_root.resolve()
        if relative in ("", ".")
        else resolve_workspace_path(workspace_root, relative)
    )
    if not directory.is_dir():
        return []
    entries: list[TreeEntry] = []
    with os.scandir(directory) as scanned:
        for item in scanned:
            entries.append(
                TreeEntry(
                    name=item.name,
                    path=directory / item.name,
                    is_directory=item.is_dir(follow_symlinks=False),
                )
            )
    return entries
