"""Ancestor-closed directory sets per status code."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from kleio_status.status.models import StatusCode, StatusRecord
from kleio_status.workspace.paths import normalize_service_path

ROOT_DIRECTORY = "/"


def directory_key(directory: str) -> str:
    """Return the canonical ``/a/b`` spelling used as a set member."""
    normalized = normalize_service_path(directory)
    if not normalized:
        return ROOT_DIRECTORY
    return f"/{normalized}"


def ancestor_directories(directory: str) -> Iterator[str]:
    """Yield ``directory`` and each of its parents up to and including the root."""
    parts = normalize_service_path(directory).split("/")
    if parts == [""]:
        parts = []
    while parts:
        yield f"/{'/'.join(parts)}"
        parts.pop()
    yield ROOT_DIRECTORY


def derive_directory_sets(records: Iterable[StatusRecord]) -> dict[StatusCode, frozenset[str]]:
    """Map each status to every directory that holds, at any depth, a file in that status.

    Always built from scratch; callers swap the result in as a whole.
    """
    building: dict[StatusCode, set[str]] = {}
    for record in records:
        directories = building.setdefault(record.status, set())
        for directory in ancestor_directories(record.directory):
            if directory in directories:
                # parents of a known directory are already present
                break
            directories.add(directory)
    return {status: frozenset(directories) for status, directories in building.items()}
