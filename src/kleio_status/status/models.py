"""Typed models for translation status records."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from kleio_status.status.errors import RemoteServiceError
from kleio_status.workspace.paths import normalize_service_path, to_unix


class StatusCode(StrEnum):
    """Translation status codes reported by the service."""

    ERRORS = "E"
    READY_FOR_IMPORT = "V"
    WARNINGS = "W"
    NEEDS_TRANSLATION = "T"
    TRANSLATING = "P"
    NEEDS_IMPORT = "I"
    QUEUED = "Q"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS: dict[StatusCode, str] = {
    StatusCode.ERRORS: "With errors",
    StatusCode.READY_FOR_IMPORT: "Ready for import",
    StatusCode.WARNINGS: "With warnings",
    StatusCode.NEEDS_TRANSLATION: "Needs translation",
    StatusCode.TRANSLATING: "Translating",
    StatusCode.NEEDS_IMPORT: "Needs import",
    StatusCode.QUEUED: "Queued",
}


def parse_status_code(value: object) -> StatusCode | None:
    """Return the status code for ``value`` or None when it is not a known code."""
    if isinstance(value, StatusCode):
        return value
    if not isinstance(value, str):
        return None
    try:
        return StatusCode(value)
    except ValueError:
        return None


@dataclass(slots=True, frozen=True)
class StatusRecord:
    """One source file's translation state as last reported by the service."""

    source_url: str
    directory: str
    path: str
    status: StatusCode

    @classmethod
    def from_payload(cls, payload: object) -> StatusRecord:
        """Build a record from one ``translations_get`` result item."""
        if not isinstance(payload, dict):
            raise RemoteServiceError(message="Status record must be an object.")
        source_url = payload.get("source_url")
        directory = payload.get("directory")
        path = payload.get("path")
        if not isinstance(source_url, str) or not source_url:
            raise RemoteServiceError(message="Status record source_url must be a non-empty string.")
        if not isinstance(directory, str):
            raise RemoteServiceError(message="Status record directory must be a string.")
        if not isinstance(path, str) or not path:
            raise RemoteServiceError(message="Status record path must be a non-empty string.")
        status = parse_status_code(payload.get("status"))
        if status is None:
            raise RemoteServiceError(
                message=f"Status record has unknown status: {payload.get('status')!r}."
            )
        return cls(
            source_url=source_url,
            directory=normalize_service_path(directory),
            path=to_unix(path),
            status=status,
        )

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-ready mapping."""
        return {
            "source_url": self.source_url,
            "directory": self.directory,
            "path": self.path,
            "status": self.status.value,
        }
