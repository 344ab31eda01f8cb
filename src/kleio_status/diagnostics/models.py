"""Typed models for line-anchored diagnostics."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(slots=True, frozen=True)
class Diagnostic:
    """One report entry anchored to a source line (1-based)."""

    severity: Severity
    line: int
    column_start: int
    column_end: int
    message: str

    def to_dict(self) -> dict[str, object]:
        return {
            "severity": self.severity.value,
            "line": self.line,
            "column_start": self.column_start,
            "column_end": self.column_end,
            "message": self.message,
        }


@dataclass(slots=True, frozen=True)
class MissingReportFile(Exception):
    """No report exists yet for a source file; callers treat this as 'nothing known'."""

    source_path: str
    report_path: str
