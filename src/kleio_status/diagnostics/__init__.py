"""Report parsing and per-document diagnostic sets."""

from .extractor import (
    DEFAULT_LINE_OFFSET,
    anchor_line,
    extract,
    extract_line_number,
    report_severity,
    split_lines,
)
from .models import Diagnostic, MissingReportFile, Severity
from .store import DiagnosticStore, report_path_for, translation_completed

__all__ = [
    "DEFAULT_LINE_OFFSET",
    "Diagnostic",
    "DiagnosticStore",
    "MissingReportFile",
    "Severity",
    "anchor_line",
    "extract",
    "extract_line_number",
    "report_path_for",
    "report_severity",
    "split_lines",
    "translation_completed",
]
