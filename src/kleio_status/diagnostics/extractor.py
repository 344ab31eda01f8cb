"""Turn translation report text into diagnostics anchored on source lines."""

from __future__ import annotations

import re
from typing import Final

from kleio_status.diagnostics.models import Diagnostic, Severity

LINE_SPLIT_PATTERN: Final[re.Pattern[str]] = re.compile(r"\r?\n")
LINE_NUMBER_PATTERN: Final[re.Pattern[str]] = re.compile(r" line ([0-9]+)(?= )")

ERROR_PREFIX = "ERROR:"
WARNING_PREFIX = "WARNING:"

# Added to the reported line number before blank-line correction. Report
# revisions have disagreed by one line; zero matches the current service.
DEFAULT_LINE_OFFSET = 0


def split_lines(text: str) -> list[str]:
    """Split on LF or CRLF so both endings give the same line count."""
    return LINE_SPLIT_PATTERN.split(text)


def report_severity(report_line: str) -> Severity | None:
    """Return the severity of an error/warning record, or None for other lines."""
    if report_line.startswith(ERROR_PREFIX):
        return Severity.ERROR
    if report_line.startswith(WARNING_PREFIX):
        return Severity.WARNING
    return None


def extract_line_number(report_line: str) -> int | None:
    """Return the number of the last `` line <n> `` occurrence, if any."""
    last: re.Match[str] | None = None
    for match in LINE_NUMBER_PATTERN.finditer(report_line):
        last = match
    if last is None:
        return None
    return int(last.group(1))


def anchor_line(doc_lines: list[str], line: int) -> int:
    """Walk up from ``line`` past blank lines, never above line 1."""
    while line > 1 and not doc_lines[line - 1].strip():
        line -= 1
    return line


def extract(
    report_text: str,
    source_text: str,
    line_offset: int = DEFAULT_LINE_OFFSET,
) -> tuple[Diagnostic, ...]:
    """Parse a report against its source and return diagnostics in report order.

    Lines that are not ``ERROR:``/``WARNING:`` records, that carry no line
    number, or whose line falls outside the source are skipped. An empty
    result means the document has no known problems.
    """
    doc_lines = split_lines(source_text)
    diagnostics: list[Diagnostic] = []
    for report_line in split_lines(report_text):
        severity = report_severity(report_line)
        if severity is None:
            continue
        number = extract_line_number(report_line)
        if number is None:
            continue
        line = number + line_offset
        if line < 1 or line > len(doc_lines):
            continue
        line = anchor_line(doc_lines, line)
        text = doc_lines[line - 1]
        diagnostics.append(
            Diagnostic(
                severity=severity,
                line=line,
                column_start=len(text) - len(text.lstrip()),
                column_end=len(text),
                message=report_line,
            )
        )
    return tuple(diagnostics)
