"""Per-document diagnostic sets loaded from report files on disk."""

from __future__ import annotations

import asyncio
import itertools
from pathlib import Path

from kleio_status.diagnostics.extractor import DEFAULT_LINE_OFFSET, extract
from kleio_status.diagnostics.models import Diagnostic, MissingReportFile

DEFAULT_REPORT_EXTENSION = ".rpt"
DEFAULT_SOURCE_EXTENSION = ".cli"


def report_path_for(source_path: Path, report_extension: str = DEFAULT_REPORT_EXTENSION) -> Path:
    """Return the report file that sits next to ``source_path``."""
    return source_path.with_suffix(report_extension)


def translation_completed(
    report_path: Path, source_extension: str = DEFAULT_SOURCE_EXTENSION
) -> bool:
    """Return True when the report is at least as new as its source file."""
    source_path = report_path.with_suffix(source_extension)
    if not report_path.is_file() or not source_path.is_file():
        return False
    return report_path.stat().st_mtime_ns >= source_path.stat().st_mtime_ns


class DiagnosticStore:
    """Holds the current diagnostics of each document and serializes reloads.

    Loads for one document run one at a time, and a load whose input was
    superseded by a later request never publishes its result.
    """

    def __init__(
        self,
        report_extension: str = DEFAULT_REPORT_EXTENSION,
        line_offset: int = DEFAULT_LINE_OFFSET,
    ) -> None:
        self._report_extension = report_extension
        self._line_offset = line_offset
        self._diagnostics: dict[str, tuple[Diagnostic, ...]] = {}
        self._tickets = itertools.count(1)
        self._locks: dict[str, asyncio.Lock] = {}
        # newest load ticket per document; absent once that load is done
        self._generations: dict[str, int] = {}

    @property
    def report_extension(self) -> str:
        return self._report_extension

    def get(self, source_path: Path | str) -> tuple[Diagnostic, ...]:
        return self._diagnostics.get(str(source_path), ())

    def documents(self) -> tuple[str, ...]:
        return tuple(sorted(self._diagnostics.keys()))

    def publish(self, source_path: Path | str, diagnostics: tuple[Diagnostic, ...]) -> None:
        """Replace the document's diagnostics; an empty set clears it."""
        key = str(source_path)
        if diagnostics:
            self._diagnostics[key] = diagnostics
        else:
            self._diagnostics.pop(key, None)

    def clear(self, source_path: Path | str | None = None) -> None:
        """Forget one document, or all of them; loads still running are not published."""
        if source_path is None:
            self._diagnostics.clear()
            self._generations.clear()
            return
        key = str(source_path)
        self._diagnostics.pop(key, None)
        self._generations.pop(key, None)

    async def load_for_source(self, source_path: Path) -> tuple[Diagnostic, ...] | None:
        """Re-extract diagnostics for ``source_path`` from its report file.

        Returns the published diagnostics, or None when there is no report
        yet or a newer load for the same document superseded this one. In
        both cases the stored set is left as it was.
        """
        key = str(source_path)
        ticket = next(self._tickets)
        self._generations[key] = ticket
        lock = self._locks.setdefault(key, asyncio.Lock())
        try:
            async with lock:
                if self._generations.get(key) != ticket:
                    return None
                try:
                    report_text, source_text = await asyncio.to_thread(
                        self._read_pair, source_path
                    )
                except MissingReportFile:
                    return None
                diagnostics = extract(report_text, source_text, line_offset=self._line_offset)
                if self._generations.get(key) != ticket:
                    return None
                self.publish(key, diagnostics)
                return diagnostics
        finally:
            self._release(key, ticket)

    def _release(self, key: str, ticket: int) -> None:
        latest = self._generations.get(key)
        if latest is None or latest == ticket:
            self._generations.pop(key, None)
            self._locks.pop(key, None)

    def _read_pair(self, source_path: Path) -> tuple[str, str]:
        report_path = report_path_for(source_path, self._report_extension)
        if not report_path.is_file():
            raise MissingReportFile(source_path=str(source_path), report_path=str(report_path))
        report_text = report_path.read_text(encoding="utf-8", errors="replace")
        source_text = source_path.read_text(encoding="utf-8", errors="replace")
        return report_text, source_text
