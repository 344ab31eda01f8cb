"""Audit trail for editor requests and the service calls they trigger.

Two kinds of entry share one JSONL file. Tool entries are written by the
stdio server, one per editor request. RPC entries are written by the
JSON-RPC client, one per call to the Kleio translation service, and carry
a tool name of the form ``rpc.<method>``. Arguments are sanitized before
they are written: access tokens and document text only leave a presence
flag and a length behind.
"""

from __future__ import annotations

import json
from collections import deque
from collections.abc import Iterator
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

AuditKind = Literal["tool", "rpc"]
AUDIT_KINDS: tuple[AuditKind, ...] = ("tool", "rpc")
RPC_TOOL_PREFIX = "rpc."

# service paths, status codes and RPC flags are safe to keep verbatim
_VERBATIM_STRING_KEYS = frozenset(
    {"path", "directory", "scope", "status", "method", "recurse", "spawn"}
)


@dataclass(slots=True, frozen=True)
class AuditEvent:
    """One sanitized audit entry, either an editor request or a service call."""

    timestamp: str
    request_id: str
    tool: str
    ok: bool
    blocked: bool
    error_code: str | None
    metadata: dict[str, object]

    @property
    def kind(self) -> AuditKind:
        return event_kind(self.tool)


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def rpc_tool_name(method: str) -> str:
    """Name under which a service call to ``method`` is audited."""
    return f"{RPC_TOOL_PREFIX}{method}"


def event_kind(tool: object) -> AuditKind:
    if isinstance(tool, str) and tool.startswith(RPC_TOOL_PREFIX):
        return "rpc"
    return "tool"


def sanitize_arguments(arguments: dict[str, object]) -> dict[str, object]:
    """Reduce request or RPC arguments to what is safe to keep on disk."""
    sanitized: dict[str, object] = {}
    for key in sorted(arguments):
        sanitized.update(_sanitize_field(key, arguments[key]))
    return sanitized


def _sanitize_field(key: str, value: object) -> dict[str, object]:
    if isinstance(value, str):
        if key in _VERBATIM_STRING_KEYS:
            return {key: value}
        return {f"{key}_present": True, f"{key}_length": len(value)}
    if value is None or isinstance(value, (bool, int, float)):
        return {key: value}
    if isinstance(value, list):
        return {f"{key}_type": "list", f"{key}_length": len(value)}
    if isinstance(value, dict):
        return {f"{key}_type": "dict", f"{key}_keys": sorted(str(k) for k in value)}
    return {f"{key}_type": type(value).__name__}


class JsonlAuditLogger:
    """Appends audit entries to a JSONL file and reads back the newest ones."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, event: AuditEvent) -> None:
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(asdict(event), sort_keys=True))
            handle.write("\n")

    def read(
        self,
        since: str | None = None,
        limit: int = 50,
        kind: AuditKind | None = None,
    ) -> list[dict[str, object]]:
        """Return at most ``limit`` of the newest entries, oldest first.

        ``since`` drops entries stamped before it. ``kind`` keeps only editor
        requests (``"tool"``) or only service calls (``"rpc"``). Lines that
        are not valid JSON objects are skipped.
        """
        if limit < 1:
            return []
        window: deque[dict[str, object]] = deque(maxlen=limit)
        for record in self._iter_records():
            if since is not None:
                timestamp = record.get("timestamp")
                if not isinstance(timestamp, str) or timestamp < since:
                    continue
            if kind is not None and event_kind(record.get("tool")) != kind:
                continue
            window.append(record)
        return list(window)

    def _iter_records(self) -> Iterator[dict[str, object]]:
        if not self._path.exists():
            return
        with self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    record = json.loads(stripped)
                except json.JSONDecodeError:
                    continue
                if isinstance(record, dict):
                    yield record
