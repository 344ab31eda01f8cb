from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from conftest import FakeStatusClient

from kleio_status.server import StdioServer, create_server
from kleio_status.status import StatusRecord, TransportUnavailableError


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "sources" / "parish").mkdir(parents=True)
    (tmp_path / "sources" / "clean").mkdir(parents=True)
    (tmp_path / "sources" / "a.cli").write_text("kleio$x\n  n$joao\n\nn$maria\n", encoding="utf-8")
    (tmp_path / "sources" / "b.cli").write_text("kleio$x\n", encoding="utf-8")
    (tmp_path / "sources" / "parish" / "c.cli").write_text("kleio$x\n", encoding="utf-8")
    return tmp_path.resolve()


@pytest.fixture
def client(
    workspace: Path, make_record: Callable[..., StatusRecord]
) -> FakeStatusClient:
    fake = FakeStatusClient(mhk_home=workspace)
    fake.responses[""] = [
        make_record("sources/a.cli", "E"),
        make_record("sources/b.cli", "V"),
        make_record("sources/parish/c.cli", "E"),
    ]
    return fake


@pytest.fixture
def server(workspace: Path, client: FakeStatusClient) -> Iterator[StdioServer]:
    instance = create_server(workspace_root=str(workspace), client=client)
    yield instance
    instance.close()


def _call(server: StdioServer, method: str, params: dict[str, object]) -> dict[str, object]:
    return server.handle_payload({"id": f"req-{method}", "method": method, "params": params})


def test_refresh_then_query_and_contains(
    server: StdioServer, client: FakeStatusClient, workspace: Path
) -> None:
    refreshed = _call(server, "kleio.refresh_status", {"path": ""})
    assert refreshed["ok"] is True
    assert refreshed["result"] == {
        "scope": workspace.as_posix(),
        "fetched": True,
        "placeholder_message": "0 files",
        "record_count": 3,
    }

    queried = _call(server, "kleio.query_status", {"path": "sources/a.cli"})
    assert queried["result"] == {"path": "sources/a.cli", "status": "E", "label": "With errors"}

    contains = _call(server, "kleio.contains_status", {"directory": "sources", "status": "E"})
    assert contains["result"] == {"directory": "sources", "status": "E", "contains": True}
    clean = _call(server, "kleio.contains_status", {"directory": "sources/clean", "status": "E"})
    assert clean["result"]["contains"] is False

    _call(server, "kleio.refresh_status", {"path": ""})
    assert len(client.calls) == 1
    _call(server, "kleio.refresh_status", {"path": "", "force": True})
    assert len(client.calls) == 2


def test_contains_status_rejects_unknown_code(server: StdioServer) -> None:
    response = _call(server, "kleio.contains_status", {"directory": "sources", "status": "Z"})

    assert response["ok"] is False
    assert response["error"]["code"] == "INVALID_PARAMS"


def test_list_directory_status_view(server: StdioServer) -> None:
    _call(server, "kleio.refresh_status", {"path": ""})

    response = _call(server, "kleio.list_directory", {"path": "sources", "status": "E"})

    assert response["ok"] is True
    assert response["result"]["entries"] == [
        {"name": "parish", "path": "sources/parish", "type": "directory"},
        {
            "name": "a.cli",
            "path": "sources/a.cli",
            "type": "file",
            "status": "E",
            "description": "With errors",
        },
    ]
    assert response["result"]["placeholder_message"] is None


def test_empty_listing_reports_placeholder(server: StdioServer, client: FakeStatusClient) -> None:
    client.error = TransportUnavailableError(message="Connection refused by Kleio Server.")
    _call(server, "kleio.refresh_status", {"path": ""})

    response = _call(server, "kleio.list_directory", {"path": "sources", "status": "W"})

    assert response["result"]["entries"] == []
    assert response["result"]["placeholder_message"] == "Connection refused by Kleio Server."


def test_translate_invalidates_containing_scope(
    server: StdioServer, client: FakeStatusClient, workspace: Path
) -> None:
    _call(server, "kleio.refresh_status", {"path": ""})

    response = _call(server, "kleio.translate", {"path": "sources/a.cli"})

    assert response["ok"] is True
    assert response["result"] == {
        "path": "sources/a.cli",
        "invalidated_scopes": [workspace.as_posix()],
        "service_result": {"queued": 1},
    }
    assert client.translations == ["sources/a.cli"]
    status = _call(server, "kleio.status", {})
    assert status["result"]["fetched_scopes"] == []


def test_translate_reports_unreachable_service(
    server: StdioServer, client: FakeStatusClient
) -> None:
    client.error = TransportUnavailableError(message="Connection refused by Kleio Server.")

    response = _call(server, "kleio.translate", {"path": "sources/a.cli"})

    assert response["ok"] is False
    assert response["error"] == {
        "code": "TRANSPORT_UNAVAILABLE",
        "message": "Connection refused by Kleio Server.",
    }


def test_report_changed_reloads_diagnostics(server: StdioServer, workspace: Path) -> None:
    _call(server, "kleio.refresh_status", {"path": ""})
    source = workspace / "sources" / "a.cli"
    report = workspace / "sources" / "a.rpt"
    report.write_text("ERROR: unknown group at line 3 in n\n", encoding="utf-8")
    os.utime(source, ns=(1_000_000_000, 1_000_000_000))
    os.utime(report, ns=(2_000_000_000, 2_000_000_000))

    response = _call(server, "kleio.report_changed", {"path": "sources/a.rpt"})

    assert response["ok"] is True
    result = response["result"]
    assert result["completed"] is True
    assert result["source"] == "sources/a.cli"
    assert result["invalidated_scopes"] == [workspace.as_posix()]
    assert result["diagnostics"] == [
        {
            "severity": "error",
            "line": 2,
            "column_start": 2,
            "column_end": len("  n$joao"),
            "message": "ERROR: unknown group at line 3 in n",
        }
    ]


def test_stale_report_is_not_a_completed_translation(
    server: StdioServer, workspace: Path
) -> None:
    source = workspace / "sources" / "a.cli"
    report = workspace / "sources" / "a.rpt"
    report.write_text("ERROR: x at line 1 y\n", encoding="utf-8")
    os.utime(report, ns=(1_000_000_000, 1_000_000_000))
    os.utime(source, ns=(2_000_000_000, 2_000_000_000))

    stale = _call(server, "kleio.report_changed", {"path": "sources/a.rpt"})
    other = _call(server, "kleio.report_changed", {"path": "sources/a.cli"})

    assert stale["result"]["completed"] is False
    assert other["result"]["completed"] is False


def test_load_diagnostics_and_clear(server: StdioServer, workspace: Path) -> None:
    (workspace / "sources" / "b.rpt").write_text("WARNING: w at line 1 x\n", encoding="utf-8")

    loaded = _call(server, "kleio.load_diagnostics", {"path": "sources/b.cli"})
    assert loaded["result"]["report_found"] is True
    assert [d["severity"] for d in loaded["result"]["diagnostics"]] == ["warning"]
    assert _call(server, "kleio.status", {})["result"]["documents_with_diagnostics"] == 1

    no_report = _call(server, "kleio.load_diagnostics", {"path": "sources/parish/c.cli"})
    assert no_report["result"] == {
        "path": "sources/parish/c.cli",
        "report_found": False,
        "diagnostics": [],
    }

    missing = _call(server, "kleio.load_diagnostics", {"path": "sources/nope.cli"})
    assert missing["error"]["code"] == "NOT_FOUND"

    cleared = _call(server, "kleio.clear", {})
    assert cleared["result"] == {"cleared": True, "placeholder_message": "0 files"}
    status = _call(server, "kleio.status", {})["result"]
    assert status["documents_with_diagnostics"] == 0
    assert status["record_count"] == 0


def test_paths_outside_workspace_are_blocked(server: StdioServer) -> None:
    response = _call(server, "kleio.query_status", {"path": "../outside.cli"})

    assert response["ok"] is False
    assert response["blocked"] is True
    assert response["error"] == {"code": "PATH_BLOCKED", "message": "Path traversal is blocked."}


def test_audit_log_lists_tool_calls(server: StdioServer) -> None:
    _call(server, "kleio.refresh_status", {"path": ""})
    _call(server, "kleio.query_status", {"path": "sources/a.cli"})

    response = _call(server, "kleio.audit_log", {"limit": 10})

    tools = [entry["tool"] for entry in response["result"]["entries"]]
    assert tools == ["kleio.refresh_status", "kleio.query_status"]


def test_audit_log_filters_by_kind(server: StdioServer) -> None:
    _call(server, "kleio.status", {})

    tools_only = _call(server, "kleio.audit_log", {"kind": "tool"})
    rpc_only = _call(server, "kleio.audit_log", {"kind": "rpc"})
    rejected = _call(server, "kleio.audit_log", {"kind": "everything"})

    assert [entry["tool"] for entry in tools_only["result"]["entries"]] == [
        "kleio.status",
        "kleio.audit_log",
    ]
    assert rpc_only["result"]["entries"] == []
    assert rejected["ok"] is False
    assert rejected["error"]["code"] == "INVALID_PARAMS"


def test_format_and_hover_tools(server: StdioServer) -> None:
    formatted = _call(server, "kleio.format", {"source_text": "kleio$x\nfonte$y\n"})
    hover = _call(server, "kleio.hover", {"source_text": "kleio$x\n", "line": 1, "column": 2})
    bad_line = _call(server, "kleio.hover", {"source_text": "kleio$x\n", "line": 0, "column": 2})

    assert formatted["result"] == {"text": "kleio$x\n   fonte$y\n", "changed_lines": [2]}
    assert hover["result"]["word"] == "kleio"
    assert hover["result"]["contents"][0] == "*kleio*"
    assert bad_line["ok"] is False
    assert bad_line["error"]["code"] == "INVALID_PARAMS"
