from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path

import pytest
from conftest import FakeStatusClient

from kleio_status.server import StdioServer, create_server


@pytest.fixture
def server(tmp_path: Path) -> Iterator[StdioServer]:
    instance = create_server(workspace_root=str(tmp_path), client=FakeStatusClient())
    yield instance
    instance.close()


def test_malformed_json_returns_invalid_json_error(server: StdioServer) -> None:
    response = server.handle_json_line("{not-json")

    assert response["ok"] is False
    assert response["error"] == {
        "code": "INVALID_JSON",
        "message": "Request must be valid JSON.",
    }
    assert str(response["request_id"]).startswith("req-")


def test_unknown_tool_returns_explicit_error(server: StdioServer) -> None:
    response = server.handle_payload(
        {"id": "abc-123", "method": "kleio.unknown", "params": {"k": "v"}}
    )

    assert response["ok"] is False
    assert response["request_id"] == "abc-123"
    assert response["error"] == {
        "code": "UNKNOWN_TOOL",
        "message": "Unknown tool: kleio.unknown",
    }


def test_invalid_tools_call_params_returns_invalid_params_error(server: StdioServer) -> None:
    payload = {"id": 7, "method": "tools/call", "params": {"name": "kleio.status", "arguments": []}}

    response = server.handle_payload(json.loads(json.dumps(payload)))

    assert response["ok"] is False
    assert response["request_id"] == "7"
    assert response["error"] == {
        "code": "INVALID_PARAMS",
        "message": "tools/call params.arguments must be an object.",
    }


def test_missing_report_text_is_invalid_params(server: StdioServer) -> None:
    response = server.handle_payload(
        {"id": "req-x", "method": "kleio.extract_diagnostics", "params": {"source_text": "a"}}
    )

    assert response["ok"] is False
    assert response["error"] == {
        "code": "INVALID_PARAMS",
        "message": "kleio.extract_diagnostics report_text must be a string.",
    }


def test_blocked_response_shape_has_only_reason_and_hint(server: StdioServer) -> None:
    response = server.handle_payload(
        {
            "id": "req-block-shape",
            "method": "kleio.load_diagnostics",
            "params": {"path": "../secret.cli"},
        }
    )

    assert response["ok"] is False
    assert response["blocked"] is True
    assert response["error"]["code"] == "PATH_BLOCKED"
    assert set(response["result"].keys()) == {"reason", "hint"}
