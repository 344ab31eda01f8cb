from __future__ import annotations

from pathlib import Path

import pytest
from conftest import FakeStatusClient

from kleio_status.server import create_server
from kleio_status.tools import ToolDispatchError, ToolRegistry


def test_registry_keeps_deterministic_registration_order() -> None:
    registry = ToolRegistry()
    registry.register("kleio.alpha", lambda _: {"tool": "alpha"})
    registry.register("kleio.beta", lambda _: {"tool": "beta"})

    assert registry.names() == ("kleio.alpha", "kleio.beta")


def test_registry_dispatches_registered_tool() -> None:
    registry = ToolRegistry()
    registry.register("kleio.echo", lambda payload: {"payload": payload})

    result = registry.dispatch("kleio.echo", {"k": "v"})

    assert result == {"payload": {"k": "v"}}


def test_registry_refuses_duplicate_names() -> None:
    registry = ToolRegistry()
    registry.register("kleio.echo", lambda payload: payload)

    with pytest.raises(ValueError, match="kleio.echo"):
        registry.register("kleio.echo", lambda _: {})

    assert "kleio.echo" in registry
    assert registry.names() == ("kleio.echo",)


def test_registry_rejects_unknown_tool() -> None:
    with pytest.raises(ToolDispatchError) as error:
        ToolRegistry().dispatch("kleio.missing", {})

    assert error.value.code == "UNKNOWN_TOOL"


def test_server_registers_every_builtin_tool(tmp_path: Path) -> None:
    server = create_server(workspace_root=str(tmp_path), client=FakeStatusClient())

    assert server.registry.names() == (
        "kleio.status",
        "kleio.refresh_status",
        "kleio.query_status",
        "kleio.contains_status",
        "kleio.invalidate",
        "kleio.clear",
        "kleio.translate",
        "kleio.extract_diagnostics",
        "kleio.format",
        "kleio.hover",
        "kleio.load_diagnostics",
        "kleio.report_changed",
        "kleio.list_directory",
        "kleio.audit_log",
    )
    server.close()
