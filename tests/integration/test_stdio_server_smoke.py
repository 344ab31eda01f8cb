from __future__ import annotations

import io
import json
from pathlib import Path

from conftest import FakeStatusClient

from kleio_status.server import create_server


def test_stdio_server_routes_multiple_requests(tmp_path: Path) -> None:
    server = create_server(workspace_root=str(tmp_path), client=FakeStatusClient())
    in_stream = io.StringIO(
        "\n".join(
            [
                json.dumps({"id": "req-1", "method": "kleio.status", "params": {}}),
                "",
                json.dumps(
                    {
                        "id": "req-2",
                        "method": "tools/call",
                        "params": {
                            "name": "kleio.extract_diagnostics",
                            "arguments": {
                                "report_text": "WARNING: odd at line 1 here",
                                "source_text": "  n$maria/f",
                            },
                        },
                    }
                ),
            ]
        )
        + "\n"
    )
    out_stream = io.StringIO()

    server.serve(in_stream=in_stream, out_stream=out_stream)
    lines = [line for line in out_stream.getvalue().splitlines() if line]

    assert len(lines) == 2
    first = json.loads(lines[0])
    second = json.loads(lines[1])

    assert first["request_id"] == "req-1"
    assert first["ok"] is True
    assert first["result"]["placeholder_message"] == "0 files"

    assert second["request_id"] == "req-2"
    assert second["ok"] is True
    assert second["result"]["diagnostics"] == [
        {
            "severity": "warning",
            "line": 1,
            "column_start": 2,
            "column_end": 11,
            "message": "WARNING: odd at line 1 here",
        }
    ]
