"""STDIO server entrypoint for editor hosts."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO, TypeVar

from kleio_status.config import CliOverrides, ServiceConfig, load_effective_config
from kleio_status.diagnostics import DiagnosticStore
from kleio_status.logging import AuditEvent, JsonlAuditLogger, sanitize_arguments, utc_timestamp
from kleio_status.status import (
    JsonRpcStatusClient,
    RemoteServiceError,
    RemoteStatusClient,
    TransportUnavailableError,
    get_status_cache,
    reset_status_cache,
)
from kleio_status.tools.builtin import register_builtin_tools
from kleio_status.tools.registry import ToolDispatchError, ToolRegistry
from kleio_status.workspace import PathBlockedError

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class Request:
    """Normalized incoming request."""

    request_id: str
    method: str
    params: dict[str, object]


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for server startup configuration."""
    parser = argparse.ArgumentParser(prog="kleio-status")
    parser.add_argument("--workspace-root", required=False, default=".")
    parser.add_argument("--data-dir", required=False, default=None)
    parser.add_argument("--server-url", required=False, default=None)
    parser.add_argument("--token", required=False, default=None)
    parser.add_argument("--mhk-home", required=False, default=None)
    parser.add_argument("--line-offset", type=int, required=False, default=None)
    parser.add_argument(
        "--show-all-files", choices=("true", "false"), required=False, default=None
    )
    return parser


class StdioServer:
    """Routes JSON-line requests to the status and diagnostics tools.

    The server owns one event loop; every request runs to completion on it
    before the next line is read.
    """

    def __init__(
        self,
        config: ServiceConfig,
        client: RemoteStatusClient | None = None,
    ) -> None:
        self._config = config
        self._audit_logger = JsonlAuditLogger(path=config.data_dir / "audit.jsonl")
        self._client: RemoteStatusClient = client or JsonRpcStatusClient(
            config.server, audit_logger=self._audit_logger
        )
        reset_status_cache()
        self._cache = get_status_cache(self._client)
        self._store = DiagnosticStore(
            report_extension=config.diagnostics.report_extension,
            line_offset=config.diagnostics.line_offset,
        )
        self._loop = asyncio.new_event_loop()
        self._registry = ToolRegistry()
        register_builtin_tools(
            self._registry,
            config=config,
            cache=self._cache,
            client=self._client,
            store=self._store,
            run=self.run,
            read_audit_entries=self._audit_logger.read,
        )
        self._fallback_request_counter = 0

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def run(self, awaitable: Awaitable[T]) -> T:
        """Drive a coroutine to completion on the server's event loop."""
        return self._loop.run_until_complete(awaitable)

    def close(self) -> None:
        if not self._loop.is_closed():
            self._loop.run_until_complete(self._loop.shutdown_default_executor())
            self._loop.close()

    def serve(self, in_stream: TextIO, out_stream: TextIO) -> None:
        """Process JSON-line requests from stdin and write JSON-line responses."""
        try:
            for raw_line in in_stream:
                line = raw_line.strip()
                if not line:
                    continue
                response = self.handle_json_line(line)
                out_stream.write(f"{json.dumps(response, sort_keys=True)}\n")
                out_stream.flush()
        finally:
            self.close()

    def handle_json_line(self, raw_line: str) -> dict[str, object]:
        """Handle a single JSON-line request."""
        try:
            payload = json.loads(raw_line)
        except json.JSONDecodeError:
            request_id = self.next_request_id()
            response = self.error_response(
                request_id=request_id,
                code="INVALID_JSON",
                message="Request must be valid JSON.",
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_json",
                arguments={"raw_line_length": len(raw_line)},
                response=response,
            )
            return response
        return self.handle_payload(payload)

    def handle_payload(self, payload: object) -> dict[str, object]:
        """Validate and dispatch a parsed payload."""
        parsed = self.parse_request(payload)
        if isinstance(parsed, dict):
            request_id_value = parsed.get("request_id")
            request_id = (
                request_id_value if isinstance(request_id_value, str) else self.next_request_id()
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_request",
                arguments={},
                response=parsed,
            )
            return parsed

        request = parsed
        tool_name: str
        arguments: dict[str, object]
        if request.method == "tools/call":
            tool_name_value = request.params.get("name")
            arguments_value = request.params.get("arguments", {})
            if not isinstance(tool_name_value, str) or not tool_name_value:
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.name must be a non-empty string.",
                )
            if not isinstance(arguments_value, dict):
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.arguments must be an object.",
                )
            tool_name = tool_name_value
            arguments = arguments_value
        else:
            tool_name = request.method
            arguments = request.params

        try:
            result = self._registry.dispatch(name=tool_name, arguments=arguments)
        except PathBlockedError as error:
            response = self.blocked_response(
                request_id=request.request_id,
                reason=error.reason,
                hint=error.hint,
            )
        except ToolDispatchError as error:
            response = self.error_response(
                request_id=request.request_id,
                code=error.code,
                message=error.message,
            )
        except (TransportUnavailableError, RemoteServiceError) as error:
            response = self.error_response(
                request_id=request.request_id,
                code=error.code,
                message=error.message,
            )
        except Exception:
            response = self.error_response(
                request_id=request.request_id,
                code="INTERNAL_ERROR",
                message="Unhandled server error while executing tool.",
            )
        else:
            response = self.success_response(request_id=request.request_id, result=result)

        self.log_request(
            request_id=request.request_id,
            tool_name=tool_name,
            arguments=arguments,
            response=response,
        )
        return response

    def parse_request(self, payload: object) -> Request | dict[str, object]:
        """Validate request payload and return normalized Request."""
        if not isinstance(payload, dict):
            return self.error_response(
                request_id=self.next_request_id(),
                code="INVALID_REQUEST",
                message="Request must be an object.",
            )

        request_id = self.extract_request_id(payload.get("id"))
        method = payload.get("method")
        params = payload.get("params", {})

        if not isinstance(method, str) or not method:
            return self.error_response(
                request_id=request_id,
                code="INVALID_REQUEST",
                message="Request method must be a non-empty string.",
            )
        if not isinstance(params, dict):
            return self.error_response(
                request_id=request_id,
                code="INVALID_PARAMS",
                message="Request params must be an object.",
            )

        return Request(request_id=request_id, method=method, params=params)

    def extract_request_id(self, request_id: object) -> str:
        """Extract request ID from payload or synthesize deterministic fallback."""
        if isinstance(request_id, str) and request_id:
            return request_id
        if isinstance(request_id, int):
            return str(request_id)
        return self.next_request_id()

    def next_request_id(self) -> str:
        """Generate deterministic fallback request IDs for invalid/missing IDs."""
        self._fallback_request_counter += 1
        return f"req-{self._fallback_request_counter:06d}"

    @staticmethod
    def success_response(request_id: str, result: dict[str, object]) -> dict[str, object]:
        """Build success envelope."""
        return {
            "request_id": request_id,
            "ok": True,
            "result": result,
            "warnings": [],
            "blocked": False,
        }

    @staticmethod
    def error_response(request_id: str, code: str, message: str) -> dict[str, object]:
        """Build explicit error envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {},
            "warnings": [],
            "blocked": False,
            "error": {"code": code, "message": message},
        }

    @staticmethod
    def blocked_response(request_id: str, reason: str, hint: str) -> dict[str, object]:
        """Build explicit blocked response envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {"reason": reason, "hint": hint},
            "warnings": [],
            "blocked": True,
            "error": {"code": "PATH_BLOCKED", "message": reason},
        }

    def log_request(
        self,
        request_id: str,
        tool_name: str,
        arguments: dict[str, object],
        response: dict[str, object],
    ) -> None:
        """Log one sanitized request event."""
        error_payload = response.get("error")
        error_code: str | None = None
        if isinstance(error_payload, dict):
            code_value = error_payload.get("code")
            if isinstance(code_value, str):
                error_code = code_value
        event = AuditEvent(
            timestamp=utc_timestamp(),
            request_id=request_id,
            tool=tool_name,
            ok=bool(response.get("ok", False)),
            blocked=bool(response.get("blocked", False)),
            error_code=error_code,
            metadata=sanitize_arguments(arguments),
        )
        self._audit_logger.append(event)


def create_server(
    workspace_root: str,
    data_dir: str | None = None,
    cli_overrides: CliOverrides | None = None,
    client: RemoteStatusClient | None = None,
) -> StdioServer:
    """Create a configured STDIO server instance."""
    overrides = cli_overrides or CliOverrides()
    if data_dir is not None and overrides.data_dir is None:
        overrides = CliOverrides(
            data_dir=Path(data_dir).resolve(),
            server_url=overrides.server_url,
            token=overrides.token,
            mhk_home=overrides.mhk_home,
            line_offset=overrides.line_offset,
            show_all_files=overrides.show_all_files,
        )
    config = load_effective_config(
        workspace_root=Path(workspace_root).resolve(), overrides=overrides
    )
    return StdioServer(config=config, client=client)


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the kleio-status server process."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    show_all_files: bool | None = None
    if args.show_all_files == "true":
        show_all_files = True
    if args.show_all_files == "false":
        show_all_files = False
    overrides = CliOverrides(
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        server_url=args.server_url,
        token=args.token,
        mhk_home=Path(args.mhk_home).resolve() if args.mhk_home is not None else None,
        line_offset=args.line_offset,
        show_all_files=show_all_files,
    )
    server = create_server(workspace_root=args.workspace_root, cli_overrides=overrides)
    server.serve(in_stream=sys.stdin, out_stream=sys.stdout)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
