"""JSON-RPC access to the Kleio translation service."""

from __future__ import annotations

import asyncio
import http.client
import json
import urllib.error
import urllib.request
from typing import Protocol

from kleio_status.config import ServerSettings
from kleio_status.logging import (
    AuditEvent,
    JsonlAuditLogger,
    rpc_tool_name,
    sanitize_arguments,
    utc_timestamp,
)
from kleio_status.status.errors import RemoteServiceError, TransportUnavailableError
from kleio_status.status.models import StatusCode, StatusRecord
from kleio_status.workspace.paths import relative_service_path

RPC_PATH = "/json/"
DEFAULT_TIMEOUT_SECONDS = 30.0


class RemoteStatusClient(Protocol):
    """What the status cache and tools need from the translation service."""

    def service_path(self, path: str) -> str:
        """Map a local path to the service's relative form."""
        ...

    async def get(self, path: str, status: StatusCode | None = None) -> list[StatusRecord]:
        """Return status records for ``path``, recursively, optionally filtered."""
        ...

    async def translate(self, path: str) -> dict[str, object]:
        """Ask the service to translate a file or directory."""
        ...


class JsonRpcStatusClient:
    """JSON-RPC 2.0 over HTTP POST; blocking I/O runs in a worker thread."""

    def __init__(
        self,
        server: ServerSettings,
        audit_logger: JsonlAuditLogger | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._server = server
        self._endpoint = server.url.rstrip("/") + RPC_PATH
        self._audit_logger = audit_logger
        self._timeout = timeout
        self._request_counter = 0

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def service_path(self, path: str) -> str:
        """Map a local or workspace path to the service's relative form."""
        return relative_service_path(
            path,
            mhk_home=str(self._server.mhk_home),
            kleio_home=self._server.kleio_home,
        )

    async def get(self, path: str, status: StatusCode | None = None) -> list[StatusRecord]:
        params: dict[str, object] = {
            "path": self.service_path(path),
            "recurse": "yes",
            "token": self._server.token,
        }
        if status is not None:
            params["status"] = status.value
        result = await self._call("translations_get", params)
        if not isinstance(result, list):
            raise RemoteServiceError(message="translations_get result must be a list.")
        return [StatusRecord.from_payload(item) for item in result]

    async def translate(self, path: str) -> dict[str, object]:
        params: dict[str, object] = {
            "path": self.service_path(path),
            "spawn": "no",
            "token": self._server.token,
        }
        result = await self._call("translations_translate", params)
        if isinstance(result, dict):
            return result
        return {"result": result}

    async def _call(self, method: str, params: dict[str, object]) -> object:
        self._request_counter += 1
        request_id = self._request_counter
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": request_id}
        try:
            body = await asyncio.to_thread(self._post, payload)
            result = self._unwrap(body, request_id)
        except (TransportUnavailableError, RemoteServiceError) as error:
            self._log(request_id, method, params, ok=False, error_code=error.code)
            raise
        self._log(request_id, method, params, ok=True, error_code=None)
        return result

    def _post(self, payload: dict[str, object]) -> bytes:
        request = urllib.request.Request(
            self._endpoint,
            data=json.dumps(payload).encode("utf-8"),
            headers={"content-type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                if response.status != 200:
                    raise RemoteServiceError(message=f"HTTP {response.status} from Kleio Server.")
                return response.read()
        except urllib.error.HTTPError as error:
            raise RemoteServiceError(message=f"HTTP {error.code} from Kleio Server.") from error
        except urllib.error.URLError as error:
            raise TransportUnavailableError(message=_transport_message(error.reason)) from error
        except (ConnectionError, TimeoutError) as error:
            raise TransportUnavailableError(message=_transport_message(error)) from error
        except http.client.HTTPException as error:
            raise RemoteServiceError(
                message=f"Kleio Server sent a malformed HTTP response: {type(error).__name__}."
            ) from error

    @staticmethod
    def _unwrap(body: bytes, request_id: int) -> object:
        try:
            parsed = json.loads(body.decode("utf-8", errors="replace"))
        except json.JSONDecodeError as error:
            raise RemoteServiceError(message="Kleio Server response is not valid JSON.") from error
        if not isinstance(parsed, dict):
            raise RemoteServiceError(message="Kleio Server response must be an object.")
        error_payload = parsed.get("error")
        if error_payload is not None:
            message = "Kleio Server returned an error."
            if isinstance(error_payload, dict) and isinstance(error_payload.get("message"), str):
                message = f"Kleio Server returned an error: {error_payload['message']}"
            raise RemoteServiceError(message=message)
        response_id = parsed.get("id")
        if response_id is not None and response_id != request_id:
            raise RemoteServiceError(
                message=f"Kleio Server answered request {response_id!r}, expected {request_id}."
            )
        return parsed.get("result")

    def _log(
        self,
        request_id: int,
        method: str,
        params: dict[str, object],
        ok: bool,
        error_code: str | None,
    ) -> None:
        if self._audit_logger is None:
            return
        self._audit_logger.append(
            AuditEvent(
                timestamp=utc_timestamp(),
                request_id=f"rpc-{request_id:06d}",
                tool=rpc_tool_name(method),
                ok=ok,
                blocked=False,
                error_code=error_code,
                metadata=sanitize_arguments(params),
            )
        )


def _transport_message(reason: object) -> str:
    if isinstance(reason, ConnectionRefusedError):
        return "Connection refused by Kleio Server."
    return f"Kleio Server is unreachable: {reason}"
