"""Built-in status and diagnostics tools."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

from kleio_status.config import ServiceConfig
from kleio_status.diagnostics import (
    DiagnosticStore,
    extract,
    translation_completed,
)
from kleio_status.explorer import (
    list_directory,
    sort_entries,
    status_label,
    status_view_entries,
    visible_entries,
)
from kleio_status.logging import AUDIT_KINDS, AuditKind
from kleio_status.notation import format_source, hover_at
from kleio_status.status import (
    RemoteServiceError,
    RemoteStatusClient,
    StatusCache,
    TransportUnavailableError,
    parse_status_code,
)
from kleio_status.tools.registry import ToolDispatchError, ToolHandler, ToolRegistry
from kleio_status.workspace import resolve_workspace_path, to_unix

T = TypeVar("T")
Runner = Callable[[Awaitable[T]], T]
AuditReader = Callable[[str | None, int, AuditKind | None], list[dict[str, object]]]

MAX_AUDIT_ENTRIES = 200


def register_builtin_tools(
    registry: ToolRegistry,
    config: ServiceConfig,
    cache: StatusCache,
    client: RemoteStatusClient,
    store: DiagnosticStore,
    run: Runner,
    read_audit_entries: AuditReader,
) -> None:
    """Register the editor-facing tool set."""
    registry.register("kleio.status", _status_handler(config, cache, store))
    registry.register("kleio.refresh_status", _refresh_handler(config, cache, run))
    registry.register("kleio.query_status", _query_handler(config, cache))
    registry.register("kleio.contains_status", _contains_handler(config, cache, client))
    registry.register("kleio.invalidate", _invalidate_handler(config, cache))
    registry.register("kleio.clear", _clear_handler(cache, store))
    registry.register("kleio.translate", _translate_handler(config, cache, client, run))
    registry.register("kleio.extract_diagnostics", _extract_handler(config))
    registry.register("kleio.format", _format_handler())
    registry.register("kleio.hover", _hover_handler())
    registry.register("kleio.load_diagnostics", _load_diagnostics_handler(config, store, run))
    registry.register("kleio.report_changed", _report_changed_handler(config, cache, store, run))
    registry.register("kleio.list_directory", _list_directory_handler(config, cache, client))
    registry.register("kleio.audit_log", _audit_log_handler(read_audit_entries))


def _resolve(config: ServiceConfig, arguments: dict[str, object], key: str) -> Path:
    value = arguments.get(key, "")
    if not isinstance(value, str):
        raise ToolDispatchError(code="INVALID_PARAMS", message=f"{key} must be a string.")
    if value.strip() in ("", "."):
        return config.workspace_root
    return resolve_workspace_path(config.workspace_root, value)


def _scope_key(path: Path) -> str:
    return to_unix(str(path))


def _required_string(arguments: dict[str, object], key: str, tool: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str):
        raise ToolDispatchError(code="INVALID_PARAMS", message=f"{tool} {key} must be a string.")
    return value


def _invalidate_containing(cache: StatusCache, path: Path) -> list[str]:
    """Invalidate every fetched scope that contains ``path``."""
    target = _scope_key(path)
    invalidated: list[str] = []
    for scope in sorted(cache.fetched_scopes):
        if target == scope or target.startswith(scope.rstrip("/") + "/"):
            cache.invalidate(scope)
            invalidated.append(scope)
    return invalidated


def _status_handler(
    config: ServiceConfig, cache: StatusCache, store: DiagnosticStore
) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        return {
            "workspace_root": str(config.workspace_root),
            "placeholder_message": cache.placeholder_message,
            "fetched_scopes": sorted(cache.fetched_scopes),
            "record_count": len(cache.records_snapshot()),
            "status_counts": cache.status_counts(),
            "documents_with_diagnostics": len(store.documents()),
            "effective_config": config.to_public_dict(),
        }

    return handler


def _refresh_handler(config: ServiceConfig, cache: StatusCache, run: Runner) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        scope = _scope_key(_resolve(config, arguments, "path"))
        force_value = arguments.get("force", False)
        if isinstance(force_value, bool) and force_value:
            cache.invalidate(scope)
        run(cache.refresh(scope))
        return {
            "scope": scope,
            "fetched": scope in cache.fetched_scopes,
            "placeholder_message": cache.placeholder_message,
            "record_count": len(cache.records_snapshot()),
        }

    return handler


def _query_handler(config: ServiceConfig, cache: StatusCache) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        path = _resolve(config, arguments, "path")
        status = cache.query(str(path))
        return {
            "path": path.relative_to(config.workspace_root).as_posix(),
            "status": status.value if status is not None else None,
            "label": status_label(status) if status is not None else None,
        }

    return handler


def _contains_handler(
    config: ServiceConfig, cache: StatusCache, client: RemoteStatusClient
) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        directory = _resolve(config, arguments, "directory")
        status = parse_status_code(arguments.get("status"))
        if status is None:
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="kleio.contains_status status must be one of E, V, W, T, P, I, Q.",
            )
        service_directory = client.service_path(str(directory))
        return {
            "directory": service_directory,
            "status": status.value,
            "contains": cache.contains_status(service_directory, status),
        }

    return handler


def _invalidate_handler(config: ServiceConfig, cache: StatusCache) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        scope = _scope_key(_resolve(config, arguments, "path"))
        cache.invalidate(scope)
        return {"scope": scope, "fetched": False}

    return handler


def _clear_handler(cache: StatusCache, store: DiagnosticStore) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        cache.clear()
        store.clear()
        return {"cleared": True, "placeholder_message": cache.placeholder_message}

    return handler


def _translate_handler(
    config: ServiceConfig, cache: StatusCache, client: RemoteStatusClient, run: Runner
) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        path = _resolve(config, arguments, "path")
        try:
            result = run(client.translate(str(path)))
        except TransportUnavailableError as error:
            raise ToolDispatchError(code=error.code, message=error.message) from error
        except RemoteServiceError as error:
            raise ToolDispatchError(code=error.code, message=error.message) from error
        return {
            "path": client.service_path(str(path)),
            "invalidated_scopes": _invalidate_containing(cache, path),
            "service_result": result,
        }

    return handler


def _extract_handler(config: ServiceConfig) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        report_text = _required_string(arguments, "report_text", "kleio.extract_diagnostics")
        source_text = _required_string(arguments, "source_text", "kleio.extract_diagnostics")
        diagnostics = extract(
            report_text, source_text, line_offset=config.diagnostics.line_offset
        )
        return {"diagnostics": [diagnostic.to_dict() for diagnostic in diagnostics]}

    return handler


def _format_handler() -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        source_text = _required_string(arguments, "source_text", "kleio.format")
        return format_source(source_text).to_dict()

    return handler


def _hover_handler() -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        source_text = _required_string(arguments, "source_text", "kleio.hover")
        line = arguments.get("line")
        column = arguments.get("column")
        if not isinstance(line, int) or isinstance(line, bool) or line < 1:
            raise ToolDispatchError(
                code="INVALID_PARAMS", message="kleio.hover line must be an integer >= 1."
            )
        if not isinstance(column, int) or isinstance(column, bool) or column < 0:
            raise ToolDispatchError(
                code="INVALID_PARAMS", message="kleio.hover column must be an integer >= 0."
            )
        return hover_at(source_text, line, column)

    return handler


def _load_diagnostics_handler(
    config: ServiceConfig, store: DiagnosticStore, run: Runner
) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        source = _resolve(config, arguments, "path")
        if not source.is_file():
            raise ToolDispatchError(
                code="NOT_FOUND",
                message="kleio.load_diagnostics path must name an existing source file.",
            )
        loaded = run(store.load_for_source(source))
        return {
            "path": source.relative_to(config.workspace_root).as_posix(),
            "report_found": loaded is not None,
            "diagnostics": [diagnostic.to_dict() for diagnostic in store.get(source)],
        }

    return handler


def _report_changed_handler(
    config: ServiceConfig, cache: StatusCache, store: DiagnosticStore, run: Runner
) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        report = _resolve(config, arguments, "path")
        not_completed: dict[str, object] = {
            "completed": False,
            "invalidated_scopes": [],
            "diagnostics": [],
        }
        if report.suffix != store.report_extension:
            return not_completed
        source_extension = config.explorer.source_extensions[0]
        for extension in config.explorer.source_extensions:
            if report.with_suffix(extension).is_file():
                source_extension = extension
                break
        if not translation_completed(report, source_extension=source_extension):
            return not_completed
        source = report.with_suffix(source_extension)
        invalidated = _invalidate_containing(cache, source)
        run(store.load_for_source(source))
        return {
            "completed": True,
            "source": source.relative_to(config.workspace_root).as_posix(),
            "invalidated_scopes": invalidated,
            "diagnostics": [diagnostic.to_dict() for diagnostic in store.get(source)],
        }

    return handler


def _list_directory_handler(
    config: ServiceConfig, cache: StatusCache, client: RemoteStatusClient
) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        relative = arguments.get("path", "")
        if not isinstance(relative, str):
            raise ToolDispatchError(
                code="INVALID_PARAMS", message="kleio.list_directory path must be a string."
            )
        status_value = arguments.get("status")
        entries = list_directory(config.workspace_root, relative)
        if status_value is None:
            shown = visible_entries(entries, show_all_files=config.explorer.show_all_files)
        else:
            status = parse_status_code(status_value)
            if status is None:
                raise ToolDispatchError(
                    code="INVALID_PARAMS",
                    message="kleio.list_directory status must be one of E, V, W, T, P, I, Q.",
                )
            shown = status_view_entries(cache, entries, status, client.service_path)
        output: list[dict[str, object]] = []
        for entry in sort_entries(shown):
            item = entry.to_dict(config.workspace_root)
            if not entry.is_directory:
                code = cache.query(str(entry.path))
                item["status"] = code.value if code is not None else None
                item["description"] = status_label(code) if code is not None else None
            output.append(item)
        return {
            "entries": output,
            "placeholder_message": None if output else cache.placeholder_message,
        }

    return handler


def _audit_log_handler(
    read_audit_entries: AuditReader,
) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        since_value = arguments.get("since")
        limit_value = arguments.get("limit", 50)

        since: str | None = since_value if isinstance(since_value, str) else None
        limit = limit_value if isinstance(limit_value, int) else 50
        if limit < 1:
            limit = 1
        if limit > MAX_AUDIT_ENTRIES:
            limit = MAX_AUDIT_ENTRIES

        kind_value = arguments.get("kind")
        kind: AuditKind | None = None
        if kind_value is not None:
            if kind_value not in AUDIT_KINDS:
                raise ToolDispatchError(
                    code="INVALID_PARAMS",
                    message=f"kind must be one of: {', '.join(AUDIT_KINDS)}.",
                )
            kind = kind_value  # type: ignore[assignment]

        return {"entries": read_audit_entries(since, limit, kind)}

    return handler
