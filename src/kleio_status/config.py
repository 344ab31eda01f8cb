"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from kleio_status.workspace import HomeLocation, discover_home, load_properties

CONFIG_FILE_NAME = "kleio_status.toml"
DEFAULT_SERVER_URL = "http://localhost:8088"
DEFAULT_REPORT_EXTENSION = ".rpt"
DEFAULT_SOURCE_EXTENSIONS = (".cli", ".kleio")
MAX_LINE_OFFSET = 5


@dataclass(slots=True, frozen=True)
class ServerSettings:
    """Where the translation service lives and how to authenticate."""

    url: str
    token: str | None
    mhk_home: Path
    kleio_home: str


@dataclass(slots=True, frozen=True)
class DiagnosticsSettings:
    """Report file lookup and line anchoring settings."""

    report_extension: str
    line_offset: int


@dataclass(slots=True, frozen=True)
class ExplorerSettings:
    """File tree listing settings."""

    show_all_files: bool
    source_extensions: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class ServiceConfig:
    """Fully merged configuration."""

    workspace_root: Path
    data_dir: Path
    server: ServerSettings
    diagnostics: DiagnosticsSettings
    explorer: ExplorerSettings

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot; the token value is never included."""
        return {
            "workspace_root": str(self.workspace_root),
            "data_dir": str(self.data_dir),
            "server": {
                "url": self.server.url,
                "token_present": bool(self.server.token),
                "mhk_home": str(self.server.mhk_home),
                "kleio_home": self.server.kleio_home,
            },
            "diagnostics": {
                "report_extension": self.diagnostics.report_extension,
                "line_offset": self.diagnostics.line_offset,
            },
            "explorer": {
                "show_all_files": self.explorer.show_all_files,
                "source_extensions": list(self.explorer.source_extensions),
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    server_url: str | None = None
    token: str | None = None
    mhk_home: Path | None = None
    line_offset: int | None = None
    show_all_files: bool | None = None


def default_config(workspace_root: Path) -> ServiceConfig:
    """Build default config for a given workspace root."""
    resolved_root = workspace_root.resolve()
    return ServiceConfig(
        workspace_root=resolved_root,
        data_dir=resolved_root / ".kleio_status",
        server=ServerSettings(
            url=DEFAULT_SERVER_URL,
            token=None,
            mhk_home=resolved_root,
            kleio_home="",
        ),
        diagnostics=DiagnosticsSettings(
            report_extension=DEFAULT_REPORT_EXTENSION,
            line_offset=0,
        ),
        explorer=ExplorerSettings(
            show_all_files=False,
            source_extensions=DEFAULT_SOURCE_EXTENSIONS,
        ),
    )


def apply_home_properties(config: ServiceConfig, location: HomeLocation) -> ServiceConfig:
    """Take URL, token and kleio home from the discovered service properties file."""
    properties = load_properties(location.properties_path)
    server = ServerSettings(
        url=properties.get(location.keys.url) or config.server.url,
        token=properties.get(location.keys.token) or config.server.token,
        mhk_home=location.home,
        kleio_home=properties.get(location.keys.kleio_home, config.server.kleio_home),
    )
    return ServiceConfig(
        workspace_root=config.workspace_root,
        data_dir=config.data_dir,
        server=server,
        diagnostics=config.diagnostics,
        explorer=config.explorer,
    )


def load_config_file(workspace_root: Path) -> dict[str, object]:
    """Load optional kleio_status.toml from the workspace root."""
    config_path = workspace_root / CONFIG_FILE_NAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILE_NAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _tuple_of_extensions(value: object, section: str, field: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{section}.{field}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.startswith("."):
            raise ValueError(
                f"Config field '{section}.{field}' must contain only extensions like '.cli'."
            )
        output.append(item)
    return tuple(output)


def _optional_string(value: object, name: str, default: str | None) -> str | None:
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Config field '{name}' must be a non-empty string.")
    return value.strip()


def _optional_extension(value: object, name: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or not value.startswith(".") or len(value) < 2:
        raise ValueError(f"Config field '{name}' must be an extension such as '.rpt'.")
    return value


def _optional_line_offset(value: object, name: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Config field '{name}' must be an integer.")
    if abs(value) > MAX_LINE_OFFSET:
        raise ValueError(
            f"Config field '{name}' must be between -{MAX_LINE_OFFSET} and {MAX_LINE_OFFSET}."
        )
    return value


def _optional_bool(value: object, name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"Config field '{name}' must be a boolean.")
    return value


def merge_config(
    base: ServiceConfig, file_payload: dict[str, object], overrides: CliOverrides
) -> ServiceConfig:
    """Merge defaults, config file, then CLI/startup overrides."""
    server_payload = _get_table(file_payload, "server")
    diagnostics_payload = _get_table(file_payload, "diagnostics")
    explorer_payload = _get_table(file_payload, "explorer")

    url = _optional_string(server_payload.get("url"), "server.url", base.server.url)
    token = _optional_string(server_payload.get("token"), "server.token", base.server.token)
    mhk_home_value = _optional_string(server_payload.get("mhk_home"), "server.mhk_home", None)
    mhk_home = Path(mhk_home_value) if mhk_home_value is not None else base.server.mhk_home
    kleio_home = base.server.kleio_home
    if "kleio_home" in server_payload:
        raw_kleio_home = server_payload["kleio_home"]
        if not isinstance(raw_kleio_home, str):
            raise ValueError("Config field 'server.kleio_home' must be a string.")
        kleio_home = raw_kleio_home

    report_extension = _optional_extension(
        diagnostics_payload.get("report_extension"),
        "diagnostics.report_extension",
        base.diagnostics.report_extension,
    )
    line_offset = _optional_line_offset(
        diagnostics_payload.get("line_offset"),
        "diagnostics.line_offset",
        base.diagnostics.line_offset,
    )

    show_all_files = _optional_bool(
        explorer_payload.get("show_all_files"),
        "explorer.show_all_files",
        base.explorer.show_all_files,
    )
    source_extensions = base.explorer.source_extensions
    if "source_extensions" in explorer_payload:
        source_extensions = _tuple_of_extensions(
            explorer_payload["source_extensions"], "explorer", "source_extensions"
        )

    merged = ServiceConfig(
        workspace_root=base.workspace_root,
        data_dir=base.data_dir,
        server=ServerSettings(
            url=url or DEFAULT_SERVER_URL,
            token=token,
            mhk_home=mhk_home,
            kleio_home=kleio_home,
        ),
        diagnostics=DiagnosticsSettings(
            report_extension=report_extension,
            line_offset=line_offset,
        ),
        explorer=ExplorerSettings(
            show_all_files=show_all_files,
            source_extensions=source_extensions,
        ),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: ServiceConfig, overrides: CliOverrides) -> ServiceConfig:
    """Apply startup overrides at highest precedence."""
    server = ServerSettings(
        url=_optional_string(overrides.server_url, "overrides.server_url", config.server.url)
        or config.server.url,
        token=_optional_string(overrides.token, "overrides.token", config.server.token),
        mhk_home=overrides.mhk_home or config.server.mhk_home,
        kleio_home=config.server.kleio_home,
    )
    diagnostics = DiagnosticsSettings(
        report_extension=config.diagnostics.report_extension,
        line_offset=_optional_line_offset(
            overrides.line_offset, "overrides.line_offset", config.diagnostics.line_offset
        ),
    )
    explorer = ExplorerSettings(
        show_all_files=(
            overrides.show_all_files
            if overrides.show_all_files is not None
            else config.explorer.show_all_files
        ),
        source_extensions=config.explorer.source_extensions,
    )
    data_dir = overrides.data_dir or config.data_dir
    return ServiceConfig(
        workspace_root=config.workspace_root,
        data_dir=data_dir.resolve(),
        server=server,
        diagnostics=diagnostics,
        explorer=explorer,
    )


def load_effective_config(
    workspace_root: Path, overrides: CliOverrides | None = None
) -> ServiceConfig:
    """Load effective config: defaults -> service properties -> config file -> overrides."""
    resolved_root = workspace_root.resolve()
    base = apply_home_properties(default_config(resolved_root), discover_home(resolved_root))
    payload = load_config_file(resolved_root)
    return merge_config(base, payload, overrides or CliOverrides())
