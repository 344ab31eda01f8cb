"""Discovery of the translation service home and its properties file."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

MHK_HOME_MARKER = ".mhk-home"
MHK_MARKER = ".mhk"
KLEIO_MARKER = ".kleio"


@dataclass(slots=True, frozen=True)
class PropertyKeys:
    """Property names used by one home layout."""

    url: str
    token: str
    kleio_home: str


MHK_PROPERTY_KEYS = PropertyKeys(
    url="mhk.kleio.service",
    token="mhk.kleio.service.token.admin",
    kleio_home="mhk.home.dir",
)
KLEIO_PROPERTY_KEYS = PropertyKeys(
    url="kleio_url",
    token="kleio_token",
    kleio_home="kleio_home",
)


@dataclass(slots=True, frozen=True)
class HomeLocation:
    """Where the service home is and which properties file describes it."""

    home: Path
    properties_path: Path
    keys: PropertyKeys
    marker: str | None


def find_marker(start: Path, name: str) -> Path | None:
    """Walk up from ``start`` and return the first directory containing ``name``."""
    current = start.resolve()
    while True:
        if (current / name).exists():
            return current
        if current.parent == current:
            return None
        current = current.parent


def discover_home(workspace_root: Path) -> HomeLocation:
    """Locate mhk-home, falling back to ``.mhk`` and then a ``.kleio`` at the root."""
    found = find_marker(workspace_root, MHK_HOME_MARKER)
    if found is not None:
        return HomeLocation(
            home=found,
            properties_path=found / "system" / "conf" / "mhk_system.properties",
            keys=MHK_PROPERTY_KEYS,
            marker=MHK_HOME_MARKER,
        )

    found = find_marker(workspace_root, MHK_MARKER)
    if found is not None:
        return HomeLocation(
            home=found,
            properties_path=found / MHK_MARKER,
            keys=MHK_PROPERTY_KEYS,
            marker=MHK_MARKER,
        )

    root = workspace_root.resolve()
    return HomeLocation(
        home=root,
        properties_path=root / KLEIO_MARKER,
        keys=KLEIO_PROPERTY_KEYS,
        marker=None,
    )


def load_properties(path: Path) -> dict[str, str]:
    """Parse a ``key=value`` properties file; a missing file yields no properties."""
    if not path.exists() or not path.is_file():
        return {}
    output: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = raw_line.strip()
        if not line or line.startswith(("#", "!")):
            continue
        key, separator, value = line.partition("=")
        if not separator:
            continue
        output[key.strip()] = value.strip()
    return output
