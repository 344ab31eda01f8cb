"""Workspace layout: path normalization, sandboxing and service home discovery."""

from .home import (
    KLEIO_PROPERTY_KEYS,
    MHK_PROPERTY_KEYS,
    HomeLocation,
    PropertyKeys,
    discover_home,
    find_marker,
    load_properties,
)
from .paths import (
    PathBlockedError,
    is_kleio_file,
    normalize_service_path,
    relative_service_path,
    resolve_workspace_path,
    to_unix,
)

__all__ = [
    "HomeLocation",
    "KLEIO_PROPERTY_KEYS",
    "MHK_PROPERTY_KEYS",
    "PathBlockedError",
    "PropertyKeys",
    "discover_home",
    "find_marker",
    "is_kleio_file",
    "load_properties",
    "normalize_service_path",
    "relative_service_path",
    "resolve_workspace_path",
    "to_unix",
]
