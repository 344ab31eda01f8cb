"""Translation status records, remote access and the status cache."""

from .cache import (
    CONNECTION_REFUSED_PLACEHOLDER,
    EMPTY_PLACEHOLDER,
    LOADING_PLACEHOLDER,
    SERVICE_ERROR_PLACEHOLDER,
    StatusCache,
    get_status_cache,
    reset_status_cache,
)
from .client import JsonRpcStatusClient, RemoteStatusClient
from .directories import ROOT_DIRECTORY, ancestor_directories, derive_directory_sets, directory_key
from .errors import RemoteServiceError, TransportUnavailableError
from .models import STATUS_LABELS, StatusCode, StatusRecord, parse_status_code

__all__ = [
    "CONNECTION_REFUSED_PLACEHOLDER",
    "EMPTY_PLACEHOLDER",
    "JsonRpcStatusClient",
    "LOADING_PLACEHOLDER",
    "ROOT_DIRECTORY",
    "RemoteServiceError",
    "RemoteStatusClient",
    "SERVICE_ERROR_PLACEHOLDER",
    "STATUS_LABELS",
    "StatusCache",
    "StatusCode",
    "StatusRecord",
    "TransportUnavailableError",
    "ancestor_directories",
    "derive_directory_sets",
    "directory_key",
    "get_status_cache",
    "parse_status_code",
    "reset_status_cache",
]
