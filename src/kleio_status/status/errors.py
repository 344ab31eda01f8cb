"""Failures raised while talking to the translation service."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class TransportUnavailableError(Exception):
    """The service could not be reached, e.g. the connection was refused."""

    message: str
    code: str = "TRANSPORT_UNAVAILABLE"


@dataclass(slots=True, frozen=True)
class RemoteServiceError(Exception):
    """The service answered but signalled a failure or sent an unusable payload."""

    message: str
    code: str = "REMOTE_SERVICE_ERROR"
