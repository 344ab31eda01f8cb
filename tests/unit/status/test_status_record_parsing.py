from __future__ import annotations

import pytest

from kleio_status.status import (
    STATUS_LABELS,
    RemoteServiceError,
    StatusCode,
    StatusRecord,
    parse_status_code,
)


def test_record_from_service_payload_normalizes_directory() -> None:
    record = StatusRecord.from_payload(
        {
            "source_url": "/rest/sources/reference_sources/baptisms.cli",
            "directory": "/reference_sources/",
            "path": "reference_sources/baptisms.cli",
            "status": "W",
            "errors": 0,
            "warnings": 3,
        }
    )

    assert record.directory == "reference_sources"
    assert record.path == "reference_sources/baptisms.cli"
    assert record.status is StatusCode.WARNINGS
    assert record.to_dict()["status"] == "W"


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"directory": "a", "path": "a/x.cli", "status": "E"},
        {"source_url": "u", "directory": 3, "path": "a/x.cli", "status": "E"},
        {"source_url": "u", "directory": "a", "path": "", "status": "E"},
        {"source_url": "u", "directory": "a", "path": "a/x.cli", "status": "Z"},
    ],
)
def test_malformed_payloads_are_service_errors(payload: object) -> None:
    with pytest.raises(RemoteServiceError):
        StatusRecord.from_payload(payload)


def test_every_code_has_a_label() -> None:
    assert set(STATUS_LABELS) == set(StatusCode)
    assert StatusCode.NEEDS_TRANSLATION.label == "Needs translation"


def test_parse_status_code() -> None:
    assert parse_status_code("Q") is StatusCode.QUEUED
    assert parse_status_code(StatusCode.ERRORS) is StatusCode.ERRORS
    assert parse_status_code("queued") is None
    assert parse_status_code(None) is None
