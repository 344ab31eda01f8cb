from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from kleio_status.status import StatusCode, StatusRecord, reset_status_cache
from kleio_status.workspace import relative_service_path


class FakeStatusClient:
    """In-memory stand-in for the translation service, keyed by service path."""

    def __init__(self, mhk_home: Path | None = None) -> None:
        self.mhk_home = mhk_home
        self.responses: dict[str, list[StatusRecord]] = {}
        self.calls: list[tuple[str, StatusCode | None]] = []
        self.translations: list[str] = []
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None

    def service_path(self, path: str) -> str:
        home = str(self.mhk_home) if self.mhk_home is not None else ""
        return relative_service_path(path, mhk_home=home)

    async def get(self, path: str, status: StatusCode | None = None) -> list[StatusRecord]:
        self.calls.append((path, status))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.responses.get(self.service_path(path), []))

    async def translate(self, path: str) -> dict[str, object]:
        if self.error is not None:
            raise self.error
        self.translations.append(self.service_path(path))
        return {"queued": 1}


@pytest.fixture
def fake_client() -> FakeStatusClient:
    return FakeStatusClient()


@pytest.fixture
def make_record() -> Callable[..., StatusRecord]:
    def build(path: str, status: str = "T", source_url: str | None = None) -> StatusRecord:
        directory = path.rsplit("/", 1)[0] if "/" in path else ""
        return StatusRecord(
            source_url=source_url or f"/rest/sources/{path}",
            directory=directory,
            path=path,
            status=StatusCode(status),
        )

    return build


@pytest.fixture(autouse=True)
def _fresh_status_cache() -> None:
    reset_status_cache()
