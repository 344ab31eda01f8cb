"""Process-wide translation status cache with per-status directory closures."""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Callable

from kleio_status.status.client import RemoteStatusClient
from kleio_status.status.directories import derive_directory_sets, directory_key
from kleio_status.status.errors import TransportUnavailableError
from kleio_status.status.models import StatusCode, StatusRecord, parse_status_code
from kleio_status.workspace.paths import to_unix

EMPTY_PLACEHOLDER = "0 files"
LOADING_PLACEHOLDER = "Loading Status from Kleio Server…"
CONNECTION_REFUSED_PLACEHOLDER = "Connection refused by Kleio Server."
SERVICE_ERROR_PLACEHOLDER = "Kleio Server error."

Listener = Callable[[], None]


class StatusCache:
    """Status records keyed by ``source_url`` plus the derived directory sets.

    Readers always see a complete directory table: merges build a new
    mapping and replace the old one in a single assignment.
    """

    def __init__(self, client: RemoteStatusClient) -> None:
        self._client = client
        self._records: dict[str, StatusRecord] = {}
        self._directories_by_status: dict[StatusCode, frozenset[str]] = {}
        self._fetched_scopes: set[str] = set()
        self._placeholder_message = EMPTY_PLACEHOLDER
        self._in_flight: dict[str, asyncio.Task[None]] = {}
        self._listeners: list[Listener] = []
        self._generation = 0

    @property
    def client(self) -> RemoteStatusClient:
        return self._client

    @property
    def placeholder_message(self) -> str:
        return self._placeholder_message

    @property
    def fetched_scopes(self) -> frozenset[str]:
        return frozenset(self._fetched_scopes)

    @property
    def directories_by_status(self) -> dict[StatusCode, frozenset[str]]:
        return dict(self._directories_by_status)

    def records_snapshot(self) -> tuple[StatusRecord, ...]:
        return tuple(self._records.values())

    def status_counts(self) -> dict[str, int]:
        """Return record counts per status code, in code order."""
        counts = Counter(record.status for record in self._records.values())
        return {code.value: counts[code] for code in StatusCode if counts[code]}

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh(self, scope_path: str, on_done: Listener | None = None) -> None:
        """Make sure ``scope_path`` has been fetched, then call ``on_done``.

        A fetched scope completes synchronously without network access. A
        scope already being fetched is joined rather than requested twice.
        Fetch failures only change the placeholder message.
        """
        if scope_path in self._fetched_scopes:
            if on_done is not None:
                on_done()
            return

        task = self._in_flight.get(scope_path)
        if task is None:
            self._placeholder_message = LOADING_PLACEHOLDER
            task = asyncio.ensure_future(self._fetch(scope_path, self._generation))
            self._in_flight[scope_path] = task
        await asyncio.shield(task)
        if on_done is not None:
            on_done()

    def invalidate(self, scope_path: str) -> None:
        """Forget that ``scope_path`` was fetched so the next refresh hits the service."""
        self._fetched_scopes.discard(scope_path)

    def query(self, file_path: str) -> StatusCode | None:
        """Return the status of the record whose ``path`` ends ``file_path``."""
        candidate = to_unix(file_path)
        for record in self._records.values():
            if candidate.endswith(record.path):
                return record.status
        return None

    def contains_status(self, directory_path: str, status: StatusCode | str) -> bool:
        """Return True when some file below ``directory_path`` has ``status``."""
        code = parse_status_code(status)
        if code is None:
            return False
        directories = self._directories_by_status.get(code)
        if directories is None:
            return False
        return directory_key(directory_path) in directories

    def filter_by_status(
        self, file_path: str, is_directory: bool, status: StatusCode | str | None
    ) -> bool:
        """Decide whether a tree entry is shown in a view filtered by ``status``."""
        if is_directory or not status:
            return True
        return self.query(file_path) == parse_status_code(status)

    def clear(self) -> None:
        """Reset every field; results of fetches started before the clear are dropped."""
        self._generation += 1
        self._records = {}
        self._directories_by_status = {}
        self._fetched_scopes = set()
        self._placeholder_message = EMPTY_PLACEHOLDER
        self._in_flight = {}
        self._notify()

    async def _fetch(self, scope_path: str, generation: int) -> None:
        try:
            await self._fetch_and_merge(scope_path, generation)
        finally:
            if self._in_flight.get(scope_path) is asyncio.current_task():
                del self._in_flight[scope_path]

    async def _fetch_and_merge(self, scope_path: str, generation: int) -> None:
        try:
            fetched = await self._client.get(scope_path)
        except (TransportUnavailableError, ConnectionError):
            if generation == self._generation:
                self._placeholder_message = CONNECTION_REFUSED_PLACEHOLDER
            return
        except Exception:
            # RemoteServiceError and anything unclassified read as a service fault
            if generation == self._generation:
                self._placeholder_message = SERVICE_ERROR_PLACEHOLDER
            return
        if generation != self._generation:
            return
        self._merge(fetched)
        self._placeholder_message = EMPTY_PLACEHOLDER
        self._fetched_scopes.add(scope_path)
        self._notify()

    def _merge(self, fetched: list[StatusRecord]) -> None:
        records = dict(self._records)
        for record in fetched:
            # replace, never append: the key moves to the end with the new status
            records.pop(record.source_url, None)
            records[record.source_url] = record
        directories = derive_directory_sets(records.values())
        self._records = records
        self._directories_by_status = directories

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()


_instance: StatusCache | None = None


def get_status_cache(client: RemoteStatusClient | None = None) -> StatusCache:
    """Return the process-wide cache, creating it with ``client`` on first use."""
    global _instance
    if _instance is None:
        if client is None:
            raise RuntimeError("The status cache has not been created; pass a client.")
        _instance = StatusCache(client)
    return _instance


def reset_status_cache() -> None:
    """Drop the process-wide cache, e.g. when the workspace changes."""
    global _instance
    _instance = None
