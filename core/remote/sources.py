"""
Data sources - two ways of producing a ResultPage for a dataset.

- ``ClientSideDataSource`` fetches the whole collection once, caches the
  projected rows and evaluates every query locally.
- ``ServerPagedDataSource`` forwards the query to the paginated endpoint
  and normalizes whatever page shape comes back.

Callers only see ``DataSource.query(spec) -> ResultPage[Row]``; switching
mode never changes how pages are consumed.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Mapping, Protocol, Sequence

from core.datasets import DatasetDefinition
from core.projection import project_all
from core.query import QueryEngine, QuerySpec, ResultPage, Row, page_count_for

from .client import StockServiceClient
from .params import spec_to_params

logger = logging.getLogger(__name__)

CacheKey = Hashable


class DataSource(Protocol):
    """Anything able to answer a QuerySpec with one page of rows."""

    dataset: DatasetDefinition
    mode: str

    def query(self, spec: QuerySpec) -> ResultPage[Row]:
        ...


@dataclass(frozen=True)
class _CacheEntry:
    rows: tuple[Row, ...]
    loaded_at: float


class DatasetCache:
    """
    Caller-owned cache of projected row snapshots, with a TTL.

    A refresh replaces the whole snapshot, so one evaluation never mixes two
    generations of the same dataset.
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[CacheKey, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: CacheKey) -> tuple[Row, ...] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.loaded_at > self.ttl_seconds:
                self._entries.pop(key, None)
                return None
            return entry.rows

    def put(self, key: CacheKey, rows: Sequence[Row]) -> tuple[Row, ...]:
        snapshot = tuple(rows)
        with self._lock:
            self._entries[key] = _CacheEntry(rows=snapshot, loaded_at=self._clock())
        return snapshot

    def get_or_load(self, key: CacheKey, loader: Callable[[], Sequence[Row]]) -> tuple[Row, ...]:
        cached = self.get(key)
        if cached is not None:
            return cached
        # Loaded outside the lock: concurrent loads may both fetch, last one wins.
        return self.put(key, loader())

    def invalidate(self, key: CacheKey | None = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def invalidate_scope(self, scope: str) -> None:
        with self._lock:
            for key in [k for k in self._entries if isinstance(k, tuple) and k and k[0] == scope]:
                self._entries.pop(key, None)


def extract_records(payload: Any) -> list[Any]:
    """Records from a bare list, a Spring page (``content``) or an ``items`` envelope."""

    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        for key in ("content", "items"):
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def _int_or(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class ClientSideDataSource:
    """Bulk fetch once, evaluate every query in memory."""

    mode = "client"

    def __init__(
        self,
        dataset: DatasetDefinition,
        client: StockServiceClient,
        *,
        cache: DatasetCache | None = None,
        scope: str = "default",
    ):
        if dataset.bulk_path is None:
            raise ValueError(f"Le jeu '{dataset.name}' n'expose pas de liste complète")
        self.dataset = dataset
        self._client = client
        self._cache = cache
        self._scope = scope
        self._engine = QueryEngine(dataset.schema)

    @property
    def cache_key(self) -> tuple[str, str]:
        return (self._scope, self.dataset.name)

    def fetch_all(self) -> tuple[Row, ...]:
        payload = self._client.get_json(self.dataset.bulk_path, params=self.dataset.bulk_params or None)
        rows = project_all(extract_records(payload), self.dataset.projector)
        logger.debug("%s: %d ligne(s) chargée(s)", self.dataset.name, len(rows))
        return rows

    def rows(self) -> tuple[Row, ...]:
        if self._cache is None:
            return self.fetch_all()
        return self._cache.get_or_load(self.cache_key, self.fetch_all)

    def select(self, spec: QuerySpec) -> tuple[Row, ...]:
        return self._engine.select(self.rows(), spec)

    def query(self, spec: QuerySpec) -> ResultPage[Row]:
        return self._engine.evaluate(self.rows(), spec)


class ServerPagedDataSource:
    """Delegate filtering, sorting and paging to the stock service."""

    mode = "server"

    def __init__(self, dataset: DatasetDefinition, client: StockServiceClient):
        if dataset.page_path is None:
            raise ValueError(f"Le jeu '{dataset.name}' n'expose pas de pagination serveur")
        self.dataset = dataset
        self._client = client
        self._engine = QueryEngine(dataset.schema)

    def fetch_page(self, spec: QuerySpec) -> ResultPage[Row]:
        payload = self._client.get_json(self.dataset.page_path, params=spec_to_params(spec))
        return self.normalize(payload, spec)

    def query(self, spec: QuerySpec) -> ResultPage[Row]:
        page = self.fetch_page(spec)
        if page.total_count > 0 and spec.page > page.page_count - 1:
            # Out-of-range request: fetch the last page, as the local engine would.
            return self.fetch_page(spec.with_page(page.page_count - 1))
        return page

    def normalize(self, payload: Any, spec: QuerySpec) -> ResultPage[Row]:
        """Turn a remote page into a ResultPage; pages without totals are evaluated locally."""

        if isinstance(payload, Mapping) and "totalElements" in payload:
            records = extract_records(payload)
            rows = project_all(records, self.dataset.projector)[: spec.size]
            total = max(0, _int_or(payload.get("totalElements"), len(rows)))
            page_count = max(page_count_for(total, spec.size), 1)
            page_index = min(max(0, _int_or(payload.get("number"), spec.page)), page_count - 1)
            return ResultPage(
                content=rows,
                page_index=page_index,
                page_count=page_count,
                total_count=total,
                size=spec.size,
            )

        rows = project_all(extract_records(payload), self.dataset.projector)
        return self._engine.evaluate(rows, spec)


def build_data_source(
    dataset: DatasetDefinition,
    client: StockServiceClient,
    *,
    mode: str = "client",
    cache: DatasetCache | None = None,
    scope: str = "default",
) -> DataSource:
    """Pick the configured mode, falling back to the only one the dataset supports."""

    if mode == "server" and dataset.page_path is not None:
        return ServerPagedDataSource(dataset, client)
    if dataset.bulk_path is None:
        return ServerPagedDataSource(dataset, client)
    return ClientSideDataSource(dataset, client, cache=cache, scope=scope)


__all__ = [
    "ClientSideDataSource",
    "DataSource",
    "DatasetCache",
    "ServerPagedDataSource",
    "build_data_source",
    "extract_records",
]
