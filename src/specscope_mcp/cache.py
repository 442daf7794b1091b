"""Fetched catalogs keyed by source URL, with a freshness window."""

import time
from collections import OrderedDict
from dataclasses import dataclass

from .models import RawRecord


@dataclass
class _Entry:
    fetched_at: float
    records: list[RawRecord]


class CatalogCache:
    """Keeps the last fetched records per catalog URL.

    An entry is fresh for `ttl` seconds. Stale entries are kept (until pushed
    out by max_size) so a failed refetch can fall back to them.
    Safe for single-threaded asyncio (no await between check and set).
    """

    def __init__(self, ttl: float, max_size: int = 32):
        self._ttl = ttl
        self._max_size = max_size
        self._entries: OrderedDict[str, _Entry] = OrderedDict()

    def get(self, url: str) -> list[RawRecord] | None:
        """Records fetched less than ttl seconds ago, else None."""
        entry = self._entries.get(url)
        if entry is None or time.monotonic() - entry.fetched_at >= self._ttl:
            return None
        return entry.records

    def get_stale(self, url: str) -> list[RawRecord] | None:
        """Last records fetched from url regardless of age."""
        entry = self._entries.get(url)
        return entry.records if entry else None

    def set(self, url: str, records: list[RawRecord]) -> None:
        self._entries[url] = _Entry(fetched_at=time.monotonic(), records=records)
        self._entries.move_to_end(url)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    def invalidate(self, url: str | None = None) -> None:
        """Drop one URL, or everything when url is None."""
        if url is None:
            self._entries.clear()
        else:
            self._entries.pop(url, None)

    def __len__(self) -> int:
        return len(self._entries)
