"""Process-local cache provider with stored expiry."""

from __future__ import annotations

import time
from typing import Any, Callable, Optional

from restforge.cache.base import CacheEntry, CacheProvider


class MemoryCacheProvider(CacheProvider):
    """Dict-backed cache. Expired entries are evicted when read.

    Args:
        clock: Returns the current time in epoch seconds; injectable for
            tests.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock

    async def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expiry is not None and entry.expiry <= self._clock():
            del self._entries[key]
            return None
        return entry

    async def set(self, key: str, value: Any, format: str = "json", ttl: int = 3600) -> None:
        self._entries[key] = CacheEntry(value=value, format=format, expiry=self._clock() + ttl)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
