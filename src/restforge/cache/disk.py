"""Disk-backed cache provider built on :mod:`diskcache`.

Entries are stored as plain dicts (``value``, ``format``, ``expiry``) and
expire through diskcache's own ``expire`` support. diskcache is blocking,
so every operation runs in a worker thread via :func:`asyncio.to_thread`.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Any, Optional

import diskcache

from restforge.cache.base import CacheEntry, CacheProvider


class DiskCacheProvider(CacheProvider):
    """Persistent cache stored under *cache_dir*.

    Args:
        cache_dir: Root directory; entries live in its ``entries/``
            subdirectory.

    Example::

        from restforge.cache import DiskCacheProvider
        from restforge.config import get_cache_dir

        cache = DiskCacheProvider(get_cache_dir())
        await cache.set("wechat_access_token", {"access_token": "abc"}, "json", 7200)
    """

    def __init__(self, cache_dir: str | Path) -> None:
        self._cache_dir = Path(cache_dir)
        self._cache = diskcache.Cache(str(self._cache_dir / "entries"))

    async def get(self, key: str) -> Optional[CacheEntry]:
        raw = await asyncio.to_thread(self._cache.get, key)
        if raw is None:
            return None
        return CacheEntry.model_validate(raw)

    async def set(self, key: str, value: Any, format: str = "json", ttl: int = 3600) -> None:
        entry = CacheEntry(value=value, format=format, expiry=time.time() + ttl)
        await asyncio.to_thread(self._cache.set, key, entry.model_dump(), expire=ttl)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._cache.delete, key)

    def stats(self) -> dict[str, Any]:
        """Return entry count and directory of the cache."""
        return {"size": len(self._cache), "directory": str(self._cache_dir / "entries")}

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache`."""
        self._cache.close()
