"""Cache port and providers for restforge.

The builder treats its cache as an external collaborator: an async
key-value store with a format tag and TTL per entry. The core never reads
expiry itself; providers decide when an entry is gone.

Typical use is persisting tokens between processes from a function
endpoint such as ``authenticate``::

    entry = await builder.cache.get("access_token")
    if entry is None:
        token = await builder.invoke("getAccessToken", {...})
        await builder.cache.set("access_token", token, "json", token["expires_in"])

Providers:
    :class:`DiskCacheProvider` -- persistent, backed by :mod:`diskcache`.
    :class:`MemoryCacheProvider` -- process-local with stored expiry.
"""

from restforge.cache.base import CacheEntry, CacheProvider
from restforge.cache.disk import DiskCacheProvider
from restforge.cache.memory import MemoryCacheProvider

__all__ = ["CacheEntry", "CacheProvider", "DiskCacheProvider", "MemoryCacheProvider"]
