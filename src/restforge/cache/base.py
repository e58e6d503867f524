"""Abstract cache port used by builders and function endpoints."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """A cached value with its format tag and absolute expiry (epoch seconds)."""

    value: Any = None
    format: str = "json"
    expiry: Optional[float] = None


class CacheProvider(ABC):
    """Asynchronous get/set/delete over opaque string keys.

    Implementations own expiry entirely: :meth:`get` must return ``None``
    for an entry whose TTL has passed.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry stored under *key*, or ``None`` on a miss."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, format: str = "json", ttl: int = 3600) -> None:
        """Store *value* under *key* for *ttl* seconds."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove *key*. Deleting a missing key is not an error."""
        ...
