"""
Cache entry model shared by the cache backends.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """A cached value plus its freshness window.

    Both timestamps come from the owning store's clock. An entry is never
    updated in place; ``set`` replaces it with a new instance.
    """

    value: V
    created_at: float
    expires_at: float

    @classmethod
    def create(cls, value: V, ttl: float, now: float) -> "CacheEntry[V]":
        return cls(value=value, created_at=now, expires_at=now + ttl)

    def is_expired(self, now: float) -> bool:
        # Still valid exactly at expires_at
        return now > self.expires_at

    def remaining(self, now: float) -> float:
        """Seconds of freshness left, never negative."""
        return max(0.0, self.expires_at - now)
