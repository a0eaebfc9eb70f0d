"""
Cache provider contract.

Both the in-memory store and the Redis store satisfy ``CacheProvider``
structurally; nothing inherits from it. Operations are coroutines so that
callers never need to know which backend is active.
"""

import re
from typing import Any, Dict, Optional, Pattern, Protocol, runtime_checkable

WILDCARD = "*"


@runtime_checkable
class CacheProvider(Protocol):
    """Contract for any cache backend (memory, Redis)."""

    name: str
    default_ttl: float

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def has(self, key: str) -> bool:
        ...

    async def clear(self) -> None:
        ...

    async def invalidate_pattern(self, pattern: str) -> int:
        ...

    async def stats(self) -> Dict[str, Any]:
        ...

    async def health_check(self) -> bool:
        ...

    async def close(self) -> None:
        ...


def wildcard_to_regex(pattern: str) -> Pattern[str]:
    """Compile a ``*`` wildcard pattern into a fully anchored regex.

    Every character other than ``*`` matches literally, so ``"user:*"``
    matches ``"user:123"`` but not ``"xuser:123"``.
    """
    body = ".*".join(re.escape(part) for part in pattern.split(WILDCARD))
    return re.compile(rf"\A{body}\Z", re.DOTALL)


def resolve_ttl(ttl: Optional[float], default_ttl: float) -> float:
    """Apply the provider default and reject non-positive TTLs."""
    effective = default_ttl if ttl is None else ttl
    if effective <= 0:
        raise ValueError(f"ttl must be positive, got {effective!r}")
    return float(effective)
