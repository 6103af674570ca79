"""
registry.store — Registration Store for delete detection.

Every registered identifier lives in one sorted set whose score is the
millisecond timestamp the identifier was last checked (or registered).
The store is the sole source of truth: nothing is cached in memory, so
overlapping reconciler runs always observe the same monotonic state.

Exports:
    RegistrationStore        -- protocol the reconciler depends on
    RedisRegistrationStore   -- Redis sorted-set implementation
    MemoryRegistrationStore  -- single-process fallback (no Redis configured)
    RegisteredIdentifier     -- (key, score) pair returned by select_stale
    StoreError               -- any failure to read/write the store
    DEFAULT_REGISTRY_KEY     -- sorted-set key used when none is configured
    now_ms                   -- current wall-clock time in milliseconds
"""

from __future__ import annotations

import logging
import time
from typing import NamedTuple, Optional, Protocol

from redis.exceptions import RedisError

log = logging.getLogger(__name__)

DEFAULT_REGISTRY_KEY = "usr:del-det"


def now_ms() -> int:
    """Return the current wall-clock time as integer milliseconds since epoch."""
    return round(time.time() * 1000)


# ---------------------------------------------------------------------------
# Exceptions and types
# ---------------------------------------------------------------------------


class StoreError(Exception):
    """
    The Registration Store could not be read or written.

    Fatal to a reconciliation run. The failing operation applied no
    partial write.
    """


class RegisteredIdentifier(NamedTuple):
    """A registered key and its last-checked timestamp (ms since epoch)."""

    key: str
    score: int


class RegistrationStore(Protocol):
    """Narrow contract the reconciler and registration API depend on."""

    async def register(self, key: str) -> None: ...

    async def unregister(self, key: str) -> None: ...

    async def select_stale(self, cutoff: int) -> list[RegisteredIdentifier]: ...

    async def touch(self, key: str, new_score: int) -> None: ...

    async def size(self) -> int: ...


# ---------------------------------------------------------------------------
# Redis implementation
# ---------------------------------------------------------------------------


class RedisRegistrationStore:
    """
    Registration Store backed by a Redis sorted set.

    Args:
        redis_client: ``redis.asyncio.Redis`` client. Responses may be bytes
                      or str; members are decoded as UTF-8 either way.
        registry_key: Sorted-set key holding all registrations.
    """

    backend = "redis"

    def __init__(self, redis_client, registry_key: str = DEFAULT_REGISTRY_KEY) -> None:
        self._redis = redis_client
        self.registry_key = registry_key

    async def register(self, key: str) -> None:
        """Upsert *key* with score = now. Re-registering refreshes the score."""
        try:
            await self._redis.zadd(self.registry_key, {key: now_ms()})
        except RedisError as exc:
            raise StoreError(f"Failed to register {key!r}: {exc}") from exc

    async def unregister(self, key: str) -> None:
        """Remove *key*. Removing an absent key is a no-op."""
        try:
            await self._redis.zrem(self.registry_key, key)
        except RedisError as exc:
            raise StoreError(f"Failed to unregister {key!r}: {exc}") from exc

    async def select_stale(self, cutoff: int) -> list[RegisteredIdentifier]:
        """
        Return every entry with score <= *cutoff*, oldest-checked first.

        Args:
            cutoff: Inclusive upper bound on the last-checked timestamp (ms).

        Raises:
            StoreError: The range query failed.
        """
        try:
            rows = await self._redis.zrangebyscore(
                self.registry_key, "-inf", cutoff, withscores=True
            )
        except RedisError as exc:
            raise StoreError(f"Failed to select stale registrations: {exc}") from exc

        return [
            RegisteredIdentifier(_decode(member), int(score))
            for member, score in rows
        ]

    async def touch(self, key: str, new_score: int) -> None:
        """
        Update the score of an existing entry without changing membership.

        ``XX`` keeps a key unregistered concurrently from being re-added.
        """
        try:
            await self._redis.zadd(self.registry_key, {key: new_score}, xx=True)
        except RedisError as exc:
            raise StoreError(f"Failed to touch {key!r}: {exc}") from exc

    async def size(self) -> int:
        try:
            return int(await self._redis.zcard(self.registry_key))
        except RedisError as exc:
            raise StoreError(f"Failed to count registrations: {exc}") from exc


def _decode(member) -> str:
    if isinstance(member, bytes):
        return member.decode("utf-8")
    return member


# ---------------------------------------------------------------------------
# In-memory fallback
# ---------------------------------------------------------------------------


class MemoryRegistrationStore:
    """
    Process-local Registration Store used when no Redis URL is configured.

    Registrations do not survive a restart. Ties on score are broken by key
    so ordering matches Redis sorted-set semantics.
    """

    backend = "memory"

    def __init__(self, entries: Optional[dict[str, int]] = None) -> None:
        self._entries: dict[str, int] = dict(entries or {})

    async def register(self, key: str) -> None:
        self._entries[key] = now_ms()

    async def unregister(self, key: str) -> None:
        self._entries.pop(key, None)

    async def select_stale(self, cutoff: int) -> list[RegisteredIdentifier]:
        stale = [
            RegisteredIdentifier(key, score)
            for key, score in self._entries.items()
            if score <= cutoff
        ]
        return sorted(stale, key=lambda entry: (entry.score, entry.key))

    async def touch(self, key: str, new_score: int) -> None:
        if key in self._entries:
            self._entries[key] = new_score

    async def size(self) -> int:
        return len(self._entries)
