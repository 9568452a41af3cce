"""Brute-force throttling for the auth endpoints.

Learn: Fixed window per client. The first attempt opens a window
(default 15 min) with count=1, each further attempt bumps the count,
and once the count passes max_attempts (default 5) the client is turned
away until the window closes. The next attempt after that starts a fresh
window at count=1.

Counters live behind the RateLimitStore protocol:
- MemoryRateLimitStore — one process, a dict under a lock. Two replicas
  each allow max_attempts on their own.
- RedisRateLimitStore — counters shared by every replica via INCR.
"""

import math
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Protocol

import redis.asyncio as aioredis
import structlog

from collabspec.errors import RateLimitError

logger = structlog.get_logger()


@dataclass
class RateLimitEntry:
    """Attempts seen for one client in its current window."""

    count: int
    reset_at: float  # epoch seconds


class RateLimitStore(Protocol):
    async def hit(self, key: str, window: timedelta) -> RateLimitEntry:
        """Record one attempt for `key` and return the updated entry."""
        ...


class MemoryRateLimitStore:
    """Process-local counters.

    Learn: hit() never awaits while holding the lock, so the same lock
    works whether callers are coroutines on one loop or threads. Expired
    entries of every client are swept on each call to keep the dict
    bounded by the number of clients seen within one window.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    async def hit(self, key: str, window: timedelta) -> RateLimitEntry:
        with self._lock:
            now = self._clock()
            self._sweep(now)
            entry = self._entries.get(key)
            if entry is None:
                entry = RateLimitEntry(count=1, reset_at=now + window.total_seconds())
                self._entries[key] = entry
            else:
                entry.count += 1
            return RateLimitEntry(entry.count, entry.reset_at)

    def _sweep(self, now: float) -> None:
        expired = [k for k, e in self._entries.items() if now > e.reset_at]
        for k in expired:
            del self._entries[k]

    def __len__(self) -> int:
        return len(self._entries)


class RedisRateLimitStore:
    """Counters shared across replicas.

    Key per client: "collabspec:rl:{client_id}". INCR is atomic, and the
    key's TTL is the window, so Redis expires it for us.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        prefix: str = "collabspec:rl",
        clock: Callable[[], float] = time.time,
    ):
        self.redis = redis
        self.prefix = prefix
        self._clock = clock

    async def hit(self, key: str, window: timedelta) -> RateLimitEntry:
        redis_key = f"{self.prefix}:{key}"
        window_ms = int(window.total_seconds() * 1000)

        count = await self.redis.incr(redis_key)
        ttl_ms = await self.redis.pttl(redis_key)
        if count == 1 or ttl_ms < 0:
            # New window, or a key left without TTL by a crash between calls
            await self.redis.pexpire(redis_key, window_ms)
            ttl_ms = window_ms
        return RateLimitEntry(count=count, reset_at=self._clock() + ttl_ms / 1000)


class RateLimiter:
    """Allows up to `max_attempts` per client per `window`."""

    def __init__(
        self,
        store: RateLimitStore,
        max_attempts: int = 5,
        window: timedelta = timedelta(minutes=15),
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.window = window
        self._clock = clock

    async def check(self, client_id: str) -> None:
        """Count one attempt. Raises RateLimitError once over the limit."""
        entry = await self.store.hit(client_id, self.window)
        if entry.count > self.max_attempts:
            retry_after = max(1, math.ceil(entry.reset_at - self._clock()))
            logger.warning(
                "auth.rate_limit_exceeded",
                client_id=client_id,
                attempts=entry.count,
                retry_after=retry_after,
            )
            raise RateLimitError(retry_after=retry_after)
