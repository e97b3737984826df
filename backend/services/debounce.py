"""
Debounce Stores

Rate-limit opportunistic work to once per interval. The in-memory store is
private to one process; the Redis store is shared by every API worker
through an atomic SET NX PX.
"""

import logging
from datetime import datetime, timedelta
from typing import Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from backend.config import Settings, get_settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "shift-engine:debounce:"


class DebounceStore(Protocol):
    async def acquire(self, key: str, now: datetime, interval: timedelta) -> bool:
        """Return True, and start a new interval, if the last acquire is older than ``interval``."""
        ...

    async def touch(self, key: str, now: datetime, interval: timedelta) -> None:
        """Start a new interval at ``now`` regardless of the last acquire."""
        ...


class InMemoryDebounceStore:
    """Last-run timestamps held in this process."""

    def __init__(self):
        self._last_run: dict[str, datetime] = {}

    async def acquire(self, key: str, now: datetime, interval: timedelta) -> bool:
        last = self._last_run.get(key)
        if last is not None and now - last < interval:
            return False
        self._last_run[key] = now
        return True

    async def touch(self, key: str, now: datetime, interval: timedelta) -> None:
        self._last_run[key] = now

    def last_run(self, key: str) -> datetime | None:
        return self._last_run.get(key)


class RedisDebounceStore:
    """
    Debounce shared across processes via Redis key expiry.

    When Redis is unreachable the store lets the caller through; the work
    being debounced must be idempotent.
    """

    def __init__(self, client: aioredis.Redis | None = None, redis_url: str | None = None):
        self._client = client
        self._redis_url = redis_url or get_settings().redis_url

    def _get_redis(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
            )
        return self._client

    async def acquire(self, key: str, now: datetime, interval: timedelta) -> bool:
        try:
            acquired = await self._get_redis().set(
                KEY_PREFIX + key,
                now.isoformat(),
                nx=True,
                px=max(1, int(interval.total_seconds() * 1000)),
            )
            return bool(acquired)
        except RedisError as e:
            logger.warning(f"Debounce store unavailable for {key}, proceeding: {e}")
            return True

    async def touch(self, key: str, now: datetime, interval: timedelta) -> None:
        try:
            await self._get_redis().set(
                KEY_PREFIX + key,
                now.isoformat(),
                px=max(1, int(interval.total_seconds() * 1000)),
            )
        except RedisError as e:
            logger.warning(f"Debounce touch failed for {key}: {e}")


def build_debounce_store(settings: Settings | None = None) -> DebounceStore:
    settings = settings or get_settings()
    if settings.debounce_backend == "redis":
        return RedisDebounceStore(redis_url=settings.redis_url)
    return InMemoryDebounceStore()
