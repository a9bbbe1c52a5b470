from __future__ import annotations

import json
import logging
from typing import Awaitable, Callable, Generic, TypeVar

from capital.core.cache import RedisCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReadThroughCache(Generic[T]):
    """
    Per-user cache for one collection, keyed "{collection}:{user_id}".

    Reads populate lazily from the durable store on a miss. Writers never update the
    cached snapshot; they delete it and let the next read rebuild it. Misses are never
    cached, and cache errors propagate to the caller.
    """

    def __init__(self, collection: str, ttl_seconds: int | Callable[[], int]) -> None:
        self.collection = collection
        self._ttl = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return int(self._ttl() if callable(self._ttl) else self._ttl)

    def key(self, user_id: str) -> str:
        return f"{self.collection}:{user_id}"

    async def fetch(self, cache: RedisCache, user_id: str, load: Callable[[], Awaitable[T]]) -> T:
        key = self.key(user_id)
        cached = await cache.get(key)
        if cached is not None:
            return json.loads(cached)

        result = await load()
        await cache.set(key, json.dumps(result), self.ttl_seconds)
        return result

    async def invalidate(self, cache: RedisCache, user_id: str) -> None:
        await cache.delete(self.key(user_id))
        logger.debug("Invalidated %s cache for user %s", self.collection, user_id)
