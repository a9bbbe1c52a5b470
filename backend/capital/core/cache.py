from __future__ import annotations

from typing import Any, Optional

import redis.asyncio as aioredis


class RedisCache:
    """Thin async Redis wrapper for JSON snapshots keyed by collection and owner."""

    def __init__(
        self,
        redis_url: str | None = None,
        *,
        client: Any = None,
        socket_timeout: float = 5.0,
    ) -> None:
        if client is None:
            if not redis_url:
                raise ValueError("redis_url is required when no client is supplied")
            client = aioredis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
        self.redis_url = redis_url
        self.client = client

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        # Redis rejects non-positive expirations
        await self.client.set(key, value, ex=max(1, int(ttl_seconds)))

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        await self.client.aclose()
