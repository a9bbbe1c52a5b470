from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from capital.core.cache import RedisCache
from capital.core.config import settings
from capital.core.database import transaction
from capital.models.economy import EconomyRecord
from capital.services.market_data import INDICATORS, UpstreamFetchError

logger = logging.getLogger(__name__)

ECONOMY_CACHE_KEY = "economy"
FALLBACK_PATH = Path(__file__).resolve().parent.parent / "resources" / "economy.json"


class EconomyFetcher(Protocol):
    async def fetch_all(self) -> dict[str, Any]:
        ...


@lru_cache(maxsize=1)
def _read_fallback(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def load_fallback(path: Path = FALLBACK_PATH) -> dict[str, Any]:
    """
    Bundled snapshot served when the providers are unavailable, mapped into the
    same {news, trends} shape a live refresh produces.
    """
    snapshot = json.loads(_read_fallback(str(path)))
    trends: dict[str, Any] = {"Stocks": snapshot["Stocks"]}
    for key in INDICATORS:
        trends[key] = snapshot[key]
    return {"news": snapshot["News"], "trends": trends}


class EconomyStore:
    """Durable singleton row holding the last successful refresh."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def latest(self) -> Optional[tuple[datetime, dict[str, Any]]]:
        async with self.session_factory() as db:
            result = await db.execute(select(EconomyRecord).order_by(EconomyRecord.time.desc()).limit(1))
            record = result.scalar_one_or_none()
            if record is None:
                return None
            return _as_utc(record.time), record.data

    async def replace(self, time: datetime, data: dict[str, Any]) -> None:
        async with self.session_factory() as db:
            async with transaction(db):
                await db.execute(delete(EconomyRecord))
                db.add(EconomyRecord(time=time, data=data))


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class EconomyService:
    """
    Serves the shared economy aggregate: cache, then a fresh durable record, then a
    refresh from the providers guarded so that only one batch is in flight at a time.
    """

    def __init__(
        self,
        cache: RedisCache,
        store: EconomyStore,
        fetcher: EconomyFetcher,
        *,
        ttl_seconds: int | None = None,
        fallback_ttl_seconds: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.cache = cache
        self.store = store
        self.fetcher = fetcher
        self.ttl_seconds = ttl_seconds or settings.ECONOMY_CACHE_TTL_SECONDS
        self.fallback_ttl_seconds = fallback_ttl_seconds or settings.ECONOMY_FALLBACK_CACHE_TTL_SECONDS
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = asyncio.Lock()

    async def _cached(self) -> Optional[dict[str, Any]]:
        raw = await self.cache.get(ECONOMY_CACHE_KEY)
        return json.loads(raw) if raw is not None else None

    async def _fresh_record(self) -> Optional[dict[str, Any]]:
        latest = await self.store.latest()
        if latest is None:
            return None
        time, data = latest
        if time <= self._clock() - timedelta(seconds=self.ttl_seconds):
            return None
        return data

    async def get_or_refresh(self) -> dict[str, Any]:
        cached = await self._cached()
        if cached is not None:
            return cached

        stored = await self._fresh_record()
        if stored is not None:
            await self.cache.set(ECONOMY_CACHE_KEY, json.dumps(stored), self.ttl_seconds)
            return stored

        async with self._lock:
            # Another holder may have refreshed (or cached the fallback) while we waited
            cached = await self._cached()
            if cached is not None:
                return cached

            stored = await self._fresh_record()
            if stored is not None:
                await self.cache.set(ECONOMY_CACHE_KEY, json.dumps(stored), self.ttl_seconds)
                return stored

            try:
                economy = await self.fetcher.fetch_all()
            except UpstreamFetchError as exc:
                logger.warning("Economy refresh failed (%s), serving fallback snapshot", exc)
                fallback = load_fallback()
                await self.cache.set(ECONOMY_CACHE_KEY, json.dumps(fallback), self.fallback_ttl_seconds)
                return fallback

            await self.store.replace(self._clock(), economy)
            await self.cache.set(ECONOMY_CACHE_KEY, json.dumps(economy), self.ttl_seconds)
            logger.info("Economy data refreshed from providers")
            return economy
