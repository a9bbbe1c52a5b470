from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, ValidationError

from capital.core.config import settings
from capital.schemas.economy import IndicatorSeries, News, StockTrends

# Trend key -> Alpha Vantage function
INDICATORS: dict[str, str] = {
    "GDP": "REAL_GDP",
    "Inflation": "INFLATION",
    "Unemployment": "UNEMPLOYMENT",
    "Treasury Yield": "TREASURY_YIELD",
    "Federal Interest Rate": "FEDERAL_FUNDS_RATE",
}


class UpstreamFetchError(Exception):
    """Raised when a provider call fails or returns an unexpected payload."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class MarketDataClient:
    """
    Fetches the economy aggregate (news, stock movers, quarterly indicators) from the
    Alpha Vantage and RapidAPI news providers.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        api_key: str | None = None,
        alpha_vantage_url: str | None = None,
        news_url: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.http = http
        self.api_key = api_key if api_key is not None else settings.MARKET_DATA_API_KEY
        self.alpha_vantage_url = alpha_vantage_url or settings.ALPHA_VANTAGE_URL
        self.news_url = news_url or settings.NEWS_API_URL
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _get(
        self,
        source: str,
        url: str,
        schema: type[BaseModel],
        *,
        params: dict[str, str],
        headers: dict[str, str] | None = None,
    ) -> BaseModel:
        try:
            response = await self.http.get(url, params=params, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamFetchError(source, "request failed") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamFetchError(source, "invalid JSON response") from exc

        try:
            return schema.model_validate(payload)
        except ValidationError as exc:
            # Usually a rate-limit notice in place of data
            raise UpstreamFetchError(source, "unexpected response shape") from exc

    async def fetch_news(self) -> dict[str, Any]:
        midnight_yesterday = (self._clock() - timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
        news = await self._get(
            "news",
            self.news_url,
            News,
            params={
                "initial": midnight_yesterday.strftime("%Y-%m-%dT%H:%M:%S"),
                "category": "economy",
                "country": "us",
            },
            headers={
                "x-rapidapi-host": urlparse(self.news_url).netloc,
                "x-rapidapi-key": self.api_key,
            },
        )
        return news.model_dump()

    async def fetch_stocks(self) -> dict[str, Any]:
        stocks = await self._get(
            "TOP_GAINERS_LOSERS",
            self.alpha_vantage_url,
            StockTrends,
            params={"function": "TOP_GAINERS_LOSERS", "apikey": self.api_key},
        )
        return stocks.model_dump()

    async def fetch_indicator(self, function: str) -> list[dict[str, Any]]:
        series = await self._get(
            function,
            self.alpha_vantage_url,
            IndicatorSeries,
            params={"function": function, "interval": "quarterly", "apikey": self.api_key},
        )
        return [point.model_dump() for point in series.data]

    async def fetch_all(self) -> dict[str, Any]:
        """
        Run every provider call concurrently. Any single failure aborts the batch and
        cancels the calls still in flight.
        """
        tasks = [
            asyncio.ensure_future(self.fetch_news()),
            asyncio.ensure_future(self.fetch_stocks()),
            *(asyncio.ensure_future(self.fetch_indicator(function)) for function in INDICATORS.values()),
        ]
        try:
            news, stocks, *indicators = await asyncio.gather(*tasks)
        except Exception:
            for task in tasks:
                task.cancel()
            raise

        trends: dict[str, Any] = {"Stocks": stocks}
        trends.update(zip(INDICATORS.keys(), indicators))
        return {"news": news, "trends": trends}
