from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from capital.services.market_data import INDICATORS, MarketDataClient, UpstreamFetchError

ALPHA_URL = "https://alpha.example.test/query"
NEWS_URL = "https://news.example.test/"


def _article(i: int) -> dict:
    return {
        "id": f"article-{i}",
        "site_region": "US",
        "site_language": "en",
        "author": "Staff",
        "domain": "example.test",
        "crawled": "1735689600000",
        "language": "english",
        "title": f"Headline {i}",
        "site_type": "news",
        "text": "Body",
        "url": f"https://example.test/{i}",
        "site": "example.test",
        "site_country": "US",
        "published": "2025-01-01T00:00:00Z",
    }


NEWS = {"response": {"restResults": "25", "data": [_article(i) for i in range(25)], "totalResults": "25"}}

MOVER = {"ticker": "ACME", "price": "10.5", "change_amount": "1.25", "change_percentage": "13.5%", "volume": "1000"}
STOCKS = {
    "metadata": "Top gainers, losers, and most actively traded US tickers",
    "last_updated": "2025-01-01 16:15:59 US/Eastern",
    "top_gainers": [MOVER],
    "top_losers": [MOVER],
    "most_actively_traded": [MOVER],
}


def _indicator(function: str) -> dict:
    return {"name": function, "interval": "quarterly", "data": [{"date": "2024-07-01", "value": "4.1"}]}


class Recorder:
    def __init__(self, overrides: dict | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.overrides = overrides or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "news.example.test":
            if "news" in self.overrides:
                return self.overrides["news"]
            return httpx.Response(200, json=NEWS)

        function = request.url.params["function"]
        if function in self.overrides:
            return self.overrides[function]
        if function == "TOP_GAINERS_LOSERS":
            return httpx.Response(200, json=STOCKS)
        return httpx.Response(200, json=_indicator(function))


def _fetch_all(recorder: Recorder):
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as http:
            client = MarketDataClient(
                http,
                api_key="test-key",
                alpha_vantage_url=ALPHA_URL,
                news_url=NEWS_URL,
                clock=lambda: datetime(2025, 1, 2, 15, 30, tzinfo=timezone.utc),
            )
            return await client.fetch_all()

    return asyncio.run(scenario())


def test_fetch_all_builds_aggregate():
    recorder = Recorder()

    economy = _fetch_all(recorder)

    assert set(economy) == {"news", "trends"}
    assert len(economy["news"]["response"]["data"]) == 25
    assert set(economy["trends"]) == {"Stocks", *INDICATORS}
    assert economy["trends"]["Stocks"]["top_gainers"][0]["price"] == 10.5
    assert economy["trends"]["Unemployment"] == [{"date": "2024-07-01", "value": 4.1}]
    assert len(recorder.requests) == 2 + len(INDICATORS)


def test_requests_carry_credentials_and_parameters():
    recorder = Recorder()

    _fetch_all(recorder)

    news = next(r for r in recorder.requests if r.url.host == "news.example.test")
    assert news.headers["x-rapidapi-key"] == "test-key"
    assert news.headers["x-rapidapi-host"] == "news.example.test"
    assert news.url.params["initial"] == "2025-01-01T00:00:00"
    assert news.url.params["category"] == "economy"

    indicators = [r for r in recorder.requests if r.url.params.get("function") in INDICATORS.values()]
    assert len(indicators) == len(INDICATORS)
    for request in indicators:
        assert request.url.params["interval"] == "quarterly"
        assert request.url.params["apikey"] == "test-key"


def test_rate_limit_notice_aborts_batch():
    notice = httpx.Response(200, json={"Information": "Our standard API rate limit is 25 requests per day."})
    recorder = Recorder({"TOP_GAINERS_LOSERS": notice})

    with pytest.raises(UpstreamFetchError) as exc:
        _fetch_all(recorder)
    assert exc.value.source == "TOP_GAINERS_LOSERS"


def test_server_error_aborts_batch():
    recorder = Recorder({"news": httpx.Response(503, text="unavailable")})

    with pytest.raises(UpstreamFetchError) as exc:
        _fetch_all(recorder)
    assert exc.value.source == "news"


def test_non_json_response_aborts_batch():
    recorder = Recorder({"INFLATION": httpx.Response(200, text="<html>maintenance</html>")})

    with pytest.raises(UpstreamFetchError):
        _fetch_all(recorder)


def test_too_few_articles_is_rejected():
    short = {"response": {"restResults": 1, "data": [_article(0)], "totalResults": 1}}
    recorder = Recorder({"news": httpx.Response(200, json=short)})

    with pytest.raises(UpstreamFetchError):
        _fetch_all(recorder)


def test_transport_timeout_aborts_batch():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("function") == "REAL_GDP":
            raise httpx.ReadTimeout("timed out", request=request)
        return Recorder()(request)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = MarketDataClient(http, api_key="k", alpha_vantage_url=ALPHA_URL, news_url=NEWS_URL)
            return await client.fetch_all()

    with pytest.raises(UpstreamFetchError) as exc:
        asyncio.run(scenario())
    assert exc.value.source == "REAL_GDP"


def test_failure_cancels_calls_still_in_flight():
    cancelled: list[str] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "news.example.test":
            return httpx.Response(503, text="unavailable")
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            cancelled.append(request.url.params["function"])
            raise
        return Recorder()(request)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = MarketDataClient(http, api_key="k", alpha_vantage_url=ALPHA_URL, news_url=NEWS_URL)
            with pytest.raises(UpstreamFetchError):
                await client.fetch_all()
            # Let the cancellations reach the pending handlers
            for _ in range(20):
                if len(cancelled) == 1 + len(INDICATORS):
                    break
                await asyncio.sleep(0.01)
            return sorted(cancelled)

    assert asyncio.run(scenario()) == sorted(["TOP_GAINERS_LOSERS", *INDICATORS.values()])
