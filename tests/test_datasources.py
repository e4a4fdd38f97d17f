"""Tests for the data sources and the dashboard wiring."""

import httpx
import pytest

from monitor.dashboard import Dashboard
from monitor.datasource import (
    CoinGeckoSource,
    FinnhubSource,
    FREDSource,
    NewsFeedSource,
    PolymarketSource,
)
from monitor.refresh import RefreshOrchestrator, RefreshStage
from monitor.services.client import ServiceClient, ServiceClientConfig
from monitor.services.errors import ServiceError
from monitor.services.registry import ServiceRegistry
from monitor.settings import Settings
from tests.conftest import RecordingTransport

COINGECKO_MARKETS = [
    {
        "id": "bitcoin",
        "symbol": "btc",
        "name": "Bitcoin",
        "current_price": 65000.5,
        "price_change_percentage_24h": 1.25,
        "market_cap": 1.2e12,
        "total_volume": 3.1e10,
    },
    {
        "id": "ethereum",
        "symbol": "eth",
        "name": "Ethereum",
        "current_price": 3400,
        "price_change_percentage_24h": None,
        "market_cap": 4.1e11,
        "total_volume": 1.5e10,
    },
]

POLYMARKET_MARKETS = [
    {
        "id": "1",
        "question": "Will it rain?",
        "outcomePrices": '["0.65", "0.35"]',
        "volume": 50000,
        "active": True,
        "endDate": "2025-01-01T00:00:00Z",
    },
    {"id": "2", "question": "Tiny market", "volume": 10, "active": True},
    {"id": "3", "question": "Closed", "volume": 90000, "active": False},
    {"id": "4", "question": "Bad prices", "outcomePrices": "oops", "volume": 20000, "active": True},
]

FINNHUB_QUOTE = {"c": 101.5, "d": 1.5, "dp": 1.5, "pc": 100.0}

FRED_OBSERVATIONS = {
    "observations": [
        {"date": "2024-06-01", "value": "5.33"},
        {"date": "2024-05-01", "value": "5.08"},
    ]
}


def _route(request: httpx.Request) -> httpx.Response:
    host = request.url.host
    if host == "api.coingecko.com":
        return httpx.Response(200, json=COINGECKO_MARKETS)
    if host == "gamma-api.polymarket.com":
        return httpx.Response(200, json=POLYMARKET_MARKETS)
    if host == "finnhub.io":
        return httpx.Response(200, json=FINNHUB_QUOTE)
    if host == "api.stlouisfed.org":
        return httpx.Response(200, json=FRED_OBSERVATIONS)
    return httpx.Response(200, text="<rss><channel></channel></rss>")


def _client(transport: RecordingTransport, name: str = "test") -> ServiceClient:
    return ServiceClient(
        ServiceClientConfig(name=name, retries=0, retry_delay=0),
        http_client=transport.client(),
    )


class TestCoinGecko:
    async def test_transforms_markets(self):
        transport = RecordingTransport(_route)
        prices = await CoinGeckoSource(_client(transport, "crypto")).fetch()

        assert [p.symbol for p in prices] == ["BTC", "ETH"]
        assert prices[0].price == 65000.5
        assert prices[1].change_24h == 0
        assert transport.requests[0].url.params["ids"] == "bitcoin,ethereum,solana"

    async def test_failure_propagates(self):
        transport = RecordingTransport(lambda request: httpx.Response(500))
        with pytest.raises(ServiceError):
            await CoinGeckoSource(_client(transport, "crypto")).fetch()


class TestPolymarket:
    async def test_filters_inactive_and_low_volume(self):
        transport = RecordingTransport(_route)
        predictions = await PolymarketSource(_client(transport, "polymarket")).fetch()

        assert [p.id for p in predictions] == ["1", "4"]
        assert predictions[0].probability == 0.65
        assert predictions[1].probability == 0.5
        assert predictions[0].end_date is not None

    async def test_empty_response_is_an_error(self):
        transport = RecordingTransport(lambda request: httpx.Response(200, json=[]))
        with pytest.raises(ServiceError):
            await PolymarketSource(_client(transport, "polymarket")).fetch()


class TestFinnhub:
    async def test_requires_api_key(self):
        transport = RecordingTransport(_route)
        source = FinnhubSource(_client(transport, "markets"), api_key="")
        with pytest.raises(ServiceError):
            await source.fetch_indices()
        assert transport.calls == 0

    async def test_partial_quote_failures_keep_other_items(self):
        def handler(request):
            if request.url.params["symbol"] == "SPY":
                return httpx.Response(500)
            return httpx.Response(200, json=FINNHUB_QUOTE)

        transport = RecordingTransport(handler)
        items = await FinnhubSource(_client(transport, "markets"), "key").fetch_indices()

        by_name = {item.name: item for item in items}
        assert len(items) == 4
        assert by_name["S&P 500"].price is None
        assert by_name["Dow Jones"].price == 101.5

    async def test_all_quotes_failing_is_an_error(self):
        transport = RecordingTransport(lambda request: httpx.Response(500))
        with pytest.raises(ServiceError):
            await FinnhubSource(_client(transport, "markets"), "key").fetch_commodities()


class TestFRED:
    async def test_computes_change(self):
        transport = RecordingTransport(_route)
        indicators = await FREDSource(_client(transport, "fred"), "key").fetch()

        assert len(indicators) == 4
        assert indicators[0].value == 5.33
        assert indicators[0].change == pytest.approx(0.25)


class TestNewsFeeds:
    async def test_failed_feeds_are_skipped(self):
        def handler(request):
            if request.url.host == "bad.example.com":
                return httpx.Response(404)
            return httpx.Response(200, text="<rss/>")

        feeds = {
            "world": {
                "Good": "https://good.example.com/rss",
                "Bad": "https://bad.example.com/rss",
            }
        }
        transport = RecordingTransport(handler)
        documents = await NewsFeedSource(_client(transport, "news"), feeds).fetch()

        assert [d.name for d in documents] == ["Good"]
        assert documents[0].category == "world"
        assert documents[0].content == "<rss/>"

    async def test_all_feeds_failing_is_an_error(self):
        transport = RecordingTransport(lambda request: httpx.Response(500))
        feeds = {"world": {"A": "https://a.example.com/rss"}}
        with pytest.raises(ServiceError):
            await NewsFeedSource(_client(transport, "news"), feeds).fetch()


class TestDashboard:
    def _dashboard(self, handler) -> tuple[Dashboard, RecordingTransport]:
        async def no_sleep(seconds):
            pass

        transport = RecordingTransport(handler)
        settings = Settings(FINNHUB_API_KEY="key", FRED_API_KEY="key", REQUEST_RETRIES=0)
        registry = ServiceRegistry.from_settings(settings, http_client=transport.client())
        orchestrator = RefreshOrchestrator(sleep=no_sleep)
        return Dashboard(registry, orchestrator, settings), transport

    async def test_fetchers_registered_per_tier(self):
        dashboard, _ = self._dashboard(_route)
        orchestrator = dashboard.orchestrator

        assert orchestrator.fetchers(RefreshStage.CRITICAL) == ["News", "Markets"]
        assert orchestrator.fetchers(RefreshStage.SECONDARY) == [
            "Commodities",
            "Crypto",
            "Intel",
            "Economic",
        ]
        assert orchestrator.fetchers(RefreshStage.TERTIARY) == ["Polymarket"]
        await dashboard.close()

    async def test_refresh_populates_data(self):
        dashboard, _ = self._dashboard(_route)

        await dashboard.orchestrator.refresh()

        assert dashboard.orchestrator.errors == []
        assert len(dashboard.data.crypto) == 2
        assert len(dashboard.data.indices) == 4
        assert len(dashboard.data.commodities) == 5
        assert len(dashboard.data.predictions) == 2
        assert dashboard.data.news
        assert "crypto" in dashboard.data.updated_at
        await dashboard.close()

    async def test_failing_service_keeps_previous_data_and_reports_error(self):
        fail_crypto = [False]

        def handler(request):
            if fail_crypto[0] and request.url.host == "api.coingecko.com":
                return httpx.Response(503)
            return _route(request)

        dashboard, _ = self._dashboard(handler)
        await dashboard.orchestrator.refresh()
        previous = dashboard.data.crypto

        fail_crypto[0] = True
        dashboard.registry.client("crypto").clear_cache()
        await dashboard.orchestrator.refresh()

        assert dashboard.data.crypto is previous
        assert dashboard.orchestrator.errors == ["Crypto: HTTP 503: Service Unavailable"]
        await dashboard.close()

    async def test_status(self):
        dashboard, _ = self._dashboard(_route)
        await dashboard.orchestrator.quick_refresh()

        status = dashboard.get_status()
        assert status["refresh"]["is_refreshing"] is False
        assert status["refresh"]["last_refresh"] is not None
        assert set(status["services"]) == {
            "news",
            "markets",
            "crypto",
            "intel",
            "polymarket",
            "fred",
        }
        assert status["open_circuits"] == []
        await dashboard.close()


class TestRegistry:
    async def test_markets_breaker_shared_across_fetch_paths(self):
        transport = RecordingTransport(_route)
        registry = ServiceRegistry.from_settings(Settings(), http_client=transport.client())

        client = registry.client("markets")
        assert client.circuit is registry.breakers.get("markets")
        assert client.circuit.config.failure_threshold == 2
        assert registry.rate_limiters.get("finnhub").get_stats()["used"] == 0
        await registry.close()

    async def test_prune_caches(self):
        transport = RecordingTransport(_route)
        registry = ServiceRegistry.from_settings(Settings(), http_client=transport.client())
        assert registry.prune_caches() == 0
        await registry.close()
