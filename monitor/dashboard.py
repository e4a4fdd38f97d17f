"""
Dashboard - wires data sources into the refresh tiers.

Holds the latest fetched data for the UI layer and registers one fetcher per
data set on the orchestrator:

- critical: news feeds, market indices
- secondary: commodities, crypto, intel feeds, economic indicators
- tertiary: prediction markets
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

from loguru import logger

from monitor.config import INTEL_FEEDS, NEWS_FEEDS
from monitor.datasource import (
    CoinGeckoSource,
    FeedDocument,
    FinnhubSource,
    FREDSource,
    NewsFeedSource,
    PolymarketSource,
)
from monitor.refresh import RefreshOrchestrator, RefreshStage
from monitor.services.registry import ServiceRegistry
from monitor.settings import Settings


@dataclass
class DashboardData:
    """Latest data per panel. Values survive failed refreshes."""

    news: list[FeedDocument] = field(default_factory=list)
    intel: list[FeedDocument] = field(default_factory=list)
    indices: list[Any] = field(default_factory=list)
    commodities: list[Any] = field(default_factory=list)
    crypto: list[Any] = field(default_factory=list)
    economic: list[Any] = field(default_factory=list)
    predictions: list[Any] = field(default_factory=list)
    updated_at: dict[str, datetime] = field(default_factory=dict)


class Dashboard:
    """
    Composition of the service registry, data sources and orchestrator.

    Usage:
        dashboard = Dashboard.from_settings(global_settings)
        dashboard.start()
        ...
        await dashboard.close()
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        orchestrator: RefreshOrchestrator,
        settings: Settings,
    ):
        self.registry = registry
        self.orchestrator = orchestrator
        self.data = DashboardData()

        self.news = NewsFeedSource(registry.client("news"), NEWS_FEEDS)
        self.intel = NewsFeedSource(registry.client("intel"), {"intel": INTEL_FEEDS})
        self.markets = FinnhubSource(registry.client("markets"), settings.finnhub_api_key)
        self.crypto = CoinGeckoSource(registry.client("crypto"))
        self.economic = FREDSource(registry.client("fred"), settings.fred_api_key)
        self.polymarket = PolymarketSource(registry.client("polymarket"))

        self._register_fetchers()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Dashboard":
        registry = ServiceRegistry.from_settings(settings)
        orchestrator = RefreshOrchestrator.from_settings(
            settings, maintenance=registry.prune_caches
        )
        return cls(registry, orchestrator, settings)

    def _register_fetchers(self) -> None:
        register = self.orchestrator.register

        register(RefreshStage.CRITICAL, "News", self._store("news", self.news.fetch))
        register(
            RefreshStage.CRITICAL,
            "Markets",
            self._store("indices", self.markets.fetch_indices),
        )
        register(
            RefreshStage.SECONDARY,
            "Commodities",
            self._store("commodities", self.markets.fetch_commodities),
        )
        register(
            RefreshStage.SECONDARY, "Crypto", self._store("crypto", self.crypto.fetch)
        )
        register(RefreshStage.SECONDARY, "Intel", self._store("intel", self.intel.fetch))
        register(
            RefreshStage.SECONDARY,
            "Economic",
            self._store("economic", self.economic.fetch),
        )
        register(
            RefreshStage.TERTIARY,
            "Polymarket",
            self._store("predictions", self.polymarket.fetch),
        )

    def _store(
        self,
        attr: str,
        fetch: Callable[[], Awaitable[list[Any]]],
    ) -> Callable[[], Awaitable[list[Any]]]:
        """Wrap a fetch so its result replaces the matching panel data."""

        async def fetcher() -> list[Any]:
            result = await fetch()
            setattr(self.data, attr, result)
            self.data.updated_at[attr] = datetime.now()
            return result

        return fetcher

    def start(self) -> None:
        """Start auto refresh. Must be called from within a running event loop."""
        self.orchestrator.start_auto_refresh()

    def get_status(self) -> dict[str, Any]:
        """Refresh state plus per-service health, for operators."""
        state = self.orchestrator.state
        return {
            "refresh": {
                "is_refreshing": state.is_refreshing,
                "current_stage": state.current_stage.value if state.current_stage else None,
                "last_refresh": state.last_refresh.isoformat() if state.last_refresh else None,
                "errors": state.errors,
            },
            **self.registry.get_status(),
        }

    async def close(self) -> None:
        self.orchestrator.shutdown()
        await self.registry.close()
        logger.info("Dashboard closed")
