"""
Finnhub quotes for stock indices and commodities.

Finnhub's free tier has no index or futures quotes, so every instrument is
tracked through an ETF proxy. The "markets" circuit breaker and the
"finnhub" rate limiter are shared by both groups.
"""

import asyncio
from typing import Any

from loguru import logger
from pydantic import BaseModel

from monitor.config import API_URLS
from monitor.datasource.base import BaseDataSource
from monitor.services.client import RequestOptions, ServiceClient
from monitor.services.errors import ServiceError


class MarketItem(BaseModel):
    """Latest quote for an index or commodity."""

    symbol: str
    name: str
    type: str  # 'index' | 'commodity'
    price: float | None = None
    change: float | None = None
    change_percent: float | None = None

    @classmethod
    def from_quote(
        cls, symbol: str, name: str, item_type: str, quote: dict[str, Any] | None
    ) -> "MarketItem":
        if not quote:
            return cls(symbol=symbol, name=name, type=item_type)
        return cls(
            symbol=symbol,
            name=name,
            type=item_type,
            price=quote.get("c"),
            change=quote.get("d"),
            change_percent=quote.get("dp"),
        )


# (display symbol, ETF proxy, name)
INDICES = [
    ("^DJI", "DIA", "Dow Jones"),
    ("^GSPC", "SPY", "S&P 500"),
    ("^IXIC", "QQQ", "NASDAQ"),
    ("^RUT", "IWM", "Russell 2000"),
]

COMMODITIES = [
    ("GC=F", "GLD", "Gold"),
    ("CL=F", "USO", "Crude Oil"),
    ("NG=F", "UNG", "Natural Gas"),
    ("SI=F", "SLV", "Silver"),
    ("^VIX", "VIXY", "VIX (Volatility)"),
]


class FinnhubSource(BaseDataSource[MarketItem]):
    """Index and commodity quotes from Finnhub. Needs an API key."""

    BASE_URL = API_URLS["finnhub"]

    def __init__(self, client: ServiceClient, api_key: str):
        super().__init__(client)
        self.api_key = api_key

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def fetch(self) -> list[MarketItem]:
        return await self.fetch_indices() + await self.fetch_commodities()

    async def fetch_indices(self) -> list[MarketItem]:
        return await self._fetch_group(INDICES, "index")

    async def fetch_commodities(self) -> list[MarketItem]:
        return await self._fetch_group(COMMODITIES, "commodity")

    async def _fetch_group(
        self,
        group: list[tuple[str, str, str]],
        item_type: str,
    ) -> list[MarketItem]:
        """
        Fetch quotes for a group of symbols concurrently.

        A failed quote leaves its item without a price. The group only fails
        when no quote could be fetched at all.
        """
        if not self.is_configured():
            raise ServiceError("Finnhub API key not configured", service_id=self.service_id)

        quotes = await asyncio.gather(
            *(self._fetch_quote(etf) for _, etf, _ in group),
            return_exceptions=True,
        )

        items = []
        failed = 0
        for (symbol, etf, name), quote in zip(group, quotes):
            if isinstance(quote, Exception):
                logger.warning(f"Finnhub quote for {etf} failed: {quote}")
                failed += 1
                quote = None
            items.append(MarketItem.from_quote(symbol, name, item_type, quote))

        if failed == len(group):
            raise ServiceError(f"All {item_type} quotes failed", service_id=self.service_id)

        logger.info(f"Fetched {len(items) - failed}/{len(items)} {item_type} quotes")
        return items

    async def _fetch_quote(self, etf: str) -> dict[str, Any] | None:
        data = await self.client.get(
            f"{self.BASE_URL}/quote",
            RequestOptions(params={"symbol": etf, "token": self.api_key}),
        )
        # Unknown symbols come back as all zeros
        if data.get("c", 0) == 0 and data.get("pc", 0) == 0:
            return None
        return data
