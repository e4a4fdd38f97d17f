"""
CoinGecko API data source for cryptocurrency prices.

API Documentation: https://www.coingecko.com/en/api/documentation
Free tier: 30 calls/minute (no API key required)
"""

from typing import Any

from loguru import logger
from pydantic import BaseModel

from monitor.config import API_URLS
from monitor.datasource.base import BaseDataSource
from monitor.services.client import RequestOptions, ServiceClient


class CryptoPrice(BaseModel):
    """Cryptocurrency price data."""

    id: str
    symbol: str
    name: str
    price: float
    change_24h: float = 0
    market_cap: float | None = None
    volume_24h: float | None = None


# Default cryptocurrencies to track
CRYPTO_IDS = ["bitcoin", "ethereum", "solana"]


class CoinGeckoSource(BaseDataSource[CryptoPrice]):
    """
    CoinGecko API data source.

    Fetches market data for the tracked coins, ordered by market cap.
    """

    BASE_URL = API_URLS["coingecko"]

    def __init__(
        self,
        client: ServiceClient,
        coin_ids: list[str] | None = None,
    ):
        super().__init__(client)
        self.coin_ids = coin_ids or CRYPTO_IDS

    def is_configured(self) -> bool:
        """CoinGecko free tier doesn't require API key."""
        return True

    async def fetch(self) -> list[CryptoPrice]:
        """
        Fetch cryptocurrency prices from CoinGecko.

        Returns:
            List of CryptoPrice objects
        """
        data = await self.client.get(
            f"{self.BASE_URL}/coins/markets",
            RequestOptions(
                params={
                    "vs_currency": "usd",
                    "ids": ",".join(self.coin_ids),
                    "order": "market_cap_desc",
                }
            ),
        )
        prices = self._transform_response(data)
        logger.info(f"Fetched {len(prices)} crypto prices")
        return prices

    def _transform_response(self, data: list[dict[str, Any]]) -> list[CryptoPrice]:
        """Transform CoinGecko markets response to CryptoPrice models."""
        return [
            CryptoPrice(
                id=coin["id"],
                symbol=coin["symbol"].upper(),
                name=coin["name"],
                price=coin.get("current_price") or 0,
                change_24h=coin.get("price_change_percentage_24h") or 0,
                market_cap=coin.get("market_cap"),
                volume_24h=coin.get("total_volume"),
            )
            for coin in data
        ]
