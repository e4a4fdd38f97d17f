"""
Polymarket API data source for prediction markets.

API Documentation: https://docs.polymarket.com/
Public API, no key required. Limit 100 calls/minute.
"""

import json
from datetime import datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel

from monitor.config import API_URLS
from monitor.datasource.base import BaseDataSource
from monitor.services.client import RequestOptions, ServiceClient
from monitor.services.errors import ServiceError


class Prediction(BaseModel):
    """A prediction market question with its leading outcome probability."""

    id: str
    question: str
    probability: float
    volume: float = 0
    end_date: datetime | None = None


class PolymarketSource(BaseDataSource[Prediction]):
    """
    Polymarket data source.

    Fetches open markets sorted by 24h volume and keeps the most traded.
    """

    BASE_URL = API_URLS["polymarket"]
    MIN_VOLUME = 10_000
    MAX_MARKETS = 15

    def __init__(self, client: ServiceClient):
        super().__init__(client)

    def is_configured(self) -> bool:
        return True

    async def fetch(self) -> list[Prediction]:
        data = await self.client.get(
            f"{self.BASE_URL}/markets",
            RequestOptions(
                params={
                    "limit": 20,
                    "closed": "false",
                    "order": "volume24hr",
                    "ascending": "false",
                }
            ),
        )

        markets = data if isinstance(data, list) else data.get("data", [])
        if not markets:
            raise ServiceError(
                "No markets returned from Polymarket", service_id=self.service_id
            )

        predictions = [
            self._to_prediction(m)
            for m in markets
            if m.get("active") and (m.get("volume") or 0) > self.MIN_VOLUME
        ]
        predictions.sort(key=lambda p: p.volume, reverse=True)

        logger.info(f"Fetched {len(predictions)} prediction markets")
        return predictions[: self.MAX_MARKETS]

    def _to_prediction(self, market: dict[str, Any]) -> Prediction:
        # outcomePrices is a JSON-encoded list, e.g. '["0.65", "0.35"]'
        probability = 0.5
        try:
            prices = json.loads(market.get("outcomePrices") or "[]")
            if prices:
                probability = float(prices[0])
        except (ValueError, TypeError):
            pass

        return Prediction(
            id=str(market.get("id") or market.get("conditionId")),
            question=market.get("question", ""),
            probability=probability,
            volume=float(market.get("volume") or 0),
            end_date=market.get("endDate"),
        )
