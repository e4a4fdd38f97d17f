"""
FRED API data source for Federal Reserve economic indicators.

API Documentation: https://fred.stlouisfed.org/docs/api/fred/
Get API key at: https://fred.stlouisfed.org/docs/api/api_key.html
"""

from datetime import date as date_type
from typing import Any

from loguru import logger
from pydantic import BaseModel

from monitor.config import API_URLS
from monitor.datasource.base import BaseDataSource
from monitor.services.client import RequestOptions, ServiceClient
from monitor.services.errors import ServiceError


class EconomicIndicator(BaseModel):
    """Economic indicator data."""

    series_id: str
    name: str
    value: float | None = None
    previous_value: float | None = None
    change: float | None = None
    unit: str = "%"
    date: date_type | None = None


# Key economic indicators to track
INDICATORS = {
    "FEDFUNDS": {"name": "Fed Funds Rate", "unit": "%"},
    "DGS10": {"name": "10Y Treasury", "unit": "%"},
    "UNRATE": {"name": "Unemployment Rate", "unit": "%"},
    "WALCL": {"name": "Fed Balance Sheet", "unit": "$M"},
}


class FREDSource(BaseDataSource[EconomicIndicator]):
    """
    FRED API data source for economic indicators.

    Requires a free API key from https://fred.stlouisfed.org/
    """

    BASE_URL = API_URLS["fred"]

    def __init__(self, client: ServiceClient, api_key: str):
        super().__init__(client)
        self.api_key = api_key

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def fetch(self) -> list[EconomicIndicator]:
        """Fetch all configured economic indicators."""
        if not self.is_configured():
            raise ServiceError("FRED API key not configured", service_id=self.service_id)

        indicators = []
        for series_id in INDICATORS:
            try:
                indicator = await self._fetch_indicator(series_id)
            except Exception as e:
                logger.warning(f"Failed to fetch FRED series {series_id}: {e}")
                continue
            if indicator:
                indicators.append(indicator)

        if not indicators:
            raise ServiceError("No FRED indicators available", service_id=self.service_id)

        logger.info(f"Fetched {len(indicators)} economic indicators")
        return indicators

    async def _fetch_series(self, series_id: str, limit: int = 2) -> list[dict[str, Any]]:
        """Fetch the latest observations for a FRED series."""
        data = await self.client.get(
            f"{self.BASE_URL}/series/observations",
            RequestOptions(
                params={
                    "series_id": series_id,
                    "api_key": self.api_key,
                    "file_type": "json",
                    "limit": limit,
                    "sort_order": "desc",
                }
            ),
        )
        return data.get("observations", [])

    async def _fetch_indicator(self, series_id: str) -> EconomicIndicator | None:
        observations = [
            obs for obs in await self._fetch_series(series_id) if obs.get("value") != "."
        ]
        if not observations:
            return None

        meta = INDICATORS[series_id]
        value = float(observations[0]["value"])
        previous = float(observations[1]["value"]) if len(observations) > 1 else None

        return EconomicIndicator(
            series_id=series_id,
            name=meta["name"],
            value=value,
            previous_value=previous,
            change=value - previous if previous is not None else None,
            unit=meta["unit"],
            date=observations[0].get("date"),
        )
