"""
Data sources feeding the dashboard refresh tiers.
"""

from monitor.datasource.base import BaseDataSource
from monitor.datasource.crypto import CoinGeckoSource, CryptoPrice
from monitor.datasource.economic import EconomicIndicator, FREDSource
from monitor.datasource.markets import (
    FinnhubSource,
    MarketItem,
    PolymarketSource,
    Prediction,
)
from monitor.datasource.news import FeedDocument, NewsFeedSource

__all__ = [
    "BaseDataSource",
    "CoinGeckoSource",
    "CryptoPrice",
    "EconomicIndicator",
    "FREDSource",
    "FeedDocument",
    "FinnhubSource",
    "MarketItem",
    "NewsFeedSource",
    "PolymarketSource",
    "Prediction",
]
