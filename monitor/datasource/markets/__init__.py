"""
Market and prediction market data sources.
"""

from monitor.datasource.markets.finnhub import FinnhubSource, MarketItem
from monitor.datasource.markets.polymarket import PolymarketSource, Prediction

__all__ = ["FinnhubSource", "MarketItem", "PolymarketSource", "Prediction"]
