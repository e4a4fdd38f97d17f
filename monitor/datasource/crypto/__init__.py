"""
CoinGecko crypto data source.
"""

from monitor.datasource.crypto.coingecko import CoinGeckoSource, CryptoPrice

__all__ = ["CoinGeckoSource", "CryptoPrice"]
