"""
FRED economic data source.
"""

from monitor.datasource.economic.fred import EconomicIndicator, FREDSource

__all__ = ["EconomicIndicator", "FREDSource"]
