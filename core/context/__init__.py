"""
Market Data

Price snapshots and key metrics used to enrich discovered opportunities.
"""
from core.context.market_data import (
    MarketDataProvider,
    YFinanceMarketData,
    PriceSnapshot,
    KeyMetrics
)

__all__ = [
    "MarketDataProvider",
    "YFinanceMarketData",
    "PriceSnapshot",
    "KeyMetrics"
]
