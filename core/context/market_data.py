"""
Market data for opportunity enrichment.

Facts from yfinance: a price snapshot and a key-metrics record per ticker.
yfinance is blocking, so every lookup runs in the default thread pool.
"""
import asyncio
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import yfinance as yf

from core.pipeline.errors import MarketDataError

logger = logging.getLogger(__name__)


@dataclass
class PriceSnapshot:
    """Latest price and size for one ticker."""
    ticker: str
    price: Optional[float] = None
    market_cap: Optional[float] = None  # millions
    currency: Optional[str] = None


@dataclass
class KeyMetrics:
    """Valuation and balance sheet figures for one ticker."""
    ticker: str
    pe: Optional[float] = None
    pb: Optional[float] = None
    debt_to_equity: Optional[float] = None
    roe: Optional[float] = None
    revenue: Optional[float] = None  # millions, trailing twelve months

    def to_metrics(self) -> Dict[str, Optional[float]]:
        return {
            "pe": self.pe,
            "pb": self.pb,
            "debt_to_equity": self.debt_to_equity,
            "roe": self.roe,
            "revenue": self.revenue,
        }


class MarketDataProvider(ABC):
    """Per-ticker lookups. Either call may raise for a single ticker."""

    @abstractmethod
    async def get_price_snapshot(self, ticker: str) -> PriceSnapshot:
        ...

    @abstractmethod
    async def get_key_metrics(self, ticker: str) -> KeyMetrics:
        ...


def _clean(value: Any) -> Optional[float]:
    """yfinance returns None, NaN or strings for missing fields."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _millions(value: Any) -> Optional[float]:
    number = _clean(value)
    return number / 1_000_000 if number is not None else None


class YFinanceMarketData(MarketDataProvider):
    """
    yfinance-backed provider.

    ``Ticker.info`` is slow and rate limited, so responses are cached
    per ticker for ``cache_ttl``.
    """

    def __init__(self, cache_ttl: timedelta = timedelta(minutes=5)):
        self.cache_ttl = cache_ttl
        self._info_cache: Dict[str, Tuple[datetime, Dict[str, Any]]] = {}

    def _fetch_info(self, ticker: str) -> Dict[str, Any]:
        cached = self._info_cache.get(ticker)
        if cached and datetime.now(timezone.utc) - cached[0] < self.cache_ttl:
            return cached[1]
        info = yf.Ticker(ticker).info or {}
        if not info:
            raise MarketDataError(ticker, "no data returned")
        self._info_cache[ticker] = (datetime.now(timezone.utc), info)
        return info

    def _fetch_snapshot(self, ticker: str) -> PriceSnapshot:
        fast = yf.Ticker(ticker).fast_info
        price = _clean(fast.last_price)
        if price is None:
            raise MarketDataError(ticker, "no last price")
        return PriceSnapshot(
            ticker=ticker,
            price=price,
            market_cap=_millions(fast.market_cap),
            currency=fast.currency,
        )

    def _fetch_metrics(self, ticker: str) -> KeyMetrics:
        info = self._fetch_info(ticker)
        return KeyMetrics(
            ticker=ticker,
            pe=_clean(info.get("trailingPE")),
            pb=_clean(info.get("priceToBook")),
            debt_to_equity=_clean(info.get("debtToEquity")),
            roe=_clean(info.get("returnOnEquity")),
            revenue=_millions(info.get("totalRevenue")),
        )

    async def _run(self, fn, ticker: str):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn, ticker)
        except MarketDataError:
            raise
        except Exception as e:
            raise MarketDataError(ticker, str(e)) from e

    async def get_price_snapshot(self, ticker: str) -> PriceSnapshot:
        return await self._run(self._fetch_snapshot, ticker)

    async def get_key_metrics(self, ticker: str) -> KeyMetrics:
        return await self._run(self._fetch_metrics, ticker)
