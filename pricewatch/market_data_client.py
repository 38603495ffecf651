"""
Rate-limited market data client.

One instance per processing sweep. It owns a RequestBudget and a BarCache,
so neither leaks between sweeps:

    client = RateLimitedMarketDataClient(TiingoSource(api_key))
    bars = client.fetch_bars("AAPL", start, end, "5min")
"""
from datetime import datetime, timedelta
from typing import Protocol

from .cache import BarCache, build_cache_key
from .constants import (
    DAILY_REQUEST_LIMIT,
    DEFAULT_FREQUENCY,
    HOURLY_REQUEST_LIMIT,
    PROVIDER_END_PADDING_DAYS,
    REQUEST_SAFETY_MARGIN,
)
from .logger import logger
from .market_calendar import to_utc
from .models import MarketBar
from .rate_limiter import RequestBudget


class BarSource(Protocol):
    """A provider that answers one bar query with one request"""

    name: str

    def fetch(self, ticker: str, start: datetime, end: datetime, frequency: str) -> list[MarketBar]:
        ...


class RateLimitedMarketDataClient:
    """
    Budgeted, memoizing front for a BarSource.

    - Every cache miss spends one request from the budget before the
      provider is called; BudgetExceededError is raised with no call made.
    - The full provider answer is cached per (ticker, frequency, start day,
      end day) and every return, hit or miss, is cut to the caller's bounds.
    - Provider errors propagate to the caller unchanged.
    """

    def __init__(
        self,
        source: BarSource,
        hourly_limit: int = HOURLY_REQUEST_LIMIT,
        daily_limit: int = DAILY_REQUEST_LIMIT,
        safety_margin: int = REQUEST_SAFETY_MARGIN,
    ):
        self.source = source
        self.budget = RequestBudget(hourly_limit, daily_limit, safety_margin)
        self.cache = BarCache()

    @property
    def provider_name(self) -> str:
        return getattr(self.source, "name", "unknown")

    def get_request_count(self) -> int:
        return self.budget.used

    def fetch_bars(
        self,
        ticker: str,
        start: datetime,
        end: datetime,
        frequency: str = DEFAULT_FREQUENCY,
    ) -> list[MarketBar]:
        """
        Bars for ``ticker`` with ``start <= timestamp <= end``, ascending.

        The provider is asked for one extra day past ``end`` so the final
        session is complete, then the result is cut back to the requested bounds.

        Raises:
            BudgetExceededError: If the request budget is exhausted
            DataSourceError: If the provider fails
        """
        ticker = ticker.upper()
        start = to_utc(start)
        end = to_utc(end)

        key = build_cache_key(ticker, frequency, start, end)
        cached = self.cache.get(key)
        if cached is not None:
            return normalize_series(cached, start, end)

        padded_end = end + timedelta(days=PROVIDER_END_PADDING_DAYS)

        self.budget.consume(self.provider_name)
        logger.debug(
            "market_data.fetch",
            ticker=ticker,
            start=start.isoformat(),
            end=end.isoformat(),
            frequency=frequency,
            request_count=self.budget.used,
        )
        raw = self.source.fetch(ticker, start, padded_end, frequency)

        # Keep the whole provider answer; the key only pins the UTC days
        self.cache.set(key, normalize_series(raw))
        return normalize_series(raw, start, end)

    def get_stats(self) -> dict:
        return {
            "provider": self.provider_name,
            "budget": self.budget.get_stats(),
            "cache": self.cache.get_stats(),
        }


def normalize_series(
    bars: list[MarketBar],
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[MarketBar]:
    """Keep bars inside [start, end] (either bound optional), sort ascending, drop repeated timestamps (first wins)"""
    seen = set()
    kept = []
    for bar in bars:
        if start is not None and bar.timestamp < start:
            continue
        if end is not None and bar.timestamp > end:
            continue
        if bar.timestamp in seen:
            continue
        seen.add(bar.timestamp)
        kept.append(bar)
    kept.sort(key=lambda b: b.timestamp)
    return kept


def find_last_bar_on_or_before(series: list[MarketBar], target: datetime) -> MarketBar | None:
    target = to_utc(target)
    for bar in reversed(series):
        if bar.timestamp <= target:
            return bar
    return None


def find_first_bar_on_or_after(series: list[MarketBar], target: datetime) -> MarketBar | None:
    target = to_utc(target)
    for bar in series:
        if bar.timestamp >= target:
            return bar
    return None
