"""
In-memory bar cache for one market data client.

Features:
- Exact (ticker, frequency, start day, end day) keys
- Lives exactly as long as its client, no expiry
- Hit/miss statistics
"""
import threading
from datetime import datetime

from .logger import logger
from .market_calendar import to_utc
from .models import MarketBar


def utc_day(instant: datetime) -> str:
    """UTC calendar day as YYYY-MM-DD"""
    return to_utc(instant).strftime("%Y-%m-%d")


def build_cache_key(ticker: str, frequency: str, start: datetime, end: datetime) -> str:
    return "::".join([ticker.upper(), frequency, utc_day(start), utc_day(end)])


class BarCache:
    """Memoized bar series keyed by request"""

    def __init__(self):
        self.cache: dict[str, list[MarketBar]] = {}
        self.hits = 0
        self.misses = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> list[MarketBar] | None:
        """
        Get cached series for key.

        Returns:
            The series, or None if the key was never stored
        """
        with self._lock:
            series = self.cache.get(key)
            if series is None:
                self.misses += 1
                return None
            self.hits += 1
        logger.debug("cache.hit", key=key, bars=len(series))
        return series

    def set(self, key: str, series: list[MarketBar]):
        with self._lock:
            self.cache[key] = series
        logger.debug("cache.set", key=key, bars=len(series))

    def get_stats(self) -> dict:
        """Get cache statistics"""
        with self._lock:
            return {
                "total_entries": len(self.cache),
                "hits": self.hits,
                "misses": self.misses,
            }
