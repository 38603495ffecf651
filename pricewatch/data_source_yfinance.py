"""
Yahoo Finance data source using yfinance library
Free, no API key required. Same one-call-per-fetch contract as TiingoSource.
"""
import math
from datetime import datetime, timedelta

import pandas as pd
import yfinance as yf

from .exceptions import DataSourceError
from .logger import logger
from .market_calendar import to_utc
from .models import MarketBar

INTERVALS = {
    "1min": "1m",
    "5min": "5m",
    "15min": "15m",
    "30min": "30m",
    "1hour": "1h",
}


def bars_from_frame(df: pd.DataFrame) -> list[MarketBar]:
    """
    Convert a yfinance history frame into strict bars.

    Rows with a missing or non-finite OHLC value are dropped.
    """
    if df is None or df.empty:
        return []

    bars = []
    for ts, row in df.iterrows():
        try:
            timestamp = pd.Timestamp(ts)
        except (TypeError, ValueError):
            continue
        if pd.isna(timestamp):
            continue
        if timestamp.tzinfo is None:
            timestamp = timestamp.tz_localize("UTC")

        values = [row.get(col) for col in ("Open", "High", "Low", "Close")]
        try:
            values = [float(v) for v in values]
        except (TypeError, ValueError):
            continue
        if not all(math.isfinite(v) for v in values):
            continue

        volume = row.get("Volume")
        try:
            volume = float(volume) if volume is not None and math.isfinite(float(volume)) else None
        except (TypeError, ValueError):
            volume = None

        bars.append(MarketBar(
            timestamp=to_utc(timestamp.to_pydatetime()),
            open=values[0],
            high=values[1],
            low=values[2],
            close=values[3],
            volume=volume,
        ))
    return bars


class YFinanceSource:
    """yfinance wrapper producing MarketBar lists"""

    name = "yfinance"

    def fetch(self, ticker: str, start: datetime, end: datetime, frequency: str) -> list[MarketBar]:
        """
        Fetch intraday bars for UTC days ``start``..``end``.

        Raises:
            DataSourceError: If the frequency is unsupported or yfinance fails
        """
        interval = INTERVALS.get(frequency)
        if interval is None:
            raise DataSourceError(f"Unsupported frequency for yfinance: {frequency}", {"ticker": ticker})

        # yfinance treats ``end`` as exclusive
        start_day = to_utc(start).date()
        end_day = to_utc(end).date() + timedelta(days=1)

        try:
            logger.debug("yfinance.fetch", ticker=ticker, start=start_day, end=end_day, interval=interval)
            df = yf.Ticker(ticker).history(start=start_day.isoformat(), end=end_day.isoformat(), interval=interval)
        except Exception as e:
            logger.error("yfinance.error", ticker=ticker, error=str(e)[:100])
            raise DataSourceError(f"Failed to fetch data for {ticker}", {"ticker": ticker}, e)

        bars = bars_from_frame(df)
        logger.info("yfinance.success", ticker=ticker, bars=len(bars))
        return bars
