"""
Tiingo IEX intraday data source.

One ``fetch`` is exactly one HTTP request: budgeting, caching and window
filtering belong to ``RateLimitedMarketDataClient``. Rows are parsed into
``MarketBar`` here and malformed rows never leave this module.
"""
from datetime import datetime
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter

from .cache import utc_day
from .constants import CONNECTION_POOL_SIZE, TIINGO_BASE_URL, TIINGO_TIMEOUT
from .exceptions import DataSourceError
from .logger import logger
from .models import MarketBar, parse_instant
from .validation import parse_number


def parse_bar(row) -> MarketBar | None:
    """Strict bar from one provider row, None if any OHLC value or the timestamp is bad"""
    if not isinstance(row, dict):
        return None
    timestamp = parse_instant(row.get("date"))
    if timestamp is None:
        return None
    ohlc = [parse_number(row.get(k)) for k in ("open", "high", "low", "close")]
    if any(v is None for v in ohlc):
        return None
    open_, high, low, close = ohlc
    return MarketBar(
        timestamp=timestamp,
        open=open_,
        high=high,
        low=low,
        close=close,
        volume=parse_number(row.get("volume")),
    )


def parse_bars(rows: list) -> list[MarketBar]:
    bars = []
    dropped = 0
    for row in rows:
        bar = parse_bar(row)
        if bar is None:
            dropped += 1
            continue
        bars.append(bar)
    if dropped:
        logger.debug("tiingo.rows_dropped", dropped=dropped, kept=len(bars))
    return bars


class TiingoSource:
    """
    Tiingo IEX price endpoint wrapper.

    Uses a shared requests.Session for TCP connection reuse. The adapter
    has retries disabled: every retry would be an unbudgeted request.
    """

    name = "tiingo"

    # Shared session for connection pooling
    _session: requests.Session | None = None

    @classmethod
    def _get_session(cls) -> requests.Session:
        """Get or create shared requests session for connection pooling."""
        if cls._session is None:
            cls._session = requests.Session()
            adapter = HTTPAdapter(
                pool_connections=CONNECTION_POOL_SIZE,
                pool_maxsize=CONNECTION_POOL_SIZE,
                max_retries=0,
            )
            cls._session.mount("https://", adapter)
            logger.debug("tiingo.session_created")
        return cls._session

    def __init__(self, api_key: str, base_url: str = TIINGO_BASE_URL, timeout: int = TIINGO_TIMEOUT):
        if not api_key:
            raise DataSourceError("Tiingo API key is required")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def fetch(self, ticker: str, start: datetime, end: datetime, frequency: str) -> list[MarketBar]:
        """
        Fetch intraday bars for whole UTC days ``start``..``end``.

        Args:
            ticker: Upper-case ticker symbol
            start: First day requested (UTC date is used)
            end: Last day requested (UTC date is used)
            frequency: Tiingo resample frequency (e.g. 5min)

        Returns:
            Parsed bars in provider order

        Raises:
            DataSourceError: On network errors, non-2xx status or a non-array payload
        """
        url = f"{self.base_url}/iex/{quote(ticker, safe='')}/prices"
        params = {
            "token": self.api_key,
            "startDate": utc_day(start),
            "endDate": utc_day(end),
            "resampleFreq": frequency,
            "columns": "date,open,high,low,close,volume",
        }

        logger.debug("tiingo.request", ticker=ticker, start=params["startDate"],
                     end=params["endDate"], frequency=frequency)

        try:
            r = self._get_session().get(
                url,
                params=params,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("tiingo.network_error", ticker=ticker, error=str(e)[:100])
            raise DataSourceError(f"Network error for {ticker}", {"ticker": ticker}, e)

        if not r.ok:
            raise DataSourceError(
                f"Tiingo request failed ({r.status_code} {r.reason}): {r.text[:200]}",
                {"ticker": ticker, "status": r.status_code},
            )

        try:
            payload = r.json()
        except ValueError as e:
            raise DataSourceError(f"Invalid JSON from Tiingo for {ticker}", {"ticker": ticker}, e)

        if not isinstance(payload, list):
            raise DataSourceError(f"Unexpected Tiingo response for {ticker}", {"ticker": ticker})

        bars = parse_bars(payload)
        logger.info("tiingo.fetched", ticker=ticker, rows=len(payload), bars=len(bars))
        return bars
