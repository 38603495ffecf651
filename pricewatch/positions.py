"""
Adverse-move checks for user-held positions.

A repeating check with no expiry: each run refreshes the last seen price of
every watched position and raises an alert when the price fell by at least
the position's threshold since the previous run.
"""
from datetime import datetime, timedelta

from .constants import DEFAULT_FREQUENCY, POSITION_ALERT_THRESHOLD, POSITION_BATCH_LIMIT, POSITION_LOOKBACK_DAYS
from .exceptions import DataSourceError
from .logger import logger
from .market_calendar import to_utc, utc_now
from .market_data_client import RateLimitedMarketDataClient, find_last_bar_on_or_before
from .models import PositionDropAlert, PositionResult, PositionUpdate, WatchedPosition
from .processor import current_price_of
from .store import PositionStore
from .validation import is_positive_price


def threshold_for(position: WatchedPosition, default: float = POSITION_ALERT_THRESHOLD) -> float:
    threshold = position.alert_threshold_pct
    return threshold if is_positive_price(threshold) else default


class WatchedPositionProcessor:
    """Refreshes watched positions and reports adverse moves"""

    def __init__(
        self,
        store: PositionStore,
        client: RateLimitedMarketDataClient,
        *,
        batch_limit: int = POSITION_BATCH_LIMIT,
        lookback: timedelta = timedelta(days=POSITION_LOOKBACK_DAYS),
        frequency: str = DEFAULT_FREQUENCY,
        default_threshold: float = POSITION_ALERT_THRESHOLD,
    ):
        self.store = store
        self.client = client
        self.batch_limit = batch_limit
        self.lookback = lookback
        self.frequency = frequency
        self.default_threshold = default_threshold

    def process_watched_positions(self, now: datetime | None = None) -> PositionResult:
        """
        Run one pass over all watched positions.

        Raises:
            StoreError: If loading or persisting fails
        """
        now = to_utc(now) if now is not None else utc_now()
        result = PositionResult()

        positions = self.store.fetch_watched(self.batch_limit)
        if not positions:
            return result

        grouped: dict[str, list[WatchedPosition]] = {}
        for position in positions:
            ticker = position.ticker.upper()
            if ticker:
                grouped.setdefault(ticker, []).append(position)

        source = f"{self.client.provider_name}_intraday"
        updates: list[PositionUpdate] = []

        for ticker, group in grouped.items():
            try:
                series = self.client.fetch_bars(ticker, now - self.lookback, now, self.frequency)
            except DataSourceError as e:
                logger.warning("positions.fetch_failed", ticker=ticker, error=str(e)[:200])
                series = []

            bar = find_last_bar_on_or_before(series, now) if series else None
            current_price = current_price_of(bar) if bar is not None else None

            for position in group:
                result.checked += 1
                if current_price is None:
                    result.data_unavailable += 1
                    continue

                changes = {
                    "ticker": ticker,
                    "last_price": current_price,
                    "last_price_observed_at": bar.timestamp,
                    "last_price_source": source,
                }

                previous_price = position.last_price
                if is_positive_price(previous_price):
                    threshold = threshold_for(position, self.default_threshold)
                    move_pct = (current_price - previous_price) / previous_price
                    if move_pct <= -threshold:
                        result.alerts.append(PositionDropAlert(
                            position_id=position.id,
                            user_id=position.user_id,
                            ticker=ticker,
                            shares=position.shares,
                            previous_price=previous_price,
                            current_price=current_price,
                            move_pct=move_pct,
                            threshold_pct=threshold,
                            checked_at=now,
                        ))
                        changes.update(
                            last_alert_at=now,
                            last_alert_price=current_price,
                            last_alert_move_pct=move_pct,
                        )
                        logger.info("positions.drop_alert", ticker=ticker, position_id=position.id,
                                    move_pct=round(move_pct, 4))

                updates.append(PositionUpdate(position.id, changes))
                result.updated += 1

        self.store.apply_updates(updates)
        logger.info("positions.sweep_done", **result.summary())
        return result
