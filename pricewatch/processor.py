"""
Recurring sweep over due price watches.

Each sweep:
1. loads pending tasks whose next_check_at has passed (oldest first, capped)
2. fetches bars once per ticker through the sweep's rate-limited client
3. decides trigger / expire / reschedule for every task
4. writes all updates back in one batch and returns the new alerts

``now`` is captured once per sweep and drives every decision in it.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta

from .constants import (
    ABANDON_MOVE_PCT,
    CHECK_INTERVAL_MINUTES,
    DATA_UNAVAILABLE_BACKOFF_MINUTES,
    DEFAULT_FREQUENCY,
    FETCH_LOOKBACK_DAYS,
    FETCH_PADDING_MINUTES,
    STATUS_EXPIRED,
    STATUS_TRIGGERED,
    STOP_ABOVE_15PCT,
    STOP_INVALID_ENTRY_PRICE,
    STOP_INVALID_TICKER,
    STOP_MARKET_CLOSE,
    STOP_TRIGGERED,
    TRIGGER_MOVE_PCT,
    WATCH_BATCH_LIMIT,
)
from .exceptions import DataSourceError
from .logger import logger
from .market_calendar import to_utc, utc_now
from .market_data_client import RateLimitedMarketDataClient, find_last_bar_on_or_before
from .models import MarketBar, PriceWatchAlert, PriceWatchResult, WatchTask, WatchUpdate
from .store import WatchStore
from .validation import is_positive_price

# Decision outcomes
INVALID_ENTRY = "invalid_entry"
INVALID_TICKER = "invalid_ticker"
NO_DATA_EXPIRED = "no_data_expired"
NO_DATA_RESCHEDULED = "no_data_rescheduled"
ABOVE_CEILING = "above_ceiling"
TRIGGERED = "triggered"
CLOSED = "closed"
RESCHEDULED = "rescheduled"


@dataclass
class TaskDecision:
    update: WatchUpdate
    outcome: str
    alert: PriceWatchAlert | None = None


def group_by_ticker(tasks: list[WatchTask]) -> dict[str, list[WatchTask]]:
    """Group tasks by upper-case ticker, keeping load order inside each group"""
    groups: dict[str, list[WatchTask]] = {}
    for task in tasks:
        ticker = (task.ticker or "").strip().upper()
        if not ticker:
            continue
        groups.setdefault(ticker, []).append(task)
    return groups


def compute_fetch_window(
    tasks: list[WatchTask],
    now: datetime,
    lookback: timedelta = timedelta(days=FETCH_LOOKBACK_DAYS),
    padding: timedelta = timedelta(minutes=FETCH_PADDING_MINUTES),
) -> tuple[datetime, datetime]:
    """
    Shared fetch window for one ticker group.

    Starts ``padding`` before the earliest monitor start or entry observation
    in the group, but never more than ``lookback`` before ``now``; ends at ``now``.
    """
    now = to_utc(now)
    earliest = now
    for task in tasks:
        for candidate in (task.monitor_start, task.entry_price_observed_at):
            if candidate is not None and candidate < earliest:
                earliest = candidate
    start = max(earliest - padding, now - lookback)
    return start, now


def current_price_of(bar: MarketBar) -> float | None:
    """Bar close, falling back to the open; None when neither is a positive price"""
    if is_positive_price(bar.close):
        return bar.close
    if is_positive_price(bar.open):
        return bar.open
    return None


class PriceWatchProcessor:
    """
    State machine over pending WatchTasks.

    Transitions: pending -> triggered | expired (terminal), or
    pending -> pending with next_check_at advanced.
    """

    def __init__(
        self,
        store: WatchStore,
        client: RateLimitedMarketDataClient,
        *,
        batch_limit: int = WATCH_BATCH_LIMIT,
        frequency: str = DEFAULT_FREQUENCY,
        check_interval: timedelta = timedelta(minutes=CHECK_INTERVAL_MINUTES),
        unavailable_backoff: timedelta = timedelta(minutes=DATA_UNAVAILABLE_BACKOFF_MINUTES),
        lookback: timedelta = timedelta(days=FETCH_LOOKBACK_DAYS),
        padding: timedelta = timedelta(minutes=FETCH_PADDING_MINUTES),
        trigger_move_pct: float = TRIGGER_MOVE_PCT,
        abandon_move_pct: float = ABANDON_MOVE_PCT,
        fetch_workers: int = 1,
    ):
        self.store = store
        self.client = client
        self.batch_limit = batch_limit
        self.frequency = frequency
        self.check_interval = check_interval
        self.unavailable_backoff = unavailable_backoff
        self.lookback = lookback
        self.padding = padding
        self.trigger_move_pct = trigger_move_pct
        self.abandon_move_pct = abandon_move_pct
        self.fetch_workers = max(1, fetch_workers)

    # ==================== Fetching ====================

    def _fetch_group(self, ticker: str, tasks: list[WatchTask], now: datetime) -> list[MarketBar]:
        start, end = compute_fetch_window(tasks, now, self.lookback, self.padding)
        try:
            return self.client.fetch_bars(ticker, start, end, self.frequency)
        except DataSourceError as e:
            logger.warning("price_watch.fetch_failed", ticker=ticker, tasks=len(tasks), error=str(e)[:200])
            return []

    def _fetch_all(self, groups: dict[str, list[WatchTask]], now: datetime) -> dict[str, list[MarketBar]]:
        if self.fetch_workers == 1 or len(groups) <= 1:
            return {ticker: self._fetch_group(ticker, tasks, now) for ticker, tasks in groups.items()}

        with ThreadPoolExecutor(max_workers=self.fetch_workers) as pool:
            futures = {
                ticker: pool.submit(self._fetch_group, ticker, tasks, now)
                for ticker, tasks in groups.items()
            }
            return {ticker: future.result() for ticker, future in futures.items()}

    # ==================== Decisions ====================

    def _next_check(self, now: datetime, interval: timedelta, close_at: datetime) -> datetime:
        return min(now + interval, close_at)

    def _no_data(self, task: WatchTask, now: datetime) -> TaskDecision:
        changes = {"last_price": None, "last_price_observed_at": None}
        if now >= task.monitor_close:
            changes.update(status=STATUS_EXPIRED, stop_reason=STOP_MARKET_CLOSE, next_check_at=None)
            return TaskDecision(WatchUpdate(task.id, changes), NO_DATA_EXPIRED)

        changes["next_check_at"] = self._next_check(now, self.unavailable_backoff, task.monitor_close)
        return TaskDecision(WatchUpdate(task.id, changes), NO_DATA_RESCHEDULED)

    def evaluate_task(self, task: WatchTask, series: list[MarketBar], now: datetime) -> TaskDecision:
        """Decide the transition for one pending task given its ticker's bars"""
        now = to_utc(now)
        if not (task.ticker or "").strip():
            changes = {"status": STATUS_EXPIRED, "stop_reason": STOP_INVALID_TICKER, "next_check_at": None}
            return TaskDecision(WatchUpdate(task.id, changes), INVALID_TICKER)

        entry_price = task.entry_price
        if not is_positive_price(entry_price):
            changes = {"status": STATUS_EXPIRED, "stop_reason": STOP_INVALID_ENTRY_PRICE, "next_check_at": None}
            return TaskDecision(WatchUpdate(task.id, changes), INVALID_ENTRY)

        bar = find_last_bar_on_or_before(series, now) if series else None
        if bar is None:
            return self._no_data(task, now)

        current_price = current_price_of(bar)
        if current_price is None:
            return self._no_data(task, now)

        move_pct = (current_price - entry_price) / entry_price
        changes = {"last_price": current_price, "last_price_observed_at": bar.timestamp}

        if move_pct >= self.abandon_move_pct:
            changes.update(status=STATUS_EXPIRED, stop_reason=STOP_ABOVE_15PCT, next_check_at=None)
            return TaskDecision(WatchUpdate(task.id, changes), ABOVE_CEILING)

        # Signed and inclusive: a drop below entry triggers as well
        if move_pct <= self.trigger_move_pct:
            changes.update(
                status=STATUS_TRIGGERED,
                stop_reason=STOP_TRIGGERED,
                next_check_at=None,
                triggered_at=now,
                triggered_price=current_price,
                triggered_move_pct=move_pct,
            )
            alert = PriceWatchAlert(
                watch_id=task.id,
                post_id=task.post_id,
                ticker=task.ticker.upper(),
                quality_score=int(task.quality_score or 0),
                entry_price=entry_price,
                entry_price_observed_at=task.entry_price_observed_at or task.alerted_at,
                current_price=current_price,
                move_pct=move_pct,
                alerted_at=task.alerted_at,
                triggered_at=now,
            )
            return TaskDecision(WatchUpdate(task.id, changes), TRIGGERED, alert)

        if now >= task.monitor_close:
            changes.update(status=STATUS_EXPIRED, stop_reason=STOP_MARKET_CLOSE, next_check_at=None)
            return TaskDecision(WatchUpdate(task.id, changes), CLOSED)

        changes["next_check_at"] = self._next_check(now, self.check_interval, task.monitor_close)
        return TaskDecision(WatchUpdate(task.id, changes), RESCHEDULED)

    # ==================== Sweep ====================

    def process_due_tasks(self, now: datetime | None = None) -> PriceWatchResult:
        """
        Run one sweep.

        Args:
            now: Sweep instant (defaults to the current time)

        Returns:
            PriceWatchResult with counts and the alerts triggered in this sweep

        Raises:
            StoreError: If loading or persisting fails
        """
        now = to_utc(now) if now is not None else utc_now()
        result = PriceWatchResult()

        tasks = self.store.fetch_due(now, self.batch_limit)
        if not tasks:
            logger.debug("price_watch.nothing_due", now=now.isoformat())
            return result

        groups = group_by_ticker(tasks)
        logger.info("price_watch.sweep_started", tasks=len(tasks), tickers=len(groups))
        series_by_ticker = self._fetch_all(groups, now)

        updates: list[WatchUpdate] = []

        # Rows without a ticker cannot be priced and are expired
        for task in tasks:
            if not (task.ticker or "").strip():
                decision = self.evaluate_task(task, [], now)
                self._tally(result, decision)
                updates.append(decision.update)
                logger.warning("price_watch.missing_ticker", watch_id=task.id, post_id=task.post_id)

        for ticker, group in groups.items():
            series = series_by_ticker.get(ticker, [])
            for task in group:
                decision = self.evaluate_task(task, series, now)
                self._tally(result, decision)
                updates.append(decision.update)
                if decision.alert is not None:
                    logger.info("price_watch.triggered", ticker=ticker, post_id=task.post_id,
                                move_pct=round(decision.alert.move_pct, 4))

        self.store.apply_updates(updates)

        logger.info("price_watch.sweep_done", requests=self.client.get_request_count(), **result.summary())
        return result

    @staticmethod
    def _tally(result: PriceWatchResult, decision: TaskDecision):
        result.checked += 1
        outcome = decision.outcome
        if outcome in (INVALID_ENTRY, INVALID_TICKER, CLOSED):
            result.expired += 1
        elif outcome == NO_DATA_EXPIRED:
            result.data_unavailable += 1
            result.expired += 1
        elif outcome == NO_DATA_RESCHEDULED:
            result.data_unavailable += 1
            result.rescheduled += 1
        elif outcome == ABOVE_CEILING:
            result.expired += 1
            result.exceeded_fifteen_pct += 1
        elif outcome == TRIGGERED:
            result.triggered.append(decision.alert)
        elif outcome == RESCHEDULED:
            result.rescheduled += 1
