"""
Turns "this post was just alerted on this ticker" into pending watch tasks.

Scheduling is idempotent: a (post_id, ticker) pair that already has a task
is ignored by the store, so calling this once per notification batch never
resets an in-flight baseline.
"""
import math
from dataclasses import replace

from .constants import STATUS_PENDING
from .logger import logger
from .market_calendar import compute_monitor_window, to_utc
from .models import WatchSeed, WatchTask
from .store import WatchStore
from .validation import is_valid_ticker, normalize_ticker


def unique_seeds(seeds: list[WatchSeed]) -> list[WatchSeed]:
    """Upper-case tickers and keep the first seed per (post_id, ticker)"""
    seen = set()
    result = []
    for seed in seeds:
        ticker = normalize_ticker(seed.ticker)
        key = (seed.post_id, ticker)
        if key in seen:
            continue
        seen.add(key)
        result.append(replace(seed, ticker=ticker))
    return result


def is_valid_seed(seed: WatchSeed) -> bool:
    if not isinstance(seed.post_id, str) or not seed.post_id:
        return False
    if not is_valid_ticker(seed.ticker):
        return False
    price = seed.entry_price
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return False
    return math.isfinite(price) and price > 0


def build_task(seed: WatchSeed) -> WatchTask:
    """Pending task for a valid seed, checked first at the start of its window"""
    alerted_at = to_utc(seed.alerted_at)
    window = compute_monitor_window(alerted_at)
    observed_at = to_utc(seed.entry_price_observed_at) if seed.entry_price_observed_at else alerted_at

    return WatchTask(
        post_id=seed.post_id,
        ticker=seed.ticker,
        quality_score=int(seed.quality_score or 0),
        entry_price=float(seed.entry_price),
        entry_price_observed_at=observed_at,
        alerted_at=alerted_at,
        monitor_start=window.start,
        monitor_close=window.close,
        next_check_at=window.start,
        status=STATUS_PENDING,
        stop_reason=None,
    )


class PriceWatchScheduler:
    """Persists watch tasks for freshly alerted seeds"""

    def __init__(self, store: WatchStore):
        self.store = store

    def schedule_watches(self, seeds: list[WatchSeed]) -> int:
        """
        Create pending tasks for the given seeds.

        Args:
            seeds: One seed per alerted (post, ticker); duplicates and invalid seeds are dropped

        Returns:
            Number of unique valid tasks submitted (already-known pairs included)

        Raises:
            StoreError: If persistence fails
        """
        deduped = unique_seeds(list(seeds))
        valid = []
        for seed in deduped:
            if is_valid_seed(seed):
                valid.append(seed)
            else:
                logger.debug("schedule.seed_rejected", post_id=seed.post_id, ticker=seed.ticker,
                             entry_price=seed.entry_price)

        if not valid:
            logger.debug("schedule.nothing_to_schedule", seeds=len(deduped))
            return 0

        tasks = [build_task(seed) for seed in valid]

        logger.info("schedule.submitting", tasks=len(tasks), rejected=len(deduped) - len(valid))
        inserted = self.store.insert_ignore(tasks)
        logger.info("schedule.done", submitted=len(tasks), inserted=inserted,
                    ignored=len(tasks) - inserted)
        return len(tasks)
