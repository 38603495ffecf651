"""Price watch runner - scheduled sweeps, seed scheduling, position checks"""

import json
import os
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from .config import Config
from .data_source import TiingoSource
from .data_source_yfinance import YFinanceSource
from .exceptions import ConfigError, ValidationError
from .health import HealthMonitor
from .logger import logger
from .market_data_client import RateLimitedMarketDataClient
from .models import PositionResult, PriceWatchAlert, PriceWatchResult, WatchSeed
from .positions import WatchedPositionProcessor
from .processor import PriceWatchProcessor
from .scheduler import PriceWatchScheduler
from .store import JsonPositionStore, JsonWatchStore

# Initialize Sentry for error tracking
SENTRY_DSN = os.getenv('SENTRY_DSN', '')
ENVIRONMENT = os.getenv('ENVIRONMENT', 'production')

if SENTRY_DSN:
    sentry_logging = LoggingIntegration(
        level=None,           # Capture nothing from logging
        event_level=None      # Send nothing as events (we'll capture manually)
    )
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=ENVIRONMENT,
        release="pricewatch@0.1.0",
        traces_sample_rate=0.1,
        send_default_pii=False,
        integrations=[sentry_logging],
        before_send=lambda event, hint: event if event.get('level') in ('error', 'fatal') else None
    )
    logger.info("sentry.initialized", environment=ENVIRONMENT)


def build_client(cfg: Config) -> RateLimitedMarketDataClient:
    """Fresh client (own budget and cache) for a single sweep"""
    md = cfg.market_data
    if md.provider == "yfinance":
        source = YFinanceSource()
    else:
        source = TiingoSource(md.tiingo_api_key, timeout=md.timeout)
    return RateLimitedMarketDataClient(
        source,
        hourly_limit=md.hourly_limit,
        daily_limit=md.daily_limit,
        safety_margin=md.safety_margin,
    )


def build_processor(cfg: Config, client: RateLimitedMarketDataClient) -> PriceWatchProcessor:
    w = cfg.watch
    return PriceWatchProcessor(
        JsonWatchStore(cfg.storage.watches_file),
        client,
        batch_limit=w.batch_limit,
        frequency=cfg.market_data.frequency,
        check_interval=timedelta(minutes=w.check_interval_minutes),
        unavailable_backoff=timedelta(minutes=w.data_unavailable_backoff_minutes),
        lookback=timedelta(days=w.lookback_days),
        padding=timedelta(minutes=w.padding_minutes),
        trigger_move_pct=w.trigger_move_pct,
        abandon_move_pct=w.abandon_move_pct,
        fetch_workers=w.fetch_workers,
    )


def report_alerts(alerts: list[PriceWatchAlert]):
    """Hand triggered alerts to the notification side (stdout + log)"""
    for alert in alerts:
        logger.info("alert.price_watch", **alert.to_dict())
        print(f"🔔 {alert.ticker}: {alert.current_price:.2f} vs entry {alert.entry_price:.2f} "
              f"({alert.move_pct * 100:+.2f}%) post={alert.post_id}")


def run_price_watch_sweep(cfg: Config, now: datetime | None = None, label: str = "scheduled") -> PriceWatchResult:
    """
    Process due price watches once.

    Args:
        cfg: Loaded configuration
        now: Sweep instant (defaults to current time)
        label: Why the sweep runs (scheduled, pre-run, post-schedule)

    Returns:
        PriceWatchResult of the sweep
    """
    HealthMonitor.configure(cfg.storage.stats_file)
    client = build_client(cfg)
    processor = build_processor(cfg, client)

    logger.info("sweep.started", label=label)
    result = processor.process_due_tasks(now)

    HealthMonitor.record_sweep(result, requests_used=client.get_request_count())
    report_alerts(result.triggered)
    logger.info("sweep.finished", label=label, **client.get_stats()["budget"])
    return result


def load_seeds(path: str) -> list[WatchSeed]:
    """Parse a JSON array of seeds, skipping entries that cannot be parsed"""
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Seed file not found: {path}")
    try:
        raw = json.loads(p.read_text())
    except json.JSONDecodeError as e:
        raise ConfigError(f"Seed file is not valid JSON: {e}", {"path": path}, e)
    if not isinstance(raw, list):
        raise ConfigError("Seed file must contain a JSON array", {"path": path})

    seeds = []
    for index, item in enumerate(raw):
        try:
            seeds.append(WatchSeed.from_dict(item))
        except ValidationError as e:
            logger.warning("seed.skipped", index=index, error=str(e))
    return seeds


def run_schedule(cfg: Config, seeds_path: str, now: datetime | None = None) -> int:
    """
    Schedule watches for a batch of freshly alerted seeds.

    Sweeps immediately before and after scheduling, the same way an
    alerting run brackets its notification batch.
    """
    HealthMonitor.configure(cfg.storage.stats_file)
    seeds = load_seeds(seeds_path)

    run_price_watch_sweep(cfg, now, label="pre-run")

    scheduler = PriceWatchScheduler(JsonWatchStore(cfg.storage.watches_file))
    submitted = scheduler.schedule_watches(seeds)
    HealthMonitor.record_schedule(submitted)

    run_price_watch_sweep(cfg, now, label="post-schedule")
    return submitted


def run_position_sweep(cfg: Config, now: datetime | None = None) -> PositionResult:
    """Refresh watched positions and report adverse moves"""
    HealthMonitor.configure(cfg.storage.stats_file)
    client = build_client(cfg)
    processor = WatchedPositionProcessor(
        JsonPositionStore(cfg.storage.positions_file),
        client,
        batch_limit=cfg.positions.batch_limit,
        lookback=timedelta(days=cfg.positions.lookback_days),
        frequency=cfg.market_data.frequency,
        default_threshold=cfg.positions.default_threshold_pct,
    )
    result = processor.process_watched_positions(now)
    HealthMonitor.record_positions(result)

    for alert in result.alerts:
        logger.info("alert.position_drop", **alert.to_dict())
        print(f"📉 {alert.ticker}: {alert.previous_price:.2f} → {alert.current_price:.2f} "
              f"({alert.move_pct * 100:+.2f}%) user={alert.user_id}")
    return result


def get_status(cfg: Config) -> dict:
    HealthMonitor.configure(cfg.storage.stats_file)
    return HealthMonitor.get_status(JsonWatchStore(cfg.storage.watches_file).get_stats())


def run_continuous(cfg: Config, interval: int = 300):
    """
    Sweep due watches every ``interval`` seconds until interrupted.

    A failed sweep is logged and reported; the loop keeps going and the
    affected tasks are retried on the next cycle.
    """
    print("🔄 Continuous mode started")
    print(f"   Interval: {interval}s ({interval // 60} minutes)")
    print("   Press Ctrl+C to stop\n")

    cycle = 1
    while True:
        logger.info("sweep_cycle_started", cycle=cycle)
        try:
            result = run_price_watch_sweep(cfg)
            print(f"✅ Cycle {cycle}: checked={result.checked} triggered={len(result.triggered)} "
                  f"expired={result.expired} rescheduled={result.rescheduled}")
        except Exception as e:
            logger.error("sweep_cycle_error", cycle=cycle, error=str(e))
            print(f"❌ Error in sweep: {e}")
            sentry_sdk.capture_exception(e)

        cycle += 1
        time.sleep(interval)


def main(argv: list[str] | None = None) -> int:
    from .cli import run_cli

    return run_cli(
        argv,
        sweep_fn=run_price_watch_sweep,
        schedule_fn=run_schedule,
        positions_fn=run_position_sweep,
        status_fn=get_status,
        continuous_fn=run_continuous,
    )


if __name__ == "__main__":
    sys.exit(main())
