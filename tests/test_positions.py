"""Tests for watched position drop alerts"""
from datetime import datetime, timedelta, timezone

import pytest

from pricewatch.exceptions import DataSourceError
from pricewatch.market_data_client import RateLimitedMarketDataClient
from pricewatch.models import WatchedPosition
from pricewatch.positions import WatchedPositionProcessor, threshold_for


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


NOW = utc(2024, 1, 9, 16, 0)


def add_position(store, position_id="p1", ticker="AAPL", last_price=100.0, **kwargs):
    store.add(WatchedPosition(id=position_id, user_id="u1", ticker=ticker, shares=10, watch=True,
                              last_price=last_price, **kwargs))


def run(store, source, **kwargs):
    processor = WatchedPositionProcessor(store, RateLimitedMarketDataClient(source), **kwargs)
    return processor.process_watched_positions(NOW)


class TestWatchedPositionProcessor:
    """Price refresh and drop alerts"""

    def test_drop_past_threshold_alerts(self, position_store, fake_source, make_bar):
        """A 6% fall from the last seen price raises one alert"""
        add_position(position_store)
        fake_source.bars["AAPL"] = [make_bar(NOW - timedelta(minutes=10), 94.0)]

        result = run(position_store, fake_source)

        assert len(result.alerts) == 1
        alert = result.alerts[0]
        assert alert.position_id == "p1"
        assert alert.previous_price == 100.0
        assert alert.current_price == 94.0
        assert alert.move_pct == pytest.approx(-0.06)
        assert alert.threshold_pct == 0.05

        position = position_store.all()[0]
        assert position.last_price == 94.0
        assert position.last_price_source == "fake_intraday"
        assert position.last_price_observed_at == NOW - timedelta(minutes=10)
        assert position.last_alert_at == NOW
        assert position.last_alert_price == 94.0

    def test_small_drop_only_refreshes_price(self, position_store, fake_source, make_bar):
        add_position(position_store)
        fake_source.bars["AAPL"] = [make_bar(NOW, 97.0)]

        result = run(position_store, fake_source)

        assert result.alerts == []
        assert result.updated == 1
        position = position_store.all()[0]
        assert position.last_price == 97.0
        assert position.last_alert_at is None

    def test_rise_never_alerts(self, position_store, fake_source, make_bar):
        add_position(position_store)
        fake_source.bars["AAPL"] = [make_bar(NOW, 130.0)]

        assert run(position_store, fake_source).alerts == []

    def test_first_run_sets_baseline(self, position_store, fake_source, make_bar):
        """Without a previous price there is nothing to compare against"""
        add_position(position_store, last_price=None)
        fake_source.bars["AAPL"] = [make_bar(NOW, 50.0)]

        result = run(position_store, fake_source)

        assert result.alerts == []
        assert position_store.all()[0].last_price == 50.0

    def test_custom_threshold(self, position_store, fake_source, make_bar):
        add_position(position_store, alert_threshold_pct=0.10)
        fake_source.bars["AAPL"] = [make_bar(NOW, 94.0)]

        assert run(position_store, fake_source).alerts == []

    def test_no_data_leaves_position_untouched(self, position_store, fake_source):
        add_position(position_store)
        fake_source.errors["AAPL"] = DataSourceError("down")

        result = run(position_store, fake_source)

        assert result.checked == 1
        assert result.data_unavailable == 1
        assert result.updated == 0
        assert position_store.all()[0].last_price == 100.0

    def test_one_fetch_per_ticker(self, position_store, fake_source, make_bar):
        add_position(position_store, "p1")
        add_position(position_store, "p2")
        fake_source.bars["AAPL"] = [make_bar(NOW, 99.0)]

        result = run(position_store, fake_source)

        assert result.checked == 2
        assert len(fake_source.calls) == 1

    def test_fetch_window_is_lookback(self, position_store, fake_source):
        add_position(position_store)
        run(position_store, fake_source, lookback=timedelta(days=2))

        _, start, _, _ = fake_source.calls[0]
        assert start == NOW - timedelta(days=2)

    def test_nothing_watched(self, position_store, fake_source):
        result = run(position_store, fake_source)
        assert result.checked == 0
        assert fake_source.calls == []


class TestThresholdFor:
    def test_default_when_missing(self):
        position = WatchedPosition(id="p", user_id="u", ticker="AAPL", shares=1, alert_threshold_pct=None)
        assert threshold_for(position, 0.07) == 0.07

    def test_position_value(self):
        position = WatchedPosition(id="p", user_id="u", ticker="AAPL", shares=1, alert_threshold_pct=0.2)
        assert threshold_for(position) == 0.2
