"""Tests for model parsing and serialization"""
import math
from datetime import datetime, timezone

import pytest

from pricewatch.exceptions import ValidationError
from pricewatch.models import PriceWatchResult, WatchSeed, WatchTask, format_instant, parse_instant


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestInstants:
    def test_parse_zulu(self):
        assert parse_instant("2024-01-09T15:00:00Z") == utc(2024, 1, 9, 15, 0)

    def test_parse_offset(self):
        assert parse_instant("2024-01-09T10:00:00-05:00") == utc(2024, 1, 9, 15, 0)

    def test_parse_garbage(self):
        assert parse_instant("yesterday") is None
        assert parse_instant("") is None
        assert parse_instant(12345) is None

    def test_format(self):
        assert format_instant(utc(2024, 1, 9, 15, 0)) == "2024-01-09T15:00:00+00:00"
        assert format_instant(None) is None


class TestWatchSeedFromDict:
    """Loose seed payloads"""

    def test_camel_case_keys(self):
        seed = WatchSeed.from_dict({
            "postId": "abc",
            "ticker": "aapl",
            "qualityScore": "82",
            "alertedAt": "2024-01-09T15:00:00Z",
            "entryPrice": "101.25",
            "entryPriceObservedAt": "2024-01-09T14:58:00Z",
        })
        assert seed.post_id == "abc"
        assert seed.ticker == "aapl"
        assert seed.quality_score == 82
        assert seed.entry_price == 101.25
        assert seed.entry_price_observed_at == utc(2024, 1, 9, 14, 58)

    def test_missing_alert_time(self):
        with pytest.raises(ValidationError):
            WatchSeed.from_dict({"post_id": "abc", "ticker": "AAPL", "entry_price": 1})

    def test_not_a_mapping(self):
        with pytest.raises(ValidationError):
            WatchSeed.from_dict(["abc"])

    def test_bad_price_becomes_nan(self):
        """The scheduler rejects the seed later"""
        seed = WatchSeed.from_dict({"post_id": "abc", "ticker": "AAPL", "alerted_at": "2024-01-09T15:00:00Z",
                                    "entry_price": "n/a"})
        assert math.isnan(seed.entry_price)


class TestWatchTaskSerialization:
    def test_round_trip(self):
        task = WatchTask(
            post_id="p", ticker="AAPL", quality_score=1, entry_price=100.0,
            entry_price_observed_at=utc(2024, 1, 9, 15, 0), alerted_at=utc(2024, 1, 9, 15, 0),
            monitor_start=utc(2024, 1, 9, 15, 0), monitor_close=utc(2024, 1, 9, 21, 0),
            next_check_at=None, id=3,
        )
        data = task.to_dict()

        assert data["monitor_close"] == "2024-01-09T21:00:00+00:00"
        assert data["next_check_at"] is None
        assert WatchTask.from_dict(data) == task

    def test_unknown_keys_ignored(self):
        data = {
            "post_id": "p", "ticker": "AAPL", "quality_score": 1, "entry_price": "100",
            "entry_price_observed_at": "2024-01-09T15:00:00Z", "alerted_at": "2024-01-09T15:00:00Z",
            "monitor_start": "2024-01-09T15:00:00Z", "monitor_close": "2024-01-09T21:00:00Z",
            "next_check_at": "2024-01-09T15:00:00Z", "legacy_field": True,
        }
        task = WatchTask.from_dict(data)
        assert task.entry_price == 100.0
        assert task.status == "pending"


class TestResultSummary:
    def test_summary_counts_alerts(self):
        result = PriceWatchResult(checked=2, expired=1)
        assert result.summary() == {
            "checked": 2, "triggered": 0, "expired": 1, "rescheduled": 0,
            "data_unavailable": 0, "exceeded_fifteen_pct": 0,
        }
