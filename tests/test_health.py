"""
Tests for sweep statistics and status reporting
"""
import json

import pytest

from pricewatch.health import HealthMonitor
from pricewatch.models import PositionResult, PriceWatchResult


@pytest.fixture
def stats_file(tmp_path):
    path = tmp_path / "stats.json"
    HealthMonitor.configure(str(path))
    return path


class TestHealthMonitor:
    """Test HealthMonitor statistics"""

    def test_record_sweep_accumulates(self, stats_file):
        """Totals grow across sweeps and the last sweep is kept"""
        HealthMonitor.record_sweep(PriceWatchResult(checked=3, expired=1), requests_used=2)
        HealthMonitor.record_sweep(PriceWatchResult(checked=1, rescheduled=1), requests_used=1)

        stats = json.loads(stats_file.read_text())
        assert stats["total_sweeps"] == 2
        assert stats["total_triggered"] == 0
        assert stats["last_sweep"]["checked"] == 1
        assert stats["last_sweep"]["requests_used"] == 1

    def test_record_schedule(self, stats_file):
        HealthMonitor.record_schedule(4)
        HealthMonitor.record_schedule(2)

        stats = json.loads(stats_file.read_text())
        assert stats["total_scheduled"] == 6
        assert stats["last_schedule"]["submitted"] == 2

    def test_record_positions(self, stats_file):
        HealthMonitor.record_positions(PositionResult(checked=2, updated=2))

        stats = json.loads(stats_file.read_text())
        assert stats["last_positions_sweep"]["checked"] == 2
        assert stats["total_position_alerts"] == 0

    def test_status_watching_when_pending(self, stats_file):
        status = HealthMonitor.get_status({"total": 3, "by_status": {"pending": 2, "expired": 1}})
        assert status["status"] == "watching"
        assert status["watches"]["total"] == 3

    def test_status_idle(self, stats_file):
        assert HealthMonitor.get_status()["status"] == "idle"

    def test_corrupted_stats_reset(self, stats_file):
        """A broken stats file does not block recording"""
        stats_file.write_text("{broken")
        HealthMonitor.record_schedule(1)

        assert json.loads(stats_file.read_text())["total_scheduled"] == 1
