"""Health check and sweep statistics for production deployment"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from .logger import logger
from .models import PositionResult, PriceWatchResult


class HealthMonitor:
    """Record sweep statistics and report system status"""

    STATS_FILE = Path("stats.json")

    @classmethod
    def configure(cls, stats_file: str):
        cls.STATS_FILE = Path(stats_file)

    @classmethod
    def record_sweep(cls, result: PriceWatchResult, requests_used: int = 0):
        """Record price watch sweep statistics"""
        stats = cls._load_stats()

        stats["last_sweep"] = {
            "timestamp": datetime.now().isoformat(),
            "requests_used": requests_used,
            **result.summary(),
        }

        stats.setdefault("total_sweeps", 0)
        stats["total_sweeps"] += 1

        stats.setdefault("total_triggered", 0)
        stats["total_triggered"] += len(result.triggered)

        cls._save_stats(stats)
        logger.info("health.sweep_recorded",
                    checked=result.checked,
                    triggered=len(result.triggered),
                    requests=requests_used)

    @classmethod
    def record_schedule(cls, submitted: int):
        """Record scheduling statistics"""
        stats = cls._load_stats()

        stats["last_schedule"] = {
            "timestamp": datetime.now().isoformat(),
            "submitted": submitted
        }

        stats.setdefault("total_scheduled", 0)
        stats["total_scheduled"] += submitted

        cls._save_stats(stats)
        logger.info("health.schedule_recorded", submitted=submitted)

    @classmethod
    def record_positions(cls, result: PositionResult):
        stats = cls._load_stats()
        stats["last_positions_sweep"] = {
            "timestamp": datetime.now().isoformat(),
            **result.summary(),
        }
        stats.setdefault("total_position_alerts", 0)
        stats["total_position_alerts"] += len(result.alerts)
        cls._save_stats(stats)

    @classmethod
    def get_status(cls, watch_stats: Dict[str, Any] | None = None) -> Dict[str, Any]:
        """Get current system status"""
        stats = cls._load_stats()
        watch_stats = watch_stats or {"total": 0, "by_status": {}}
        pending = watch_stats["by_status"].get("pending", 0)

        return {
            "timestamp": datetime.now().isoformat(),
            "watches": watch_stats,
            "stats": stats,
            "status": "watching" if pending > 0 else "idle"
        }

    @classmethod
    def _load_stats(cls) -> Dict[str, Any]:
        """Load statistics from file"""
        if not cls.STATS_FILE.exists():
            return {}

        try:
            content = cls.STATS_FILE.read_text()
            if not content.strip():
                return {}
            return json.loads(content)
        except Exception as e:
            logger.error("health.load_stats_error", error=str(e))
            return {}

    @classmethod
    def _save_stats(cls, stats: Dict[str, Any]):
        """Save statistics to file"""
        try:
            cls.STATS_FILE.write_text(json.dumps(stats, indent=2, ensure_ascii=False))
        except Exception as e:
            logger.error("health.save_stats_error", error=str(e))
