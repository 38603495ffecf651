"""Tests for the per-sweep request budget"""
import threading

import pytest

from pricewatch.exceptions import BudgetExceededError, DataSourceError
from pricewatch.rate_limiter import RequestBudget


class TestRequestBudget:
    """Test budget counting and ceilings"""

    def test_allows_up_to_ceiling(self):
        """Default limits allow 45 requests (50 hourly minus a margin of 5)"""
        budget = RequestBudget()
        for _ in range(45):
            budget.consume("test")
        assert budget.used == 45
        assert budget.get_stats()["remaining"] == 0

    def test_refuses_past_hourly_ceiling(self):
        """The 46th request is refused and not counted"""
        budget = RequestBudget()
        for _ in range(45):
            budget.consume("test")

        with pytest.raises(BudgetExceededError, match="Hourly"):
            budget.consume("test")
        assert budget.used == 45

    def test_daily_ceiling(self):
        """A lower daily limit is enforced too"""
        budget = RequestBudget(hourly_limit=1000, daily_limit=10, safety_margin=5)
        for _ in range(5):
            budget.consume("test")
        with pytest.raises(BudgetExceededError, match="Daily"):
            budget.consume("test")

    def test_cost_counts_as_several_requests(self):
        budget = RequestBudget(hourly_limit=10, daily_limit=100, safety_margin=0)
        assert budget.consume("test", cost=4) == 4
        with pytest.raises(BudgetExceededError):
            budget.consume("test", cost=7)
        assert budget.used == 4

    def test_budget_error_is_data_source_error(self):
        """Callers catching DataSourceError also catch exhaustion"""
        budget = RequestBudget(hourly_limit=1, daily_limit=1, safety_margin=0)
        budget.consume("test")
        with pytest.raises(DataSourceError):
            budget.consume("test")

    def test_get_stats(self):
        budget = RequestBudget()
        budget.consume("test")
        stats = budget.get_stats()
        assert stats["used"] == 1
        assert stats["remaining"] == 44
        assert stats["hourly_limit"] == 50
        assert stats["daily_limit"] == 500
        assert stats["safety_margin"] == 5


class TestBudgetThreadSafety:
    """Concurrent consumers never exceed the ceiling"""

    def test_concurrent_consume(self):
        budget = RequestBudget(hourly_limit=30, daily_limit=30, safety_margin=0)
        refused = []

        def worker():
            for _ in range(10):
                try:
                    budget.consume("test")
                except BudgetExceededError:
                    refused.append(1)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert budget.used == 30
        assert len(refused) == 20
