"""
Request budget for the market data provider.
Thread-safe, no external dependencies.
"""
import threading

from .constants import DAILY_REQUEST_LIMIT, HOURLY_REQUEST_LIMIT, REQUEST_SAFETY_MARGIN
from .exceptions import BudgetExceededError
from .logger import logger


class RequestBudget:
    """
    Monotonic request counter with hard hourly/daily ceilings.

    Unlike a token bucket this never waits and never resets: one budget
    lives as long as one client instance (one processing sweep). A request
    that would push the count past ``limit - safety_margin`` is refused.

    Usage:
        budget = RequestBudget()
        budget.consume("tiingo")  # raises BudgetExceededError when exhausted
        # ... make API call
    """

    def __init__(
        self,
        hourly_limit: int = HOURLY_REQUEST_LIMIT,
        daily_limit: int = DAILY_REQUEST_LIMIT,
        safety_margin: int = REQUEST_SAFETY_MARGIN,
    ):
        self.hourly_limit = hourly_limit
        self.daily_limit = daily_limit
        self.safety_margin = safety_margin
        self._count = 0
        self._lock = threading.Lock()

    @property
    def used(self) -> int:
        with self._lock:
            return self._count

    @property
    def ceiling(self) -> int:
        """Highest count the budget allows"""
        return min(self.hourly_limit, self.daily_limit) - self.safety_margin

    def _check_locked(self, cost: int) -> None:
        projected = self._count + cost
        hourly_ceiling = self.hourly_limit - self.safety_margin
        daily_ceiling = self.daily_limit - self.safety_margin
        if projected > hourly_ceiling:
            raise BudgetExceededError(
                f"Hourly request budget exceeded (>{hourly_ceiling} attempted)",
                {"used": self._count, "limit": self.hourly_limit, "margin": self.safety_margin},
            )
        if projected > daily_ceiling:
            raise BudgetExceededError(
                f"Daily request budget exceeded (>{daily_ceiling} attempted)",
                {"used": self._count, "limit": self.daily_limit, "margin": self.safety_margin},
            )

    def consume(self, service: str, cost: int = 1) -> int:
        """
        Check the budget and count ``cost`` requests against it.

        Args:
            service: Service name, for logging only
            cost: Number of requests about to be made (default: 1)

        Returns:
            Count after consuming

        Raises:
            BudgetExceededError: If the request would exceed the budget
        """
        with self._lock:
            try:
                self._check_locked(cost)
            except BudgetExceededError:
                logger.warning(
                    "budget.exhausted",
                    service=service,
                    used=self._count,
                    ceiling=self.ceiling,
                )
                raise
            self._count += cost
            return self._count

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "used": self._count,
                "hourly_limit": self.hourly_limit,
                "daily_limit": self.daily_limit,
                "safety_margin": self.safety_margin,
                "remaining": max(0, self.ceiling - self._count),
            }
