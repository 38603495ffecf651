"""Exception hierarchy for the price watch engine, each carrying structured context"""

from typing import Any

# Longer list values in a context are cut down when rendered
_MAX_LISTED = 5


def _render_context_value(value: Any) -> str:
    if isinstance(value, (list, tuple, set)) and len(value) > _MAX_LISTED:
        shown = ", ".join(str(v) for v in list(value)[:_MAX_LISTED])
        return f"[{shown}, ... +{len(value) - _MAX_LISTED}]"
    return str(value)


class PriceWatchError(Exception):
    """Base exception with context for logs and error tracking

    Attributes:
        message: Error message
        context: Additional context dictionary (e.g., ticker, status, ids)
        original_error: Wrapped exception, if any
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None,
                 original_error: Exception | None = None):
        self.message = message
        self.context = context or {}
        self.original_error = original_error
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.context:
            rendered = ", ".join(f"{k}={_render_context_value(v)}" for k, v in self.context.items())
            parts.append(f"[{rendered}]")
        if self.original_error is not None:
            parts.append(f"(caused by: {type(self.original_error).__name__}: {self.original_error})")
        return " ".join(parts)


class DataSourceError(PriceWatchError):
    """Market data fetch failed

    Common causes:
    - Network connectivity issues
    - Provider returned a non-2xx status
    - Payload was not the expected array of bars
    - API key missing or rejected
    """
    pass


class BudgetExceededError(DataSourceError):
    """Request budget for the market data provider is exhausted

    Raised before any network call is made. The caller should treat
    the affected ticker as having no data for the current sweep.
    """
    pass


class StoreError(PriceWatchError):
    """Persistence operation failed

    Common causes:
    - File system permissions
    - Corrupted store file
    - Update references an unknown row id
    """
    pass


class ConfigError(PriceWatchError):
    """Configuration validation failed

    Common causes:
    - Missing or invalid config.yaml
    - Required fields missing
    - Environment variables not set
    """
    pass


class ValidationError(PriceWatchError):
    """Input validation failed

    Common causes:
    - Invalid ticker symbol format
    - Missing or unparsable timestamps in a seed payload
    - Non-numeric prices
    """
    pass
