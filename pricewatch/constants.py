"""
Central constants for the price watch engine.
All magic numbers and configurable thresholds are defined here.
"""

# =============================================================================
# MARKET CALENDAR
# =============================================================================
EASTERN_TIMEZONE = "America/New_York"
MARKET_OPEN_HOUR = 9
MARKET_OPEN_MINUTE = 30
MARKET_CLOSE_HOUR = 16
MARKET_CLOSE_MINUTE = 0


# =============================================================================
# HTTP & NETWORKING
# =============================================================================
TIINGO_BASE_URL = "https://api.tiingo.com"
TIINGO_TIMEOUT = 20             # Tiingo API timeout (seconds)
CONNECTION_POOL_SIZE = 4        # HTTP connection pool size


# =============================================================================
# REQUEST BUDGET (per client instance)
# =============================================================================
HOURLY_REQUEST_LIMIT = 50       # Provider requests per hour (free tier)
DAILY_REQUEST_LIMIT = 500       # Provider requests per day (free tier)
REQUEST_SAFETY_MARGIN = 5       # Requests held back from both limits


# =============================================================================
# BARS
# =============================================================================
DEFAULT_FREQUENCY = "5min"      # Bar sampling used by the sweeps
SUPPORTED_FREQUENCIES = ("1min", "5min", "15min", "30min", "1hour")
PROVIDER_END_PADDING_DAYS = 1   # Extra day queried so the last session is complete


# =============================================================================
# PRICE WATCH STATE MACHINE
# =============================================================================
WATCH_BATCH_LIMIT = 200         # Max due tasks loaded per sweep
CHECK_INTERVAL_MINUTES = 60     # Reschedule interval while pending
DATA_UNAVAILABLE_BACKOFF_MINUTES = 60  # Reschedule interval when no data
FETCH_LOOKBACK_DAYS = 3         # Max lookback for a ticker group's fetch window
FETCH_PADDING_MINUTES = 30      # Padding before the earliest baseline instant
TRIGGER_MOVE_PCT = 0.05         # move_pct <= this triggers (signed, inclusive)
ABANDON_MOVE_PCT = 0.15         # move_pct >= this expires with above_15pct

STATUS_PENDING = "pending"
STATUS_TRIGGERED = "triggered"
STATUS_EXPIRED = "expired"

STOP_TRIGGERED = "triggered"
STOP_ABOVE_15PCT = "above_15pct"
STOP_MARKET_CLOSE = "market_close"
STOP_INVALID_ENTRY_PRICE = "invalid_entry_price"
STOP_INVALID_TICKER = "invalid_ticker"


# =============================================================================
# WATCHED POSITIONS
# =============================================================================
POSITION_BATCH_LIMIT = 500      # Max watched positions loaded per sweep
POSITION_ALERT_THRESHOLD = 0.05  # Default adverse move that fires an alert
POSITION_LOOKBACK_DAYS = 3      # Fixed lookback for the latest bar


# =============================================================================
# VALIDATION
# =============================================================================
MAX_TICKER_LENGTH = 8
