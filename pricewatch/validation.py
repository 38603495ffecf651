"""Input validation utilities"""

import math
import re

from .constants import MAX_TICKER_LENGTH

_TICKER_PATTERN = re.compile(r"^[A-Z][A-Z0-9.\-]*$")


def is_valid_ticker(ticker: str) -> bool:
    """
    Validate a normalized ticker symbol

    Rules:
    - 1-8 characters
    - Starts with an uppercase letter
    - Letters, digits, dot and dash only (BRK.B, RDS-A)

    Examples:
        AAPL -> True
        BRK.B -> True
        aapl -> False (not normalized)
        TOOLONGXX -> False (too long)
        $SPY -> False (special char)
    """
    if not ticker or not isinstance(ticker, str):
        return False
    if len(ticker) > MAX_TICKER_LENGTH:
        return False
    return bool(_TICKER_PATTERN.match(ticker))


def normalize_ticker(ticker: str) -> str:
    """Strip and uppercase, empty string for non-strings"""
    if not isinstance(ticker, str):
        return ""
    return ticker.strip().upper()


def parse_number(value) -> float | None:
    """Finite float from a number or numeric string, None otherwise"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def is_positive_price(value) -> bool:
    parsed = parse_number(value)
    return parsed is not None and parsed > 0
