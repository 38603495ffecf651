"""Tests for input validation utilities"""
import pytest

from pricewatch.validation import is_positive_price, is_valid_ticker, normalize_ticker, parse_number


class TestTickerValidation:
    """Test ticker symbol validation"""

    @pytest.mark.parametrize("ticker", ["AAPL", "F", "BRK.B", "RDS-A", "ABCDEFGH"])
    def test_valid_tickers(self, ticker):
        """Normalized tickers are accepted"""
        assert is_valid_ticker(ticker)

    @pytest.mark.parametrize("ticker", ["", "aapl", "TOOLONGXX", "$SPY", "1ABC", "AA PL", None])
    def test_invalid_tickers(self, ticker):
        """Malformed tickers are rejected"""
        assert not is_valid_ticker(ticker)

    def test_normalize(self):
        """Whitespace stripped and upper-cased"""
        assert normalize_ticker("  brk.b ") == "BRK.B"

    def test_normalize_non_string(self):
        assert normalize_ticker(None) == ""
        assert normalize_ticker(42) == ""


class TestNumberParsing:
    """Test loose numeric parsing"""

    def test_numbers_and_strings(self):
        assert parse_number(3) == 3.0
        assert parse_number(" 12.5 ") == 12.5

    def test_rejects_non_finite_and_bool(self):
        """NaN, infinity, booleans and garbage are not numbers"""
        assert parse_number(float("nan")) is None
        assert parse_number("inf") is None
        assert parse_number(True) is None
        assert parse_number("abc") is None
        assert parse_number(None) is None

    def test_positive_price(self):
        assert is_positive_price(0.01)
        assert not is_positive_price(0)
        assert not is_positive_price(-5)
        assert not is_positive_price(float("nan"))
