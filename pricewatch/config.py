import os
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import (
    ABANDON_MOVE_PCT,
    CHECK_INTERVAL_MINUTES,
    DAILY_REQUEST_LIMIT,
    DATA_UNAVAILABLE_BACKOFF_MINUTES,
    DEFAULT_FREQUENCY,
    FETCH_LOOKBACK_DAYS,
    FETCH_PADDING_MINUTES,
    HOURLY_REQUEST_LIMIT,
    POSITION_ALERT_THRESHOLD,
    POSITION_BATCH_LIMIT,
    POSITION_LOOKBACK_DAYS,
    REQUEST_SAFETY_MARGIN,
    SUPPORTED_FREQUENCIES,
    TIINGO_TIMEOUT,
    TRIGGER_MOVE_PCT,
    WATCH_BATCH_LIMIT,
)
from .exceptions import ConfigError

load_dotenv()


class MarketDataConfig(BaseModel):
    provider: str = Field(default="tiingo")
    tiingo_api_key: str = Field(default="", description="Tiingo API token (required for tiingo)")
    hourly_limit: int = Field(default=HOURLY_REQUEST_LIMIT, ge=1)
    daily_limit: int = Field(default=DAILY_REQUEST_LIMIT, ge=1)
    safety_margin: int = Field(default=REQUEST_SAFETY_MARGIN, ge=0)
    frequency: str = Field(default=DEFAULT_FREQUENCY)
    timeout: int = Field(default=TIINGO_TIMEOUT, ge=1, le=120)

    @field_validator('provider')
    @classmethod
    def validate_provider(cls, v: str) -> str:
        v = v.lower()
        if v not in ("tiingo", "yfinance"):
            raise ValueError(f"Unsupported market data provider: {v}. Use 'tiingo' or 'yfinance'.")
        return v

    @field_validator('frequency')
    @classmethod
    def validate_frequency(cls, v: str) -> str:
        if v not in SUPPORTED_FREQUENCIES:
            raise ValueError(f"Unsupported frequency: {v}")
        return v

    @field_validator('tiingo_api_key')
    @classmethod
    def not_placeholder(cls, v: str) -> str:
        if v.startswith('YOUR_'):
            raise ValueError('Replace placeholder values in config')
        return v

    @model_validator(mode='after')
    def margin_below_limits(self):
        if self.safety_margin >= min(self.hourly_limit, self.daily_limit):
            raise ValueError('safety_margin must be smaller than both request limits')
        if self.provider == "tiingo" and not self.tiingo_api_key:
            raise ValueError('tiingo_api_key is required when provider is tiingo')
        return self


class WatchConfig(BaseModel):
    batch_limit: int = Field(default=WATCH_BATCH_LIMIT, ge=1, le=1000)
    check_interval_minutes: int = Field(default=CHECK_INTERVAL_MINUTES, ge=1)
    data_unavailable_backoff_minutes: int = Field(default=DATA_UNAVAILABLE_BACKOFF_MINUTES, ge=1)
    lookback_days: int = Field(default=FETCH_LOOKBACK_DAYS, ge=1, le=30)
    padding_minutes: int = Field(default=FETCH_PADDING_MINUTES, ge=0)
    trigger_move_pct: float = Field(default=TRIGGER_MOVE_PCT)
    abandon_move_pct: float = Field(default=ABANDON_MOVE_PCT, gt=0)
    fetch_workers: int = Field(default=1, ge=1, le=16)

    @model_validator(mode='after')
    def trigger_below_abandon(self):
        if self.trigger_move_pct >= self.abandon_move_pct:
            raise ValueError('trigger_move_pct must be below abandon_move_pct')
        return self


class PositionsConfig(BaseModel):
    batch_limit: int = Field(default=POSITION_BATCH_LIMIT, ge=1)
    lookback_days: int = Field(default=POSITION_LOOKBACK_DAYS, ge=1, le=30)
    default_threshold_pct: float = Field(default=POSITION_ALERT_THRESHOLD, gt=0, lt=1)


class StorageConfig(BaseModel):
    watches_file: str = Field(default="price_watches.json")
    positions_file: str = Field(default="watched_positions.json")
    stats_file: str = Field(default="stats.json")


class Config(BaseModel):
    market_data: MarketDataConfig
    watch: WatchConfig = Field(default_factory=WatchConfig)
    positions: PositionsConfig = Field(default_factory=PositionsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    log_level: str = Field(default="INFO")

    @classmethod
    def load(cls, path: str = "config.yaml") -> "Config":
        p = Path(path)
        if not p.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            raw = yaml.safe_load(p.read_text()) or {}
        except Exception as e:
            raise ConfigError(f"Failed to parse YAML: {e}")

        # Environment variable overrides for sensitive data
        if key := os.getenv("TIINGO_API_KEY"):
            raw.setdefault("market_data", {})["tiingo_api_key"] = key
        if provider := os.getenv("MARKET_DATA_PROVIDER"):
            raw.setdefault("market_data", {})["provider"] = provider
        if watches := os.getenv("PRICEWATCH_WATCHES_FILE"):
            raw.setdefault("storage", {})["watches_file"] = watches
        if positions := os.getenv("PRICEWATCH_POSITIONS_FILE"):
            raw.setdefault("storage", {})["positions_file"] = positions
        if level := os.getenv("LOG_LEVEL"):
            raw["log_level"] = level

        raw.setdefault("market_data", {})

        try:
            return cls(**raw)
        except Exception as e:
            raise ConfigError(f"Invalid configuration: {e}")
