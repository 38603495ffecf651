"""
Tests for config loading and validation
"""
import pytest

from pricewatch.config import Config, MarketDataConfig, WatchConfig
from pricewatch.exceptions import ConfigError

ENV_VARS = ("TIINGO_API_KEY", "MARKET_DATA_PROVIDER", "PRICEWATCH_WATCHES_FILE",
            "PRICEWATCH_POSITIONS_FILE", "LOG_LEVEL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestMarketDataConfig:
    """Test market data configuration validation"""

    def test_defaults_with_key(self):
        config = MarketDataConfig(tiingo_api_key="abc123")
        assert config.provider == "tiingo"
        assert config.hourly_limit == 50
        assert config.daily_limit == 500
        assert config.safety_margin == 5
        assert config.frequency == "5min"

    def test_tiingo_requires_key(self):
        with pytest.raises(ValueError, match="tiingo_api_key"):
            MarketDataConfig()

    def test_yfinance_needs_no_key(self):
        assert MarketDataConfig(provider="YFinance").provider == "yfinance"

    def test_placeholder_key_rejected(self):
        with pytest.raises(ValueError, match="placeholder"):
            MarketDataConfig(tiingo_api_key="YOUR_TIINGO_API_KEY")

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValueError):
            MarketDataConfig(provider="bloomberg")

    def test_unknown_frequency_rejected(self):
        with pytest.raises(ValueError):
            MarketDataConfig(provider="yfinance", frequency="2min")

    def test_margin_must_be_below_limits(self):
        with pytest.raises(ValueError, match="safety_margin"):
            MarketDataConfig(provider="yfinance", hourly_limit=5, safety_margin=5)


class TestWatchConfig:
    """Test watch thresholds"""

    def test_defaults(self):
        config = WatchConfig()
        assert config.trigger_move_pct == 0.05
        assert config.abandon_move_pct == 0.15
        assert config.check_interval_minutes == 60

    def test_trigger_must_be_below_abandon(self):
        with pytest.raises(ValueError):
            WatchConfig(trigger_move_pct=0.2, abandon_move_pct=0.15)


class TestConfigLoad:
    """Test loading from YAML with environment overrides"""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            Config.load(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("market_data: [unclosed")
        with pytest.raises(ConfigError, match="YAML"):
            Config.load(str(path))

    def test_load_full_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "market_data:\n"
            "  provider: tiingo\n"
            "  tiingo_api_key: secret\n"
            "  hourly_limit: 100\n"
            "watch:\n"
            "  batch_limit: 50\n"
            "storage:\n"
            "  watches_file: data/watches.json\n"
        )

        config = Config.load(str(path))

        assert config.market_data.tiingo_api_key == "secret"
        assert config.market_data.hourly_limit == 100
        assert config.watch.batch_limit == 50
        assert config.storage.watches_file == "data/watches.json"
        assert config.positions.default_threshold_pct == 0.05

    def test_env_overrides(self, tmp_path, monkeypatch):
        """Secrets and paths can come from the environment"""
        path = tmp_path / "config.yaml"
        path.write_text("log_level: INFO\n")
        monkeypatch.setenv("TIINGO_API_KEY", "from-env")
        monkeypatch.setenv("PRICEWATCH_WATCHES_FILE", "/tmp/w.json")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        config = Config.load(str(path))

        assert config.market_data.tiingo_api_key == "from-env"
        assert config.storage.watches_file == "/tmp/w.json"
        assert config.log_level == "DEBUG"

    def test_empty_file_without_key_is_invalid(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            Config.load(str(path))

    def test_provider_override(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("")
        monkeypatch.setenv("MARKET_DATA_PROVIDER", "yfinance")

        assert Config.load(str(path)).market_data.provider == "yfinance"
