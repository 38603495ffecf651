"""Shared fixtures: an in-memory bar source and temp-file stores"""
import os

os.environ.setdefault("LOG_TO_FILE", "0")

import pytest  # noqa: E402

from pricewatch.models import MarketBar  # noqa: E402
from pricewatch.store import JsonPositionStore, JsonWatchStore  # noqa: E402


class FakeSource:
    """Bar source answering from a dict, recording every call"""

    name = "fake"

    def __init__(self, bars=None, errors=None):
        self.bars = bars or {}
        self.errors = errors or {}
        self.calls = []

    def fetch(self, ticker, start, end, frequency):
        self.calls.append((ticker, start, end, frequency))
        if ticker in self.errors:
            raise self.errors[ticker]
        return list(self.bars.get(ticker, []))


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def make_bar():
    def _make(timestamp, close, open_=None):
        open_ = close if open_ is None else open_
        return MarketBar(timestamp=timestamp, open=open_, high=max(open_, close), low=min(open_, close),
                         close=close, volume=1000.0)
    return _make


@pytest.fixture
def watch_store(tmp_path):
    return JsonWatchStore(str(tmp_path / "price_watches.json"))


@pytest.fixture
def position_store(tmp_path):
    return JsonPositionStore(str(tmp_path / "watched_positions.json"))
