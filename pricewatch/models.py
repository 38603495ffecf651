"""
Data models and type definitions.

This module contains all dataclasses used by the scheduler, the processors
and the stores. Instants are aware UTC datetimes; the ``to_dict`` /
``from_dict`` pairs convert them to and from ISO-8601 strings for storage.
"""
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any

from .constants import POSITION_ALERT_THRESHOLD, STATUS_PENDING
from .exceptions import ValidationError
from .market_calendar import to_utc
from .validation import parse_number


def parse_instant(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or datetime into aware UTC, None if unparsable"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def format_instant(value: datetime | None) -> str | None:
    if value is None:
        return None
    return to_utc(value).isoformat()


def _serialize(obj) -> dict[str, Any]:
    data = asdict(obj)
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = format_instant(value)
    return data


@dataclass
class MarketBar:
    """One OHLC(+V) sample"""

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float | None = None


@dataclass
class WatchSeed:
    """A freshly alerted (post, ticker) pair handed to the scheduler."""

    post_id: str
    ticker: str
    quality_score: int
    alerted_at: datetime
    entry_price: float
    entry_price_observed_at: datetime | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "WatchSeed":
        """
        Build a seed from loosely typed JSON.

        Accepts snake_case or camelCase keys. ``alerted_at`` must parse;
        a bad entry price is kept as NaN so the scheduler drops the seed.

        Raises:
            ValidationError: If the payload is not a mapping or has no usable alert time
        """
        if not isinstance(raw, dict):
            raise ValidationError("Seed must be an object", {"type": type(raw).__name__})

        def pick(*names):
            for name in names:
                if name in raw:
                    return raw[name]
            return None

        alerted_at = parse_instant(pick("alerted_at", "alertedAt", "emailedAtIso"))
        if alerted_at is None:
            raise ValidationError("Seed has no valid alerted_at", {"post_id": pick("post_id", "postId")})

        entry_price = parse_number(pick("entry_price", "entryPrice"))
        quality = parse_number(pick("quality_score", "qualityScore"))

        return cls(
            post_id=str(pick("post_id", "postId") or ""),
            ticker=str(pick("ticker") or ""),
            quality_score=int(quality) if quality is not None else 0,
            alerted_at=alerted_at,
            entry_price=entry_price if entry_price is not None else float("nan"),
            entry_price_observed_at=parse_instant(
                pick("entry_price_observed_at", "entryPriceObservedAt", "entryPriceObservedAtIso")
            ),
        )


@dataclass
class WatchTask:
    """Persisted watch over one (post, ticker) pair."""

    post_id: str
    ticker: str
    quality_score: int
    entry_price: float | None
    entry_price_observed_at: datetime
    alerted_at: datetime
    monitor_start: datetime
    monitor_close: datetime
    next_check_at: datetime | None
    status: str = STATUS_PENDING
    stop_reason: str | None = None
    last_price: float | None = None
    last_price_observed_at: datetime | None = None
    triggered_at: datetime | None = None
    triggered_price: float | None = None
    triggered_move_pct: float | None = None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.post_id, self.ticker)

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "WatchTask":
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in raw.items() if k in known}
        for name in _TASK_INSTANT_FIELDS & data.keys():
            data[name] = parse_instant(data[name])
        for name in _TASK_NUMBER_FIELDS & data.keys():
            data[name] = parse_number(data[name])
        return cls(**data)


_TASK_INSTANT_FIELDS = {
    "entry_price_observed_at", "alerted_at", "monitor_start", "monitor_close",
    "next_check_at", "last_price_observed_at", "triggered_at", "created_at", "updated_at",
}
_TASK_NUMBER_FIELDS = {"entry_price", "last_price", "triggered_price", "triggered_move_pct"}


@dataclass
class WatchUpdate:
    """Fields changed on one task by one transition"""

    id: int
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass
class PriceWatchAlert:
    """A watch that just triggered, for delivery by the notification side"""

    watch_id: int
    post_id: str
    ticker: str
    quality_score: int
    entry_price: float
    entry_price_observed_at: datetime
    current_price: float
    move_pct: float
    alerted_at: datetime
    triggered_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class PriceWatchResult:
    """Aggregate counts of one sweep"""

    checked: int = 0
    triggered: list[PriceWatchAlert] = field(default_factory=list)
    expired: int = 0
    rescheduled: int = 0
    data_unavailable: int = 0
    exceeded_fifteen_pct: int = 0

    def summary(self) -> dict[str, int]:
        return {
            "checked": self.checked,
            "triggered": len(self.triggered),
            "expired": self.expired,
            "rescheduled": self.rescheduled,
            "data_unavailable": self.data_unavailable,
            "exceeded_fifteen_pct": self.exceeded_fifteen_pct,
        }


@dataclass
class WatchedPosition:
    """A user-held position watched for adverse moves."""

    id: str
    user_id: str
    ticker: str
    shares: float
    watch: bool = False
    last_price: float | None = None
    last_price_observed_at: datetime | None = None
    last_price_source: str | None = None
    alert_threshold_pct: float | None = POSITION_ALERT_THRESHOLD
    last_alert_at: datetime | None = None
    last_alert_price: float | None = None
    last_alert_move_pct: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "WatchedPosition":
        return cls(
            id=str(raw["id"]),
            user_id=str(raw.get("user_id") or ""),
            ticker=str(raw.get("ticker") or "").upper(),
            shares=parse_number(raw.get("shares")) or 0.0,
            watch=bool(raw.get("watch", False)),
            last_price=parse_number(raw.get("last_price")),
            last_price_observed_at=parse_instant(raw.get("last_price_observed_at")),
            last_price_source=raw.get("last_price_source"),
            alert_threshold_pct=parse_number(raw.get("alert_threshold_pct", POSITION_ALERT_THRESHOLD)),
            last_alert_at=parse_instant(raw.get("last_alert_at")),
            last_alert_price=parse_number(raw.get("last_alert_price")),
            last_alert_move_pct=parse_number(raw.get("last_alert_move_pct")),
        )


@dataclass
class PositionUpdate:
    id: str
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass
class PositionDropAlert:
    position_id: str
    user_id: str
    ticker: str
    shares: float
    previous_price: float
    current_price: float
    move_pct: float
    threshold_pct: float
    checked_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class PositionResult:
    checked: int = 0
    updated: int = 0
    alerts: list[PositionDropAlert] = field(default_factory=list)
    data_unavailable: int = 0

    def summary(self) -> dict[str, int]:
        return {
            "checked": self.checked,
            "updated": self.updated,
            "alerts": len(self.alerts),
            "data_unavailable": self.data_unavailable,
        }
