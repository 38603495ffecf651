"""
Persistence for watch tasks and watched positions.

The processors only see the narrow abstract interfaces (insert-or-ignore,
due-range query, batched update). The JSON-file stores persist to a single
file each; every batch is written to a temp file and renamed into place so a
batch lands whole or not at all.
"""
import json
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any

from .constants import STATUS_PENDING
from .exceptions import StoreError
from .logger import logger
from .market_calendar import to_utc, utc_now
from .models import PositionUpdate, WatchedPosition, WatchTask, WatchUpdate, format_instant, parse_instant


class WatchStore(ABC):
    """Storage contract for WatchTask rows"""

    @abstractmethod
    def insert_ignore(self, tasks: list[WatchTask]) -> int:
        """Insert tasks whose (post_id, ticker) is unknown; return how many were inserted"""

    @abstractmethod
    def fetch_due(self, now: datetime, limit: int) -> list[WatchTask]:
        """Pending tasks with next_check_at <= now, ascending by next_check_at"""

    @abstractmethod
    def apply_updates(self, updates: list[WatchUpdate]) -> None:
        """Apply a batch of field updates by id"""

    @abstractmethod
    def get(self, task_id: int) -> WatchTask | None:
        ...

    @abstractmethod
    def all(self) -> list[WatchTask]:
        ...


class PositionStore(ABC):
    """Storage contract for WatchedPosition rows"""

    @abstractmethod
    def fetch_watched(self, limit: int) -> list[WatchedPosition]:
        """Positions with watch=True and shares > 0"""

    @abstractmethod
    def apply_updates(self, updates: list[PositionUpdate]) -> None:
        ...


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_instant(value)
    return value


def _read_json(path: Path, default: dict) -> dict:
    if not path.exists():
        return default
    try:
        content = path.read_text()
        if not content.strip():
            return default
        return json.loads(content)
    except json.JSONDecodeError as e:
        logger.error("store.load.json_error", path=str(path), error=str(e))
        raise StoreError(f"Corrupted store file: {e}", {"path": str(path)}, e)
    except OSError as e:
        logger.error("store.load.error", path=str(path), error=str(e))
        raise StoreError(f"Failed to load store: {e}", {"path": str(path)}, e)


def _write_json(path: Path, data: dict):
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp, path)
    except OSError as e:
        logger.error("store.save.error", path=str(path), error=str(e))
        raise StoreError(f"Failed to save store: {e}", {"path": str(path)}, e)


class JsonWatchStore(WatchStore):
    """WatchTask rows in one JSON file, unique on (post_id, ticker)"""

    def __init__(self, data_file: str = "price_watches.json"):
        self.data_file = Path(data_file)

    def _load(self) -> dict:
        data = _read_json(self.data_file, {"next_id": 1, "tasks": []})
        data.setdefault("next_id", 1)
        data.setdefault("tasks", [])
        return data

    def _save(self, data: dict):
        _write_json(self.data_file, data)

    def insert_ignore(self, tasks: list[WatchTask]) -> int:
        if not tasks:
            return 0

        data = self._load()
        known = {(row["post_id"], row["ticker"]) for row in data["tasks"]}
        stamp = format_instant(utc_now())
        inserted = 0

        for task in tasks:
            if task.key in known:
                logger.debug("store.insert_ignored", post_id=task.post_id, ticker=task.ticker)
                continue
            row = task.to_dict()
            row["id"] = data["next_id"]
            row["created_at"] = stamp
            row["updated_at"] = stamp
            data["next_id"] += 1
            data["tasks"].append(row)
            known.add(task.key)
            inserted += 1

        if inserted:
            self._save(data)
        return inserted

    def fetch_due(self, now: datetime, limit: int) -> list[WatchTask]:
        now = to_utc(now)
        due = []
        for row in self._load()["tasks"]:
            if row.get("status") != STATUS_PENDING:
                continue
            next_check = parse_instant(row.get("next_check_at"))
            if next_check is None or next_check > now:
                continue
            due.append((next_check, row["id"], row))

        due.sort(key=lambda item: (item[0], item[1]))
        return [WatchTask.from_dict(row) for _, _, row in due[:limit]]

    def apply_updates(self, updates: list[WatchUpdate]) -> None:
        """
        Apply all updates in one write.

        Raises:
            StoreError: If any update references an unknown id (nothing is written)
        """
        if not updates:
            return

        data = self._load()
        by_id = {row["id"]: row for row in data["tasks"]}
        missing = [u.id for u in updates if u.id not in by_id]
        if missing:
            raise StoreError("Update references unknown watch ids", {"ids": missing})

        stamp = format_instant(utc_now())
        for update in updates:
            row = by_id[update.id]
            for name, value in update.changes.items():
                row[name] = _encode(value)
            row["updated_at"] = stamp

        self._save(data)
        logger.debug("store.updates_applied", count=len(updates))

    def get(self, task_id: int) -> WatchTask | None:
        for row in self._load()["tasks"]:
            if row["id"] == task_id:
                return WatchTask.from_dict(row)
        return None

    def all(self) -> list[WatchTask]:
        return [WatchTask.from_dict(row) for row in self._load()["tasks"]]

    def get_stats(self) -> dict:
        counts: dict[str, int] = {}
        for row in self._load()["tasks"]:
            status = row.get("status", "unknown")
            counts[status] = counts.get(status, 0) + 1
        return {"total": sum(counts.values()), "by_status": counts}


class JsonPositionStore(PositionStore):
    """WatchedPosition rows in one JSON file, unique on id"""

    def __init__(self, data_file: str = "watched_positions.json"):
        self.data_file = Path(data_file)

    def _load(self) -> dict:
        data = _read_json(self.data_file, {"positions": []})
        data.setdefault("positions", [])
        return data

    def _save(self, data: dict):
        _write_json(self.data_file, data)

    def add(self, position: WatchedPosition):
        """Insert or replace a position (user-facing edits)"""
        data = self._load()
        row = position.to_dict()
        row["ticker"] = position.ticker.upper()
        data["positions"] = [p for p in data["positions"] if str(p["id"]) != position.id]
        data["positions"].append(row)
        self._save(data)

    def fetch_watched(self, limit: int) -> list[WatchedPosition]:
        watched = []
        for row in self._load()["positions"]:
            position = WatchedPosition.from_dict(row)
            if position.watch and position.shares > 0:
                watched.append(position)
            if len(watched) >= limit:
                break
        return watched

    def apply_updates(self, updates: list[PositionUpdate]) -> None:
        """
        Apply all updates in one write.

        Raises:
            StoreError: If any update references an unknown id (nothing is written)
        """
        if not updates:
            return

        data = self._load()
        by_id = {str(row["id"]): row for row in data["positions"]}
        missing = [u.id for u in updates if u.id not in by_id]
        if missing:
            raise StoreError("Update references unknown position ids", {"ids": missing})

        for update in updates:
            row = by_id[update.id]
            for name, value in update.changes.items():
                row[name] = _encode(value)

        self._save(data)

    def all(self) -> list[WatchedPosition]:
        return [WatchedPosition.from_dict(row) for row in self._load()["positions"]]
