# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
External document store — where per-day transcripts and derived scores live.

The wellbeing layer only needs five calls; DocumentStore pins them down.
Two adapters ship with the package:

  - InMemoryDocumentStore: dicts, for tests and demos
  - JsonDocumentStore: one JSON file per user-day under
    ~/.deite/days/{user_id}/{YYYY-MM-DD}.json, blocking file I/O pushed to
    the io worker pool

Day file layout:
    {
      "messages": [{"id": ..., "sender": "user", "text": ..., ...}],
      "mood_chart": {"happiness": 70, "energy": 55, "anxiety": 20,
                     "stress": 25, "updated_at": "..."},
      "emotional_balance": {"positive": 63, "negative": 23, "neutral": 14}
    }
"""

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import Counter
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from core.paths import DeitePaths, get_paths
from wellbeing.schemas import (
    ChatMessage, DayBalance, DayScores, MetricRecord, atomic_write_json,
)
from wellbeing.windows import date_id

logger = logging.getLogger("deite.store")


class DocumentStore(ABC):
    """Async access to a user's per-day journaling documents."""

    @abstractmethod
    async def get_day_metrics(self, user_id: str, day: date) -> Optional[MetricRecord]:
        """Derived scores for a day, or None if never derived."""

    @abstractmethod
    async def get_day_messages(self, user_id: str, day: date) -> Optional[List[ChatMessage]]:
        """Raw chat transcript for a day, or None if nothing was written."""

    @abstractmethod
    async def put_day_metrics(self, user_id: str, day: date, scores: DayScores) -> None:
        """Persist derived scores for a day."""

    @abstractmethod
    async def put_day_balance(self, user_id: str, day: date, balance: DayBalance) -> None:
        """Persist the positive/negative/neutral split for a day."""

    @abstractmethod
    async def list_days(self, user_id: str) -> List[date]:
        """Every day the user has any document for, oldest first."""


# ============================================================================
# In-memory adapter
# ============================================================================

class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store. Tracks call counts for introspection."""

    def __init__(self):
        self._metrics: Dict[Tuple[str, date], MetricRecord] = {}
        self._messages: Dict[Tuple[str, date], List[ChatMessage]] = {}
        self._balances: Dict[Tuple[str, date], DayBalance] = {}
        self._lock = threading.Lock()
        self.calls: Counter = Counter()

    # --- seeding helpers ---

    def add_day(
        self,
        user_id: str,
        day: date,
        messages: Optional[Iterable[Any]] = None,
        scores: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Seed a day with a transcript and/or already-derived scores."""
        with self._lock:
            if messages is not None:
                self._messages[(user_id, day)] = [ChatMessage.model_validate(m) for m in messages]
            if scores is not None:
                self._metrics[(user_id, day)] = MetricRecord(date=day, **scores)

    def balance_for(self, user_id: str, day: date) -> Optional[DayBalance]:
        with self._lock:
            return self._balances.get((user_id, day))

    # --- DocumentStore ---

    async def get_day_metrics(self, user_id: str, day: date) -> Optional[MetricRecord]:
        with self._lock:
            self.calls["get_day_metrics"] += 1
            return self._metrics.get((user_id, day))

    async def get_day_messages(self, user_id: str, day: date) -> Optional[List[ChatMessage]]:
        with self._lock:
            self.calls["get_day_messages"] += 1
            messages = self._messages.get((user_id, day))
            return list(messages) if messages is not None else None

    async def put_day_metrics(self, user_id: str, day: date, scores: DayScores) -> None:
        with self._lock:
            self.calls["put_day_metrics"] += 1
            self._metrics[(user_id, day)] = scores.to_record(day)

    async def put_day_balance(self, user_id: str, day: date, balance: DayBalance) -> None:
        with self._lock:
            self.calls["put_day_balance"] += 1
            self._balances[(user_id, day)] = balance

    async def list_days(self, user_id: str) -> List[date]:
        with self._lock:
            self.calls["list_days"] += 1
            days = {d for (u, d) in self._metrics if u == user_id}
            days.update(d for (u, d) in self._messages if u == user_id)
            return sorted(days)


# ============================================================================
# JSON file adapter
# ============================================================================

class JsonDocumentStore(DocumentStore):
    """
    File-per-day store laid out by core.paths (days/{user_id}/{date}.json).

    Reads and writes are blocking, so they run on the io worker pool when
    one is supplied (default executor otherwise).
    """

    def __init__(self, paths: Optional[DeitePaths] = None, pool=None):
        self._paths = paths or get_paths()
        self._pool = pool
        self._write_lock = threading.Lock()

    def _day_file(self, user_id: str, day: date) -> Path:
        return self._paths.day_file(user_id, date_id(day))

    async def _run(self, fn, *args):
        if self._pool is not None:
            return await self._pool.submit(fn, *args)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    def _read_day(self, user_id: str, day: date) -> Dict[str, Any]:
        path = self._day_file(user_id, day)
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except ValueError:
            logger.warning("Unreadable day file %s, treating as empty", path)
            return {}
        return data if isinstance(data, dict) else {}

    def _update_day(self, user_id: str, day: date, field: str, value: Dict[str, Any]) -> None:
        with self._write_lock:
            data = self._read_day(user_id, day)
            data[field] = value
            atomic_write_json(self._day_file(user_id, day), data)

    # --- blocking implementations ---

    def _get_metrics_sync(self, user_id: str, day: date) -> Optional[MetricRecord]:
        raw = self._read_day(user_id, day).get("mood_chart")
        if not isinstance(raw, dict):
            return None
        return MetricRecord(date=day, **{k: v for k, v in raw.items() if k != "date"})

    def _get_messages_sync(self, user_id: str, day: date) -> Optional[List[ChatMessage]]:
        raw = self._read_day(user_id, day).get("messages")
        if not isinstance(raw, list):
            return None
        messages = []
        for item in raw:
            try:
                messages.append(ChatMessage.model_validate(item))
            except ValidationError:
                logger.debug("Skipping malformed message on %s", date_id(day))
        return messages

    def _list_days_sync(self, user_id: str) -> List[date]:
        user_dir = self._paths.user_days_dir(user_id)
        if not user_dir.is_dir():
            return []
        days = []
        for path in user_dir.glob("*.json"):
            try:
                days.append(date.fromisoformat(path.stem))
            except ValueError:
                continue
        return sorted(days)

    # --- DocumentStore ---

    async def get_day_metrics(self, user_id: str, day: date) -> Optional[MetricRecord]:
        return await self._run(self._get_metrics_sync, user_id, day)

    async def get_day_messages(self, user_id: str, day: date) -> Optional[List[ChatMessage]]:
        return await self._run(self._get_messages_sync, user_id, day)

    async def put_day_metrics(self, user_id: str, day: date, scores: DayScores) -> None:
        payload = scores.model_dump()
        payload["updated_at"] = datetime.now().isoformat()
        await self._run(self._update_day, user_id, day, "mood_chart", payload)

    async def put_day_balance(self, user_id: str, day: date, balance: DayBalance) -> None:
        await self._run(self._update_day, user_id, day, "emotional_balance", balance.model_dump())

    async def list_days(self, user_id: str) -> List[date]:
        return await self._run(self._list_days_sync, user_id)
