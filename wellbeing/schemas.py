# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Deite Schema Registry — Pydantic models for every payload the wellbeing layer
reads, writes or caches.

Single source of truth for metric records, cache entries, transcripts and
config. Catches field drift and out-of-range scores at load time.

Usage:
    from wellbeing.schemas import MetricRecord, CacheEntry

    # Validate on load (raises pydantic.ValidationError on garbage)
    entry = CacheEntry.model_validate(raw)

    # Serialize on save
    raw = entry.model_dump(mode="json")

Scores are always integers in [0, 100]: anything out of range is clamped and
anything non-numeric becomes 0, mirroring what the dashboard charts expect.
"""

import datetime as dt
import json
import math
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from wellbeing.windows import BALANCE


SCORE_FIELDS = ("happiness", "energy", "anxiety", "stress")


# ============================================================================
# Base config (all models inherit this)
# ============================================================================

class WellbeingModel(BaseModel):
    """Base for all Deite schemas. Allows extra fields for forward compat."""
    model_config = {"extra": "allow"}


# ============================================================================
# Custom exceptions
# ============================================================================

class WellbeingError(Exception):
    """Base for every error the wellbeing layer raises internally."""


class TransientFetchFailure(WellbeingError):
    """Network, timeout or busy worker pool while talking to a collaborator."""


class AnalysisFailure(WellbeingError):
    """The analysis engine returned invalid or empty scores for a day."""


class CacheCorruption(WellbeingError):
    """A cached payload could not be deserialized."""


# ============================================================================
# SCORES
# ============================================================================

def clamp_score(value: Any) -> int:
    """Coerce a raw score to an int in [0, 100]. Non-numbers become 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and math.isnan(value):
        return 0
    return int(round(max(0, min(100, value))))


class MetricRecord(WellbeingModel):
    """One calendar day's four emotion scores, each clamped to 0-100."""
    model_config = {"extra": "ignore", "frozen": True}

    date: dt.date
    happiness: int = 0
    energy: int = 0
    anxiety: int = 0
    stress: int = 0

    @field_validator(*SCORE_FIELDS, mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_score(value)

    @property
    def total(self) -> int:
        return self.happiness + self.energy + self.anxiety + self.stress

    @property
    def is_empty(self) -> bool:
        """All four scores zero — treated as 'no signal'."""
        return self.total == 0

    def scores(self) -> Dict[str, int]:
        return {f: getattr(self, f) for f in SCORE_FIELDS}

    def with_scores(self, **scores: int) -> "MetricRecord":
        """Copy with some scores replaced. Re-runs clamping."""
        data = self.model_dump()
        data.update(scores)
        return MetricRecord.model_validate(data)

    @classmethod
    def empty(cls, date: dt.date) -> "MetricRecord":
        return cls(date=date)


class DayScores(WellbeingModel):
    """Scores as derived by the analysis engine, before any rule is applied."""
    happiness: int = Field(ge=0, le=100)
    energy: int = Field(ge=0, le=100)
    anxiety: int = Field(ge=0, le=100)
    stress: int = Field(ge=0, le=100)

    def to_record(self, date: dt.date) -> MetricRecord:
        return MetricRecord(date=date, **self.model_dump(include=set(SCORE_FIELDS)))


class DayBalance(WellbeingModel):
    """Positive / negative / neutral split for a day, in percent."""
    positive: int = Field(default=0, ge=0, le=100)
    negative: int = Field(default=0, ge=0, le=100)
    neutral: int = Field(default=0, ge=0, le=100)


class BalanceRecord(DayBalance):
    """One calendar day's balance split, as served on balance charts."""
    model_config = {"extra": "ignore", "frozen": True}

    date: dt.date

    @property
    def is_empty(self) -> bool:
        return self.positive + self.negative + self.neutral == 0


# What a cached series holds, depending on its metric kind
SeriesRecord = Union[MetricRecord, BalanceRecord]


# ============================================================================
# TRANSCRIPTS
# ============================================================================

class ChatMessage(WellbeingModel):
    """Single journaling chat message for a day."""
    id: str = ""
    sender: str = "user"  # user | ai
    text: str = ""
    is_whisper_session: bool = False


# ============================================================================
# CACHE
# ============================================================================

class CacheEntry(WellbeingModel):
    """Cached time series for one (user, metric kind, window) dimension."""
    model_config = {"extra": "ignore", "frozen": True}

    key: str
    user_id: str
    metric_kind: str
    window: int
    records: List[SeriesRecord] = Field(default_factory=list)
    fetched_at: dt.datetime

    @field_validator("records", mode="before")
    @classmethod
    def _typed_records(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, list):
            return value
        model = BalanceRecord if info.data.get("metric_kind") == BALANCE else MetricRecord
        return [model.model_validate(v) if isinstance(v, dict) else v for v in value]


# ============================================================================
# CONFIG
# ============================================================================

class WellbeingConfig(WellbeingModel):
    """Tunables: ~/.deite/wellbeing-config.json"""
    cutoff_hour: int = Field(default=12, ge=0, le=23)
    max_age_hours: float = Field(default=24.0, gt=0)
    fast_cache_minutes: float = Field(default=5.0, ge=0)
    external_timeout: float = Field(default=120.0, gt=0)
    windows: List[int] = Field(default_factory=lambda: [7, 15, 30, 90, 365])
    balance_windows: List[int] = Field(default_factory=lambda: [7, 30, 365])
    lifetime_fallback_days: int = Field(default=30, ge=1)
    analysis_url: str = "http://localhost:11434"
    analysis_model: str = "llama3:70b"
    io_workers: int = Field(default=4, ge=1)
    analysis_workers: int = Field(default=2, ge=1)


# ============================================================================
# UTILITY: atomic JSON writes
# ============================================================================

def _atomic_rename(tmp: Path, dest: Path):
    """Flush, fsync, then rename — crash-safe atomic write."""
    fd = os.open(str(tmp), os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)
    os.replace(str(tmp), str(dest))


def atomic_write_json(path: Path, data: Any, indent: Optional[int] = 2):
    """Atomically write a dict/list as JSON (write .tmp, then rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=indent, default=str))
    _atomic_rename(tmp, path)
