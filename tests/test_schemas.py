# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""Tests for wellbeing schemas and windows."""

import json
from datetime import date, datetime

import pytest
from pydantic import ValidationError

from wellbeing.schemas import (
    BalanceRecord, CacheEntry, DayScores, MetricRecord, WellbeingConfig, atomic_write_json,
    clamp_score,
)
from wellbeing.windows import Dimension, date_range, validate_kind, validate_window, window_label

DAY = date(2026, 3, 10)


class TestClamp:

    @pytest.mark.parametrize("raw, expected", [
        (50, 50), (150, 100), (-5, 0), (55.6, 56), ("80", 0),
        (None, 0), (True, 0), (float("nan"), 0),
    ])
    def test_clamp_score(self, raw, expected):
        assert clamp_score(raw) == expected


class TestMetricRecord:

    def test_scores_clamped_on_construction(self):
        r = MetricRecord(date=DAY, happiness=140, energy=-3, anxiety="x", stress=None)
        assert r.scores() == {"happiness": 100, "energy": 0, "anxiety": 0, "stress": 0}

    def test_missing_scores_default_zero(self):
        r = MetricRecord(date=DAY)
        assert r.is_empty
        assert r.total == 0

    def test_date_parsed_from_string(self):
        assert MetricRecord(date="2026-03-10").date == DAY

    def test_frozen(self):
        r = MetricRecord(date=DAY, happiness=10)
        with pytest.raises(ValidationError):
            r.happiness = 20

    def test_with_scores_reclamps(self):
        r = MetricRecord(date=DAY, happiness=10).with_scores(happiness=500)
        assert r.happiness == 100
        assert r.date == DAY


class TestDayScores:

    def test_rejects_out_of_range(self):
        with pytest.raises(ValidationError):
            DayScores(happiness=101, energy=1, anxiety=1, stress=1)

    def test_to_record(self):
        scores = DayScores(happiness=70, energy=60, anxiety=20, stress=10)
        assert scores.to_record(DAY) == MetricRecord(
            date=DAY, happiness=70, energy=60, anxiety=20, stress=10,
        )


class TestCacheEntry:

    def test_json_round_trip(self):
        entry = CacheEntry(
            key="k", user_id="u1", metric_kind="emotional", window=7,
            records=[MetricRecord(date=DAY, happiness=40)],
            fetched_at=datetime(2026, 3, 10, 13, 0),
        )
        restored = CacheEntry.model_validate(json.loads(json.dumps(entry.model_dump(mode="json"))))
        assert restored == entry

    def test_balance_records_typed_by_kind(self):
        raw = {
            "key": "k", "user_id": "u1", "metric_kind": "balance", "window": 30,
            "records": [{"date": "2026-03-10", "positive": 55, "negative": 40, "neutral": 5}],
            "fetched_at": "2026-03-10T13:00:00",
        }
        entry = CacheEntry.model_validate(raw)
        assert entry.records == [BalanceRecord(date=DAY, positive=55, negative=40, neutral=5)]

    def test_emotional_records_typed_by_kind(self):
        raw = {
            "key": "k", "user_id": "u1", "metric_kind": "emotional", "window": 7,
            "records": [{"date": "2026-03-10", "happiness": 70}],
            "fetched_at": "2026-03-10T13:00:00",
        }
        assert CacheEntry.model_validate(raw).records[0].happiness == 70

    def test_bad_balance_record_rejected(self):
        raw = {
            "key": "k", "user_id": "u1", "metric_kind": "balance", "window": 7,
            "records": [{"date": "2026-03-10", "positive": 140}],
            "fetched_at": "2026-03-10T13:00:00",
        }
        with pytest.raises(ValidationError):
            CacheEntry.model_validate(raw)

    def test_garbage_rejected(self):
        with pytest.raises(ValidationError):
            CacheEntry.model_validate({"records": "nope"})


class TestConfigModel:

    def test_defaults(self):
        cfg = WellbeingConfig()
        assert cfg.cutoff_hour == 12
        assert cfg.windows == [7, 15, 30, 90, 365]
        assert cfg.balance_windows == [7, 30, 365]
        assert cfg.analysis_model == "llama3:70b"

    def test_cutoff_bounds(self):
        with pytest.raises(ValidationError):
            WellbeingConfig(cutoff_hour=24)


class TestAtomicWrite:

    def test_writes_and_replaces(self, tmp_path):
        target = tmp_path / "sub" / "data.json"
        atomic_write_json(target, {"a": 1})
        atomic_write_json(target, {"a": 2})
        assert json.loads(target.read_text()) == {"a": 2}
        assert not target.with_suffix(".json.tmp").exists()


class TestWindows:

    def test_storage_key(self):
        dim = Dimension("u1", "emotional", 30)
        assert dim.storage_key == "emotional_wellbeing_emotional_30_u1"

    def test_dimension_hashable(self):
        assert len({Dimension("u", "emotional", 7), Dimension("u", "emotional", 7)}) == 1

    def test_for_window(self):
        assert Dimension("u", "emotional", 7).for_window(90).window == 90

    def test_date_range_oldest_first(self):
        days = date_range(7, DAY)
        assert len(days) == 7
        assert days[0] == date(2026, 3, 4)
        assert days[-1] == DAY

    def test_validate_window(self):
        assert validate_window(90) == 90
        with pytest.raises(ValueError):
            validate_window(14)

    def test_validate_kind(self):
        assert validate_kind("balance") == "balance"
        with pytest.raises(ValueError):
            validate_kind("pattern")

    def test_labels(self):
        assert window_label(365) == "lifetime"
        assert window_label(15) == "15 days"
