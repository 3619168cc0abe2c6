# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Emotional balance and window summaries.

Balance splits a day's scores into positive (happiness + energy),
negative (stress + anxiety) and neutral (whatever is left), as integer
percentages. A balance series is that split per day, over the days that
carry signal, for the balance charts.
"""

from typing import Any, Dict, Iterable, List, Sequence

from wellbeing.schemas import (
    BalanceRecord, DayBalance, DayScores, MetricRecord, SCORE_FIELDS, clamp_score,
)


def balance_for(scores: DayScores) -> DayBalance:
    total = scores.happiness + scores.energy + scores.anxiety + scores.stress
    if total <= 0:
        return DayBalance()
    positive = clamp_score((scores.happiness + scores.energy) / total * 100)
    negative = clamp_score((scores.stress + scores.anxiety) / total * 100)
    neutral = clamp_score(100 - positive - negative)
    return DayBalance(positive=positive, negative=negative, neutral=neutral)


def balance_series(records: Iterable[MetricRecord]) -> List[BalanceRecord]:
    """Per-day balance, oldest first. Days without signal are dropped."""
    series = []
    for r in sorted(records, key=lambda r: r.date):
        if r.is_empty:
            continue
        split = balance_for(DayScores(**r.scores()))
        series.append(BalanceRecord(date=r.date, **split.model_dump()))
    return series


def summarize(records: Sequence[MetricRecord]) -> Dict[str, Any]:
    """Averages over the days that carry signal, plus their balance."""
    with_signal = [r for r in records if not r.is_empty]
    if not with_signal:
        return {
            "days": len(records),
            "days_with_data": 0,
            "averages": {f: 0 for f in SCORE_FIELDS},
            "balance": DayBalance().model_dump(),
        }

    averages = {
        f: round(sum(getattr(r, f) for r in with_signal) / len(with_signal))
        for f in SCORE_FIELDS
    }
    return {
        "days": len(records),
        "days_with_data": len(with_signal),
        "averages": averages,
        "balance": balance_for(DayScores(**averages)).model_dump(),
    }
