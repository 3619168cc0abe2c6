# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Dashboard windows and cache dimensions.

Every (user, metric kind, window) triple is an independent cache dimension.
Windows share the same day-level source but no invariant ties their cached
contents together.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Tuple

# Known windows, in days. 365 means "entire history".
WINDOWS: Tuple[int, ...] = (7, 15, 30, 90, 365)
SHORTEST_WINDOW = 7
LIFETIME_WINDOW = 365

EMOTIONAL = "emotional"
BALANCE = "balance"
METRIC_KINDS: Tuple[str, ...] = (EMOTIONAL, BALANCE)

# Balance charts only offer week, month and lifetime.
BALANCE_WINDOWS: Tuple[int, ...] = (7, 30, 365)

_KEY_PREFIX = "emotional_wellbeing"


@dataclass(frozen=True)
class Dimension:
    """One independently cached and arbitrated time series."""
    user_id: str
    metric_kind: str
    window: int

    @property
    def storage_key(self) -> str:
        return f"{_KEY_PREFIX}_{self.metric_kind}_{self.window}_{self.user_id}"

    def for_window(self, window: int) -> "Dimension":
        return Dimension(self.user_id, self.metric_kind, window)

    def __str__(self) -> str:
        return f"{self.user_id}/{self.metric_kind}/{window_label(self.window)}"


def is_lifetime(window: int) -> bool:
    return window == LIFETIME_WINDOW


def window_label(window: int) -> str:
    return "lifetime" if is_lifetime(window) else f"{window} days"


def validate_window(window: int) -> int:
    if window not in WINDOWS:
        raise ValueError(f"Unknown window {window!r}; expected one of {WINDOWS}")
    return window


def validate_kind(metric_kind: str) -> str:
    if metric_kind not in METRIC_KINDS:
        raise ValueError(f"Unknown metric kind {metric_kind!r}; expected one of {METRIC_KINDS}")
    return metric_kind


def date_range(days: int, today: date) -> List[date]:
    """The last `days` calendar dates ending today, oldest first."""
    return [today - timedelta(days=i) for i in range(days - 1, -1, -1)]


def date_id(day: date) -> str:
    return day.isoformat()
