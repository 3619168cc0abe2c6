# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Staleness policy — when must cached dashboard data be refreshed?

Once-per-day noon cutoff (local time):
  - before noon, cached data is trusted regardless of age
  - after noon, refresh once unless the last fetch already happened
    today after noon
  - force_refresh always wins

Separately, anything older than an absolute ceiling (24h) is treated as
missing by the cache read path, so a broken clock or bypassed cutoff can't
pin stale data forever.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

CUTOFF_HOUR = 12
MAX_AGE_HOURS = 24.0
FAST_CACHE_MINUTES = 5.0


def should_refresh(
    last_fetch: Optional[datetime],
    now: datetime,
    force_refresh: bool = False,
    cutoff_hour: int = CUTOFF_HOUR,
) -> bool:
    """Decide whether a cached dimension needs a refresh."""
    if force_refresh:
        return True

    if now.hour < cutoff_hour:
        return False

    if last_fetch is None:
        return True
    if last_fetch.date() != now.date():
        return True
    if last_fetch.hour < cutoff_hour:
        return True
    return False


def is_expired(
    fetched_at: datetime,
    now: datetime,
    max_age_hours: float = MAX_AGE_HOURS,
) -> bool:
    """True once an entry is past the absolute age ceiling."""
    return now - fetched_at > timedelta(hours=max_age_hours)


def is_recent(
    fetched_at: datetime,
    now: datetime,
    minutes: float = FAST_CACHE_MINUTES,
) -> bool:
    """Read-through shortcut: very young entries skip the cutoff check."""
    if minutes <= 0:
        return False
    return timedelta(0) <= now - fetched_at < timedelta(minutes=minutes)


def same_side_of_cutoff(a: datetime, b: datetime, cutoff_hour: int = CUTOFF_HOUR) -> bool:
    return a.date() == b.date() and (a.hour < cutoff_hour) == (b.hour < cutoff_hour)


@dataclass(frozen=True)
class StalenessPolicy:
    """The three checks above, bound to one set of tunables."""
    cutoff_hour: int = CUTOFF_HOUR
    max_age_hours: float = MAX_AGE_HOURS
    fast_cache_minutes: float = FAST_CACHE_MINUTES

    def should_refresh(self, last_fetch: Optional[datetime], now: datetime,
                       force_refresh: bool = False) -> bool:
        # The read-through never spans the cutoff
        if (
            not force_refresh
            and last_fetch is not None
            and same_side_of_cutoff(last_fetch, now, self.cutoff_hour)
            and is_recent(last_fetch, now, self.fast_cache_minutes)
        ):
            return False
        return should_refresh(last_fetch, now, force_refresh, self.cutoff_hour)

    def is_expired(self, fetched_at: datetime, now: datetime) -> bool:
        return is_expired(fetched_at, now, self.max_age_hours)
