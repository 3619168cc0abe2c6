# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Prefetcher — warms the other windows once the active one has loaded.

Runs at most once per session per (user, metric kind). The marker lives
in memory and is cleared by reset() at login, sign-out or invalidate_all.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from wellbeing.cache import CacheStore
from wellbeing.staleness import StalenessPolicy
from wellbeing.windows import WINDOWS, Dimension

logger = logging.getLogger("deite.prefetch")


class Prefetcher:
    """
    Walks the known windows and starts a background refresh for each one
    whose cache entry is absent or stale.

    `refresh` is the service's fire-and-forget entry point; it owns
    generations, dedup and task tracking. `kind_windows` overrides the
    window set for particular metric kinds.
    """

    def __init__(
        self,
        cache: CacheStore,
        policy: StalenessPolicy,
        refresh: Callable[[Dimension], object],
        clock: Callable[[], datetime] = datetime.now,
        windows: Iterable[int] = WINDOWS,
        kind_windows: Optional[Dict[str, Iterable[int]]] = None,
    ):
        self._cache = cache
        self._policy = policy
        self._refresh = refresh
        self._clock = clock
        self._windows = tuple(windows)
        self._kind_windows = {k: tuple(v) for k, v in (kind_windows or {}).items()}
        self._done: Set[Tuple[str, str]] = set()
        self._lock = threading.Lock()

    def maybe_prefetch(self, active: Dimension) -> List[Dimension]:
        """Start background refreshes for stale siblings. Returns them."""
        marker = (active.user_id, active.metric_kind)
        with self._lock:
            if marker in self._done:
                return []
            self._done.add(marker)

        started = []
        now = self._clock()
        for window in self._kind_windows.get(active.metric_kind, self._windows):
            if window == active.window:
                continue
            dim = active.for_window(window)
            entry = self._cache.get(dim)
            if entry is not None and not self._policy.should_refresh(entry.fetched_at, now):
                continue
            self._refresh(dim)
            started.append(dim)

        if started:
            logger.info("Prefetching %d window(s) for %s", len(started), active.user_id)
        return started

    def has_run(self, user_id: str, metric_kind: str) -> bool:
        with self._lock:
            return (user_id, metric_kind) in self._done

    def reset(self, user_id: Optional[str] = None) -> None:
        """Clear the marker for one user, or for everyone."""
        with self._lock:
            if user_id is None:
                self._done.clear()
            else:
                self._done = {m for m in self._done if m[0] != user_id}
