# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Wellbeing service — what the dashboard talks to.

One instance per signed-in session (no module singletons). Wires the
cache, staleness policy, arbiter, orchestrator, prefetcher and
subscription hub together and exposes:

    get_metrics(user_id, window, force_refresh=False, metric_kind="emotional")
    invalidate_all(user_id)
    subscribe(dimension, callback) -> unsubscribe
    state(dimension)
    summary(user_id, window)

Metric kinds: "emotional" (four adjusted scores per day) and "balance"
(positive/negative/neutral split per day). Each (user, kind, window) is
its own cache dimension with its own generations and prefetch marker.

get_metrics never raises for collaborator trouble:
  - fresh cache        -> cached records, no fetch
  - stale cache        -> cached records, refresh in the background
  - no cache / forced  -> await the refresh; if it was superseded or
                          produced nothing committable, fall back to the
                          cache, then to the empty-state payload
"""

import asyncio
import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from wellbeing.arbiter import RequestArbiter
from wellbeing.balance import summarize
from wellbeing.cache import CacheStore
from wellbeing.events import MetricsUpdate, SubscriptionHub
from wellbeing.pipeline import FetchOrchestrator
from wellbeing.prefetch import Prefetcher
from wellbeing.schemas import MetricRecord, SeriesRecord, WellbeingConfig
from wellbeing.staleness import StalenessPolicy
from wellbeing.windows import (
    BALANCE, EMOTIONAL, SHORTEST_WINDOW, Dimension, date_range, validate_kind,
    validate_window, window_label,
)

logger = logging.getLogger("deite.service")


class DimensionState(str, Enum):
    EMPTY = "empty"
    FETCHING = "fetching"
    FRESH = "fresh"
    STALE = "stale"


def empty_payload(window: int, today: date, metric_kind: str = EMOTIONAL) -> List[SeriesRecord]:
    """What the dashboard shows when nothing could be loaded."""
    if metric_kind == EMOTIONAL and window == SHORTEST_WINDOW:
        return [MetricRecord.empty(d) for d in date_range(SHORTEST_WINDOW, today)]
    return []


class WellbeingService:
    """Cache service for the wellbeing dashboard."""

    def __init__(
        self,
        store,
        analysis,
        config: Optional[WellbeingConfig] = None,
        kv=None,
        clock: Callable[[], datetime] = datetime.now,
        workers=None,
        prefetch: bool = True,
    ):
        self.config = config or WellbeingConfig()
        self._clock = clock
        self._workers = workers
        self._prefetch_enabled = prefetch

        self.policy = StalenessPolicy(
            cutoff_hour=self.config.cutoff_hour,
            max_age_hours=self.config.max_age_hours,
            fast_cache_minutes=self.config.fast_cache_minutes,
        )
        self.cache = CacheStore(kv=kv, clock=clock, max_age_hours=self.config.max_age_hours)
        self.arbiter = RequestArbiter()
        self.hub = SubscriptionHub()
        self.orchestrator = FetchOrchestrator(
            store=store,
            analysis=analysis,
            cache=self.cache,
            arbiter=self.arbiter,
            hub=self.hub,
            clock=clock,
            timeout=self.config.external_timeout,
            lifetime_fallback_days=self.config.lifetime_fallback_days,
            io_pool=workers.io if workers is not None else None,
        )
        self.prefetcher = Prefetcher(
            cache=self.cache,
            policy=self.policy,
            refresh=self.refresh,
            clock=clock,
            windows=self.config.windows,
            kind_windows={BALANCE: self.config.balance_windows},
        )

        self._in_flight: Dict[Dimension, asyncio.Task] = {}
        self._tasks: Set[asyncio.Task] = set()

    def dimension(self, user_id: str, window: int, metric_kind: str = EMOTIONAL) -> Dimension:
        return Dimension(user_id, validate_kind(metric_kind), validate_window(window))

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def get_metrics(
        self,
        user_id: str,
        window: int,
        force_refresh: bool = False,
        metric_kind: str = EMOTIONAL,
    ) -> List[SeriesRecord]:
        dim = self.dimension(user_id, window, metric_kind)
        entry = self.cache.get(dim)

        if entry is not None and not self.policy.should_refresh(
            entry.fetched_at, self._clock(), force_refresh
        ):
            self._prefetch(dim)
            return list(entry.records)

        task = self.refresh(dim, force=force_refresh)
        if entry is not None and not force_refresh:
            logger.debug("Serving stale %s while refreshing", dim)
            self._prefetch(dim)
            return list(entry.records)

        records = await asyncio.shield(task)
        if records is not None:
            self._prefetch(dim)
            return list(records)

        entry = self.cache.get(dim)
        if entry is not None:
            return list(entry.records)
        return empty_payload(window, self._clock().date(), metric_kind)

    def _prefetch(self, dimension: Dimension) -> None:
        if self._prefetch_enabled:
            self.prefetcher.maybe_prefetch(dimension)

    def refresh(self, dimension: Dimension, force: bool = False) -> asyncio.Task:
        """
        Start a background refresh and return its task.

        Non-forced refreshes join a fetch already in flight for the same
        dimension; forced ones always take a new generation.
        """
        running = self._in_flight.get(dimension)
        if running is not None and not running.done() and not force:
            return running

        generation = self.arbiter.start_request(dimension)
        task = asyncio.get_running_loop().create_task(self._run_fetch(dimension, generation))
        self._in_flight[dimension] = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_fetch(self, dimension: Dimension, generation: int) -> Optional[List[SeriesRecord]]:
        try:
            return await self.orchestrator.fetch(dimension, generation)
        except Exception:
            logger.exception("Refresh failed for %s #%d", dimension, generation)
            return None
        finally:
            task = asyncio.current_task()
            if self._in_flight.get(dimension) is task:
                del self._in_flight[dimension]

    # ------------------------------------------------------------------
    # State / invalidation / subscriptions
    # ------------------------------------------------------------------

    def state(self, dimension: Dimension) -> DimensionState:
        running = self._in_flight.get(dimension)
        if running is not None and not running.done():
            return DimensionState.FETCHING
        entry = self.cache.get(dimension)
        if entry is None:
            return DimensionState.EMPTY
        if self.policy.should_refresh(entry.fetched_at, self._clock()):
            return DimensionState.STALE
        return DimensionState.FRESH

    def invalidate_all(self, user_id: str) -> int:
        """
        Drop every cached dimension for a user and forget the prefetch
        marker. Fetches still in flight for the user are superseded so
        they can't repopulate the cache.
        """
        for dim in [d for d in self._in_flight if d.user_id == user_id]:
            self.arbiter.start_request(dim)
            del self._in_flight[dim]
        removed = self.cache.invalidate_user(user_id)
        self.prefetcher.reset(user_id)
        logger.info("Invalidated %d cached dimension(s) for %s", removed, user_id)
        return removed

    def subscribe(
        self,
        dimension: Dimension,
        callback: Callable[[MetricsUpdate], Any],
        priority: int = 0,
        source: Optional[str] = None,
    ) -> Callable[[], bool]:
        return self.hub.subscribe(dimension, callback, priority=priority, source=source)

    def summary(self, user_id: str, window: int) -> Dict[str, Any]:
        """Averages and balance over the cached emotional payload for a window."""
        dim = self.dimension(user_id, window)
        entry = self.cache.get(dim)
        result = summarize(entry.records if entry else [])
        result["window"] = window_label(window)
        result["fetched_at"] = entry.fetched_at.isoformat() if entry else None
        return result

    def stats(self) -> Dict[str, Any]:
        stats = {
            "cache": self.cache.stats(),
            "arbiter": self.arbiter.stats(),
            "pipeline": self.orchestrator.stats(),
            "events": self.hub.stats(),
            "in_flight": len(self._in_flight),
        }
        if self._workers is not None:
            stats["workers"] = self._workers.stats()
        return stats

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def wait_idle(self) -> None:
        """Wait for every background refresh (prefetches included)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Sign-out: settle background work, drop subscribers, stop pools."""
        await self.wait_idle()
        self.hub.clear()
        self.prefetcher.reset()
        if self._workers is not None:
            self._workers.shutdown(wait=False)
        logger.info("Wellbeing service closed")


def create_service(
    config: Optional[WellbeingConfig] = None,
    clock=datetime.now,
    prefetch: bool = True,
) -> WellbeingService:
    """Build a service backed by the on-disk stores under core.paths."""
    from core.paths import get_paths
    from wellbeing.analysis import AnalysisEngine
    from wellbeing.kvstore import JsonFileKeyValueStore
    from wellbeing.store import JsonDocumentStore
    from wellbeing.workers import WorkerManager

    config = config or WellbeingConfig()
    paths = get_paths()
    paths.ensure_dirs()

    workers = WorkerManager(io_workers=config.io_workers, analysis_workers=config.analysis_workers)
    store = JsonDocumentStore(paths=paths, pool=workers.io)
    analysis = AnalysisEngine(
        url=config.analysis_url,
        model=config.analysis_model,
        timeout=config.external_timeout,
        pool=workers.analysis,
    )
    return WellbeingService(
        store=store,
        analysis=analysis,
        config=config,
        kv=JsonFileKeyValueStore(paths.cache_file),
        clock=clock,
        workers=workers,
        prefetch=prefetch,
    )
