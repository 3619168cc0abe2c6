# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Fetch orchestrator — one dashboard refresh as an explicit staged pipeline.

    plan -> ensure_backfilled -> read -> transform -> shape -> commit

Each stage takes and returns plain values so it can be exercised on its
own. ensure_backfilled is the only stage with write side effects on the
document store (derived scores + day balance for days that lack them).
shape turns the adjusted day records into the series for the dimension's
metric kind: filter_and_sort for emotional charts, balance_series for
balance charts.

Failure semantics:
  - any failure in backfill or read for one date is logged and skipped;
    that date contributes no record and the fetch carries on
  - every external call is bounded by `timeout`; expiry is a
    TransientFetchFailure
  - commit happens only if the fetch still holds the current generation;
    otherwise the result is dropped (debug log, not an error)
  - the committed entry is written to the local store on the io pool, off
    the event loop
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from wellbeing.analysis import has_enough_signal, usable_messages
from wellbeing.arbiter import RequestArbiter
from wellbeing.balance import balance_for, balance_series
from wellbeing.cache import CacheStore
from wellbeing.events import MetricsUpdate, SubscriptionHub
from wellbeing.rules import apply_all
from wellbeing.schemas import AnalysisFailure, MetricRecord, SeriesRecord, TransientFetchFailure
from wellbeing.windows import (
    BALANCE, SHORTEST_WINDOW, Dimension, date_id, date_range, is_lifetime,
)
from wellbeing.workers import WorkerPoolBusy

logger = logging.getLogger("deite.pipeline")

DEFAULT_TIMEOUT = 120.0  # seconds, per external call
LIFETIME_FALLBACK_DAYS = 30
LIFETIME_BACKFILL_DAYS = 30


@dataclass(frozen=True)
class FetchPlan:
    """Dates to read for a window, and the subset to backfill first."""
    dates: List[date]
    backfill_dates: List[date]


# ============================================================================
# Pure stages
# ============================================================================

def plan_dates(
    window: int,
    today: date,
    history: Optional[Iterable[date]] = None,
    fallback_days: int = LIFETIME_FALLBACK_DAYS,
) -> FetchPlan:
    """
    Calendar dates covering a window, ending today.

    Lifetime reads the whole history (falling back to a short slice when
    there is none) but only backfills the most recent month.
    """
    if is_lifetime(window):
        days = sorted(set(history or []))
        if not days:
            days = date_range(fallback_days, today)
        return FetchPlan(dates=days, backfill_dates=date_range(LIFETIME_BACKFILL_DAYS, today))
    dates = date_range(window, today)
    return FetchPlan(dates=dates, backfill_dates=dates)


def transform(records: Iterable[MetricRecord]) -> List[MetricRecord]:
    return apply_all(records)


def filter_and_sort(
    records: Iterable[MetricRecord],
    dates: Iterable[date],
    window: int,
) -> List[MetricRecord]:
    """
    Shortest window: one record per planned date, missing days zero-filled.
    Other windows: drop no-signal days. Always ascending by date.
    """
    if window == SHORTEST_WINDOW:
        by_date = {r.date: r for r in records}
        return [by_date.get(d) or MetricRecord.empty(d) for d in sorted(set(dates))]
    return sorted((r for r in records if not r.is_empty), key=lambda r: r.date)


def shape(
    records: Iterable[MetricRecord],
    dates: Iterable[date],
    dimension: Dimension,
) -> List[SeriesRecord]:
    if dimension.metric_kind == BALANCE:
        return balance_series(records)
    return filter_and_sort(records, dates, dimension.window)


# ============================================================================
# Orchestrator
# ============================================================================

class FetchOrchestrator:
    """Runs refreshes for any dimension against one store/analysis pair."""

    def __init__(
        self,
        store,
        analysis,
        cache: CacheStore,
        arbiter: RequestArbiter,
        hub: SubscriptionHub,
        clock: Callable[[], datetime] = datetime.now,
        timeout: float = DEFAULT_TIMEOUT,
        lifetime_fallback_days: int = LIFETIME_FALLBACK_DAYS,
        io_pool=None,
    ):
        self._store = store
        self._analysis = analysis
        self._cache = cache
        self._arbiter = arbiter
        self._hub = hub
        self._clock = clock
        self._timeout = timeout
        self._fallback_days = lifetime_fallback_days
        self._io_pool = io_pool
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {
            "fetches": 0,
            "committed": 0,
            "discarded": 0,
            "published": 0,
            "backfilled": 0,
            "transient_failures": 0,
            "analysis_failures": 0,
            "unexpected_failures": 0,
        }

    async def fetch(self, dimension: Dimension, generation: int) -> Optional[List[SeriesRecord]]:
        """Run every stage. Returns committed records, or None if superseded."""
        self._count("fetches")
        user_id = dimension.user_id

        plan = await self.plan(dimension)
        await self.ensure_backfilled(user_id, plan.backfill_dates)
        records = await self.read(user_id, plan.dates)
        series = shape(transform(records), plan.dates, dimension)
        return await self.commit(dimension, generation, series)

    # --- stages with I/O ---

    async def plan(self, dimension: Dimension) -> FetchPlan:
        today = self._clock().date()
        history: List[date] = []
        if is_lifetime(dimension.window):
            try:
                history = await self._call(self._store.list_days(dimension.user_id), "list_days")
            except TransientFetchFailure as e:
                self._count("transient_failures")
                logger.warning("Could not list history for %s: %s", dimension, e)
        return plan_dates(dimension.window, today, history, self._fallback_days)

    async def ensure_backfilled(self, user_id: str, dates: Iterable[date]) -> int:
        """Derive and persist scores for days that have none. Returns count."""
        results = await asyncio.gather(*(self._backfill_day(user_id, d) for d in dates))
        done = sum(1 for r in results if r)
        if done:
            logger.info("Backfilled %d day(s) for %s", done, user_id)
        return done

    async def read(self, user_id: str, dates: Iterable[date]) -> List[MetricRecord]:
        results = await asyncio.gather(*(self._read_day(user_id, d) for d in dates))
        return [r for r in results if r is not None]

    async def commit(
        self,
        dimension: Dimension,
        generation: int,
        records: List[SeriesRecord],
    ) -> Optional[List[SeriesRecord]]:
        if not self._arbiter.is_current(dimension, generation):
            self._count("discarded")
            logger.debug("Dropping superseded result %s #%d", dimension, generation)
            return None

        previous = self._cache.get(dimension)
        entry = self._cache.put(dimension, records, persist=False)
        self._count("committed")

        if previous is None or list(previous.records) != records:
            update = MetricsUpdate(
                dimension=dimension,
                records=tuple(records),
                generation=generation,
                fetched_at=entry.fetched_at,
            )
            await self._hub.publish_async(update)
            self._count("published")
        await self._persist(dimension)
        return records

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._counters)

    # --- per-day work ---

    async def _backfill_day(self, user_id: str, day: date) -> bool:
        try:
            existing = await self._call(self._store.get_day_metrics(user_id, day), "get_day_metrics")
            if existing is not None and not existing.is_empty:
                return False

            raw = await self._call(self._store.get_day_messages(user_id, day), "get_day_messages")
            messages = usable_messages(raw)
            if not has_enough_signal(messages):
                return False

            scores = await self._call(self._analysis.derive_scores(messages), "derive_scores")
            await self._call(self._store.put_day_metrics(user_id, day, scores), "put_day_metrics")
            await self._call(
                self._store.put_day_balance(user_id, day, balance_for(scores)), "put_day_balance",
            )
        except TransientFetchFailure as e:
            self._count("transient_failures")
            logger.warning("Backfill skipped for %s %s: %s", user_id, date_id(day), e)
            return False
        except AnalysisFailure as e:
            self._count("analysis_failures")
            logger.info("No scores derived for %s %s: %s", user_id, date_id(day), e)
            return False
        except Exception:
            self._count("unexpected_failures")
            logger.exception("Backfill failed for %s %s", user_id, date_id(day))
            return False

        self._count("backfilled")
        return True

    async def _read_day(self, user_id: str, day: date) -> Optional[MetricRecord]:
        try:
            return await self._call(self._store.get_day_metrics(user_id, day), "get_day_metrics")
        except TransientFetchFailure as e:
            self._count("transient_failures")
            logger.warning("Read skipped for %s %s: %s", user_id, date_id(day), e)
            return None
        except Exception:
            self._count("unexpected_failures")
            logger.exception("Read failed for %s %s", user_id, date_id(day))
            return None

    async def _persist(self, dimension: Dimension) -> None:
        try:
            await self._call(self._run_io(self._cache.persist, dimension), "persist")
        except TransientFetchFailure as e:
            self._count("transient_failures")
            logger.warning("Cache entry %s not written to disk: %s", dimension, e)

    async def _run_io(self, fn, *args):
        if self._io_pool is not None:
            return await self._io_pool.submit(fn, *args)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def _call(self, awaitable: Awaitable, what: str):
        """Await one external call under the timeout; normalize failures."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise TransientFetchFailure(f"{what} timed out after {self._timeout}s") from e
        except WorkerPoolBusy as e:
            raise TransientFetchFailure(f"{what}: {e}") from e
        except OSError as e:
            raise TransientFetchFailure(f"{what}: {e}") from e

    def _count(self, name: str) -> None:
        with self._lock:
            self._counters[name] += 1
