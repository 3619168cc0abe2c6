# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Dashboard update notifications — typed, per-dimension subscriptions.

Consumers subscribe to exactly the dimension they render and receive a
MetricsUpdate whenever a committed refresh changes its visible payload.
No string event names, no global bus.

Usage:
    hub = SubscriptionHub()

    # Subscribe (sync)
    unsubscribe = hub.subscribe(dim, lambda update: redraw(update.records))

    # Subscribe (async)
    async def on_update(update):
        await push_to_client(update)
    hub.subscribe(dim, on_update)

    # Publish from the fetch pipeline (awaits async handlers)
    await hub.publish_async(update)

    unsubscribe()

Core design:
- Dual dispatch: sync handlers called inline, async handlers awaited
- Subscriber priority ordering
- Thread-safe registration
- Recursion depth limit (max 3) as safety valve
"""

import inspect
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from wellbeing.schemas import SeriesRecord
from wellbeing.windows import Dimension

logger = logging.getLogger("deite.events")

# Max publish depth before refusing
_MAX_PUBLISH_DEPTH = 3


@dataclass(frozen=True)
class MetricsUpdate:
    """A committed refresh that changed a dimension's visible payload."""
    dimension: Dimension
    records: Tuple[SeriesRecord, ...]
    generation: int
    fetched_at: datetime


@dataclass
class Subscriber:
    """A registered update handler."""
    callback: Callable[[MetricsUpdate], Any]
    priority: int = 0  # higher = called first
    source: Optional[str] = None  # for debugging
    is_async: bool = False  # auto-detected from callback
    _seq: int = field(default=0, repr=False)


class SubscriptionHub:
    """
    Per-dimension publish/subscribe for committed dashboard updates.

    Sync handlers run inline, async handlers are awaited in turn.
    A failing handler is logged and never stops the others.
    """

    def __init__(self):
        self._subscribers: Dict[Dimension, List[Subscriber]] = {}
        self._lock = threading.Lock()
        self._publish_count = 0
        self._publish_depth = 0  # recursion guard
        self._seq = 0

    def subscribe(
        self,
        dimension: Dimension,
        callback: Callable[[MetricsUpdate], Any],
        priority: int = 0,
        source: Optional[str] = None,
    ) -> Callable[[], bool]:
        """
        Subscribe to one dimension. Accepts both sync and async callbacks.

        Returns an unsubscribe function; calling it returns True the first
        time (handler removed) and False afterwards.
        """
        with self._lock:
            self._seq += 1
            sub = Subscriber(
                callback=callback,
                priority=priority,
                source=source,
                is_async=inspect.iscoroutinefunction(callback),
                _seq=self._seq,
            )
            subs = self._subscribers.setdefault(dimension, [])
            subs.append(sub)
            subs.sort(key=lambda s: (-s.priority, s._seq))

        def unsubscribe() -> bool:
            with self._lock:
                subs = self._subscribers.get(dimension, [])
                if sub in subs:
                    subs.remove(sub)
                    if not subs:
                        del self._subscribers[dimension]
                    return True
                return False

        return unsubscribe

    async def publish_async(self, update: MetricsUpdate) -> int:
        """
        Dispatch an update to the dimension's subscribers, highest priority
        first. Returns the number of handlers dispatched.
        """
        subs = self._begin(update)
        if subs is None:
            return 0
        try:
            for sub in subs:
                try:
                    if sub.is_async:
                        await sub.callback(update)
                    else:
                        sub.callback(update)
                except Exception as e:
                    logger.error("Update handler error: %s -> %s: %s",
                                 update.dimension, self._name(sub), e)
            return len(subs)
        finally:
            self._publish_depth -= 1

    def _begin(self, update: MetricsUpdate) -> Optional[List[Subscriber]]:
        """Count the update and snapshot its subscribers. None = refused."""
        self._publish_depth += 1
        if self._publish_depth > _MAX_PUBLISH_DEPTH:
            logger.warning(
                "Publish recursion depth %d exceeded for %s, skipping",
                self._publish_depth, update.dimension,
            )
            self._publish_depth -= 1
            return None

        with self._lock:
            self._publish_count += 1
            # Copy so handlers may unsubscribe while we iterate
            return list(self._subscribers.get(update.dimension, []))

    @staticmethod
    def _name(sub: Subscriber) -> str:
        return sub.source or getattr(sub.callback, "__name__", repr(sub.callback))

    # --- Introspection ---

    def subscriber_count(self, dimension: Optional[Dimension] = None) -> int:
        with self._lock:
            if dimension is not None:
                return len(self._subscribers.get(dimension, []))
            return sum(len(v) for v in self._subscribers.values())

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_published": self._publish_count,
                "dimensions": len(self._subscribers),
                "total_subscribers": sum(len(v) for v in self._subscribers.values()),
                "async_subscribers": sum(
                    1 for subs in self._subscribers.values() for s in subs if s.is_async
                ),
            }

    def clear(self) -> None:
        """Drop all subscribers. Used at sign-out."""
        with self._lock:
            self._subscribers.clear()
            self._publish_count = 0
            self._publish_depth = 0
