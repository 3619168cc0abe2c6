# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Worker pools for blocking collaborator calls, with backpressure.

  - io: file-backed document store reads/writes
  - analysis: HTTP calls to the scoring model

Backpressure: queue depth > MAX_QUEUE_DEPTH -> WorkerPoolBusy. The fetch
pipeline treats that like any other transient failure.
"""

import asyncio
import functools
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("deite.workers")

MAX_QUEUE_DEPTH = 32


class WorkerPoolBusy(Exception):
    """Raised when a worker pool's queue is full."""
    pass


class WorkerPool:
    """A named thread pool with queue depth tracking."""

    def __init__(self, name: str, max_workers: int, max_queue_depth: int = MAX_QUEUE_DEPTH):
        self.name = name
        self.max_workers = max_workers
        self.max_queue_depth = max_queue_depth
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=f"deite-{name}",
        )
        self._pending = 0
        self._lock = threading.Lock()
        self._total_submitted = 0
        self._total_completed = 0
        self._total_rejected = 0

    def _reserve(self) -> None:
        with self._lock:
            if self._pending >= self.max_queue_depth:
                self._total_rejected += 1
                raise WorkerPoolBusy(
                    f"Pool '{self.name}' full ({self._pending}/{self.max_queue_depth})"
                )
            self._pending += 1
            self._total_submitted += 1

    def _tracked(self, fn: Callable) -> Callable:
        @functools.wraps(fn)
        def _run(*a, **kw):
            try:
                return fn(*a, **kw)
            finally:
                with self._lock:
                    self._pending -= 1
                    self._total_completed += 1
        return _run

    def submit_sync(self, fn: Callable, *args, **kwargs) -> Future:
        """Submit work to the pool. Raises WorkerPoolBusy if overloaded."""
        self._reserve()
        return self._executor.submit(self._tracked(fn), *args, **kwargs)

    async def submit(self, fn: Callable, *args, **kwargs) -> Any:
        """Async submit — awaits result. Raises WorkerPoolBusy."""
        self._reserve()
        loop = asyncio.get_running_loop()
        call = functools.partial(self._tracked(fn), *args, **kwargs)
        return await loop.run_in_executor(self._executor, call)

    def stats(self) -> Dict[str, Any]:
        """Pool statistics."""
        with self._lock:
            return {
                "name": self.name,
                "max_workers": self.max_workers,
                "pending": self._pending,
                "submitted": self._total_submitted,
                "completed": self._total_completed,
                "rejected": self._total_rejected,
            }

    def shutdown(self, wait: bool = False) -> None:
        """Shut down the pool."""
        self._executor.shutdown(wait=wait)
        logger.info("Worker pool '%s' shut down", self.name)


class WorkerManager:
    """Owns the io and analysis pools for one service instance."""

    def __init__(self, io_workers: int = 4, analysis_workers: int = 2):
        self.io = WorkerPool("io", max_workers=io_workers)
        self.analysis = WorkerPool("analysis", max_workers=analysis_workers)
        self._pools = {"io": self.io, "analysis": self.analysis}
        logger.info(
            "Worker pools initialized: io=%d, analysis=%d",
            io_workers, analysis_workers,
        )

    def get_pool(self, name: str) -> Optional[WorkerPool]:
        """Get a pool by name."""
        return self._pools.get(name)

    def stats(self) -> Dict[str, Any]:
        """Stats for all pools."""
        return {name: pool.stats() for name, pool in self._pools.items()}

    def shutdown(self, wait: bool = False) -> None:
        """Shut down all pools."""
        for pool in self._pools.values():
            pool.shutdown(wait=wait)
        logger.info("All worker pools shut down")
