# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Request arbiter — per-dimension generation counters.

Every refresh takes a new generation. Fetches are never blocked or
cancelled; at commit time only the fetch still holding the current
generation may write the cache or notify subscribers. Everything else is
a superseded result and is dropped quietly.
"""

import logging
import threading
from typing import Any, Dict

from wellbeing.windows import Dimension

logger = logging.getLogger("deite.arbiter")


class RequestArbiter:
    """Monotonic generation counter per dimension. Thread-safe."""

    def __init__(self):
        self._generations: Dict[Dimension, int] = {}
        self._lock = threading.Lock()
        self._started = 0
        self._superseded = 0

    def start_request(self, dimension: Dimension) -> int:
        """Open a new generation for a dimension and return it."""
        with self._lock:
            generation = self._generations.get(dimension, 0) + 1
            self._generations[dimension] = generation
            self._started += 1
        logger.debug("Started request %s #%d", dimension, generation)
        return generation

    def is_current(self, dimension: Dimension, generation: int) -> bool:
        with self._lock:
            current = self._generations.get(dimension, 0) == generation
            if not current:
                self._superseded += 1
        return current

    def current(self, dimension: Dimension) -> int:
        """Latest generation issued for a dimension (0 if none yet)."""
        with self._lock:
            return self._generations.get(dimension, 0)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "dimensions": len(self._generations),
                "started": self._started,
                "superseded": self._superseded,
            }
