# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""Tests for per-dimension generation arbitration."""

import threading

from wellbeing.arbiter import RequestArbiter
from wellbeing.windows import Dimension

DIM = Dimension("u1", "emotional", 7)


class TestGenerations:

    def test_monotonic(self):
        arbiter = RequestArbiter()
        assert [arbiter.start_request(DIM) for _ in range(3)] == [1, 2, 3]

    def test_only_latest_is_current(self):
        arbiter = RequestArbiter()
        g1 = arbiter.start_request(DIM)
        g2 = arbiter.start_request(DIM)
        assert not arbiter.is_current(DIM, g1)
        assert arbiter.is_current(DIM, g2)

    def test_dimensions_independent(self):
        arbiter = RequestArbiter()
        other = DIM.for_window(30)
        arbiter.start_request(DIM)
        arbiter.start_request(DIM)
        assert arbiter.start_request(other) == 1
        assert arbiter.current(DIM) == 2

    def test_unknown_dimension(self):
        arbiter = RequestArbiter()
        assert arbiter.current(DIM) == 0
        assert not arbiter.is_current(DIM, 1)

    def test_stats_count_superseded(self):
        arbiter = RequestArbiter()
        g1 = arbiter.start_request(DIM)
        arbiter.start_request(DIM)
        arbiter.is_current(DIM, g1)
        stats = arbiter.stats()
        assert stats["started"] == 2
        assert stats["superseded"] == 1

    def test_concurrent_starts_are_unique(self):
        arbiter = RequestArbiter()
        seen = []
        lock = threading.Lock()

        def worker():
            for _ in range(100):
                gen = arbiter.start_request(DIM)
                with lock:
                    seen.append(gen)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(seen) == list(range(1, 401))
        assert arbiter.current(DIM) == 400
