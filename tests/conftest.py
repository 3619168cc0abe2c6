# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""Test configuration — paths isolation, fake clock, scripted collaborators."""

import logging
from datetime import datetime, timedelta

import pytest

from core.paths import configure, reset
from wellbeing.schemas import DayScores
from wellbeing.store import InMemoryDocumentStore


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path):
    """Route all Deite data to a temp directory for test isolation."""
    paths = configure(tmp_path)
    paths.ensure_dirs()
    yield paths
    reset()


@pytest.fixture(autouse=True)
def detach_logging():
    """Drop handlers setup_logging() attached during a test."""
    yield
    logger = logging.getLogger("deite")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class ScriptedAnalysis:
    """Stands in for the analysis engine; records every transcript it sees."""

    def __init__(self, scores=None):
        self.scores = scores or DayScores(happiness=60, energy=55, anxiety=30, stress=25)
        self.error = None
        self.calls = []

    async def derive_scores(self, messages):
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        return self.scores


@pytest.fixture
def clock():
    # Tuesday afternoon, after the noon cutoff
    return FakeClock(datetime(2026, 3, 10, 13, 0))


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def analysis():
    return ScriptedAnalysis()
