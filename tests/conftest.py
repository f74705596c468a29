"""Shared pytest fixtures for the status polling test suite."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import AsyncMock

import pytest

from status_polling.clients.base import AvatarJobsApi
from status_polling.polling.scheduler import PollingScheduler
from status_polling.testing import VirtualClock

# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> VirtualClock:
    """A virtual clock starting at t=0."""
    return VirtualClock()


@pytest.fixture()
def scheduler(clock: VirtualClock) -> Iterator[PollingScheduler]:
    """A scheduler on the virtual clock; every key is stopped at teardown."""
    sched = PollingScheduler(clock)
    yield sched
    sched.stop_all()


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def api() -> AsyncMock:
    """An ``AvatarJobsApi`` double with every coroutine mocked."""
    return AsyncMock(spec=AvatarJobsApi)
