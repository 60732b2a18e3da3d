"""Shared fixtures: deterministic clock and in-memory boards."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from taskdeck.engine import TaskBoard  # noqa: E402
from taskdeck.storage.container import Container  # noqa: E402


class StepClock:
    """Returns a strictly increasing UTC timestamp on every call."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)) -> None:
        self.current = start

    def __call__(self) -> str:
        self.current += timedelta(seconds=1)
        return self.current.isoformat()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def board(clock: StepClock) -> TaskBoard:
    b = TaskBoard(Container.in_memory(), clock=clock)
    assert b.load()
    return b


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
