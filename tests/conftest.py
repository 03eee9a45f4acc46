from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from metastore import MemoryKeyValueStore, MetaStore


class StepClock:
    """Deterministic clock: every call is one second after the previous."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def store(kv: MemoryKeyValueStore, clock: StepClock) -> MetaStore:
    return MetaStore(kv, clock=clock)
