"""Shared test fixtures for the isbnexport test suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import aiosqlite
import pytest

from isbnexport.models.fetch import FetchFailure, FetchResult
from isbnexport.store import SnapshotStore


class FakeClock:
    """Manually advanced clock for throttle and freshness tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeFetcher:
    """Answers from a url -> result table and records every requested URL.

    Unknown URLs get a 404. An exception stored as a result is raised.
    """

    def __init__(self, responses: dict[str, FetchResult | Exception] | None = None) -> None:
        self.responses: dict[str, FetchResult | Exception] = dict(responses or {})
        self.calls: list[str] = []

    async def __call__(self, url: str) -> FetchResult:
        self.calls.append(url)
        response = self.responses.get(url, FetchFailure(status=404, status_text="Not Found"))
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=UTC))


@pytest.fixture()
def fake_fetch() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture()
async def store() -> SnapshotStore:
    """SnapshotStore backed by an in-memory SQLite database."""
    async with aiosqlite.connect(":memory:") as db:
        snapshot_store = SnapshotStore(db)
        await snapshot_store.init_db()
        yield snapshot_store
