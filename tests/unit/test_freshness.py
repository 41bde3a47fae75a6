"""Unit tests for isbnexport.freshness."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

from isbnexport.freshness import webcheck, webcheck_expired
from isbnexport.models.fetch import ConditionalResponse
from isbnexport.models.freshness import FreshnessRecord

if TYPE_CHECKING:
    from tests.conftest import FakeClock

URL = "https://example.com/updates.json"
TTL = timedelta(milliseconds=1000)


def _record(clock: FakeClock, *, content: str = "v1", expires_in: timedelta = TTL) -> FreshnessRecord:
    return FreshnessRecord(
        content=content,
        expires_at=clock.now + expires_in,
        etag='"abc"',
        last_modified="Thu, 01 Jan 2026 00:00:00 GMT",
    )


class TestWebcheckExpired:
    def test_missing_record_is_expired(self, clock: FakeClock) -> None:
        assert webcheck_expired(None, clock.now)

    def test_expiry_boundary(self, clock: FakeClock) -> None:
        record = _record(clock)
        assert not webcheck_expired(record, clock.now)
        assert webcheck_expired(record, clock.now + TTL)


class TestWebcheck:
    async def test_first_check_stores_content_and_validators(self, clock: FakeClock) -> None:
        fetch = AsyncMock(
            return_value=ConditionalResponse(status=200, content="v1", etag='"abc"', last_modified="lm")
        )

        record = await webcheck(fetch, URL, TTL, None, clock=clock)

        assert record is not None
        assert record.content == "v1"
        assert record.etag == '"abc"'
        assert record.last_modified == "lm"
        assert record.expires_at == clock.now + TTL
        fetch.assert_awaited_once_with(URL, None)

    async def test_fresh_record_skips_network(self, clock: FakeClock) -> None:
        fetch = AsyncMock()
        previous = _record(clock)

        clock.advance(milliseconds=500)
        record = await webcheck(fetch, URL, TTL, previous, clock=clock)

        assert record is previous
        fetch.assert_not_awaited()

    async def test_expired_record_304_extends_expiry(self, clock: FakeClock) -> None:
        previous = _record(clock)
        fetch = AsyncMock(return_value=ConditionalResponse(status=304))

        clock.advance(milliseconds=1000)
        record = await webcheck(fetch, URL, TTL, previous, clock=clock)

        assert record is not None
        assert record.content == "v1"
        assert record.etag == previous.etag
        assert record.expires_at == clock.now + TTL
        fetch.assert_awaited_once_with(URL, previous)

    async def test_expired_record_200_replaces_content(self, clock: FakeClock) -> None:
        previous = _record(clock)
        fetch = AsyncMock(return_value=ConditionalResponse(status=200, content="v2", etag='"def"'))

        clock.advance(seconds=5)
        record = await webcheck(fetch, URL, TTL, previous, clock=clock)

        assert record is not None
        assert record.content == "v2"
        assert record.etag == '"def"'
        assert record.last_modified is None

    async def test_304_without_previous_record_is_none(self, clock: FakeClock) -> None:
        fetch = AsyncMock(return_value=ConditionalResponse(status=304))

        assert await webcheck(fetch, URL, TTL, None, clock=clock) is None

    async def test_unexpected_status_keeps_previous(self, clock: FakeClock) -> None:
        previous = _record(clock)
        fetch = AsyncMock(return_value=ConditionalResponse(status=500))

        clock.advance(seconds=5)
        record = await webcheck(fetch, URL, TTL, previous, clock=clock)

        assert record is previous

    async def test_fetch_exception_propagates(self, clock: FakeClock) -> None:
        fetch = AsyncMock(side_effect=OSError("offline"))

        with pytest.raises(OSError, match="offline"):
            await webcheck(fetch, URL, TTL, None, clock=clock)
