"""TTL freshness cache with HTTP conditional revalidation.

``webcheck`` is storage-agnostic: the caller passes the previous
``FreshnessRecord`` in and persists whatever comes back. Unexpected server
behaviour fails soft (logged, previous record kept); exceptions raised by the
fetch function itself propagate.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

import structlog

from isbnexport.models.fetch import ConditionalResponse
from isbnexport.models.freshness import FreshnessRecord

log = structlog.get_logger()

FetchWithValidators = Callable[[str, FreshnessRecord | None], Awaitable[ConditionalResponse]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def webcheck_expired(record: FreshnessRecord | None, now: datetime) -> bool:
    return record is None or record.expires_at <= now


async def webcheck(
    fetch: FetchWithValidators,
    url: str,
    ttl: timedelta,
    previous: FreshnessRecord | None,
    *,
    clock: Callable[[], datetime] = _utcnow,
) -> FreshnessRecord | None:
    """Return a record for ``url`` that is fresh for at least ``ttl`` if possible.

    An unexpired ``previous`` is returned as-is without any network call.
    Otherwise a conditional fetch decides:
      200: new content and validators replace the old record
      304: the previous record is kept with a new expiry
      other: the previous record is kept unchanged (stale but available)
    """
    if not webcheck_expired(previous, clock()):
        return previous

    response = await fetch(url, previous)
    now = clock()

    if response.status == 200:
        return FreshnessRecord(
            content=response.content,
            expires_at=now + ttl,
            etag=response.etag,
            last_modified=response.last_modified,
        )

    if response.status == 304:
        if previous is not None:
            return previous.model_copy(update={"expires_at": now + ttl})
        log.warning(
            "webcheck_not_modified_without_record",
            url=url,
            message="Got a 304, but had no previous record to revalidate",
        )
        return None

    log.warning("webcheck_unexpected_status", url=url, status_code=response.status)
    return previous
