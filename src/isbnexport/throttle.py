"""Per-host throttling driven by rate-limit responses.

A ``HostThrottle`` remembers, per network authority, a "do not retry before"
time taken from ``Retry-After``. ``throttled_fetcher`` wraps a fetch function
so that requests to a throttled host are answered locally with a synthetic
429 instead of reaching the server.

There is no admission control: two requests to the same host dispatched
before either one has come back are not held back by each other.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime
from urllib.parse import urlsplit

import structlog

from isbnexport.config import DEFAULT_RETRY_AFTER_SECONDS
from isbnexport.models.fetch import FetchFailure, FetchResult

log = structlog.get_logger()

Fetcher = Callable[[str], Awaitable[FetchResult]]
Clock = Callable[[], datetime]

THROTTLING_STATUSES = frozenset({429, 503})


def _utcnow() -> datetime:
    return datetime.now(UTC)


def host_key(url: str) -> str:
    """Return the lower-cased ``host[:port]`` of ``url``.

    Scheme, userinfo, path and query do not take part in the key.
    """
    netloc = urlsplit(url).netloc
    return netloc.rpartition("@")[2].lower()


def parse_retry_after(value: str, now: datetime) -> datetime | None:
    """Resolve a Retry-After value (delay seconds or HTTP date) to a time.

    Returns None if the value is neither, or names a time too far away to
    represent.
    """
    value = value.strip()
    if value.isascii() and value.isdigit():
        try:
            return now + timedelta(seconds=int(value))
        except OverflowError:
            return None
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return when


class HostThrottle:
    """Tracks a per-host retry deadline. One instance per process or session."""

    def __init__(
        self,
        *,
        clock: Clock = _utcnow,
        default_retry_after_seconds: int = DEFAULT_RETRY_AFTER_SECONDS,
    ) -> None:
        self._clock = clock
        self._default_delay = timedelta(seconds=default_retry_after_seconds)
        self._until: dict[str, datetime] = {}

    def set(self, url: str, retry_after: str | None = None) -> datetime:
        """Throttle ``url``'s host until the time ``retry_after`` names."""
        now = self._clock()
        until = parse_retry_after(retry_after, now) if retry_after is not None else None
        if until is None:
            if retry_after is not None:
                log.warning(
                    "throttle_retry_after_unparseable",
                    host=host_key(url),
                    retry_after=retry_after,
                )
            until = now + self._default_delay
        self._until[host_key(url)] = until
        return until

    def should_throttle(self, url: str) -> datetime | None:
        """Return the host's retry deadline while it is in the future, else None."""
        until = self._until.get(host_key(url))
        if until is None or self._clock() >= until:
            return None
        return until


def throttled_fetcher(fetch: Fetcher, throttle: HostThrottle) -> Fetcher:
    """Wrap ``fetch`` so rate-limited hosts are not contacted until they allow it.

    - A throttled host gets a synthetic 429 without calling ``fetch``.
    - A real 429 or 503 sets the host's throttle.
    Both carry ``cache_until`` equal to the throttle deadline; every other
    result passes through unchanged.
    """

    async def fetch_throttled(url: str) -> FetchResult:
        until = throttle.should_throttle(url)
        if until is not None:
            log.debug("fetch_throttled", host=host_key(url), until=until.isoformat())
            return FetchFailure(
                status=429,
                status_text=f"server requested throttling until {until.isoformat()}",
                cache_until=until,
            )

        result = await fetch(url)

        if isinstance(result, FetchFailure) and result.status in THROTTLING_STATUSES:
            until = throttle.set(url, result.retry_after)
            log.warning(
                "host_throttled",
                host=host_key(url),
                status_code=result.status,
                until=until.isoformat(),
            )
            return result.model_copy(update={"cache_until": until})

        return result

    return fetch_throttled
