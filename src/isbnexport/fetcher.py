"""HTTP fetcher for the editions providers.

All network I/O goes through a single HttpFetcher instance. It receives an
httpx.AsyncClient via constructor injection. The server lifespan owns the
client lifecycle. Non-2xx responses are returned as ``FetchFailure`` values;
transport errors (``httpx.HTTPError``) propagate to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from isbnexport.models.fetch import ConditionalResponse, FetchFailure, FetchResult

if TYPE_CHECKING:
    from isbnexport.config import FetcherSettings
    from isbnexport.models.freshness import FreshnessRecord

log = structlog.get_logger()


def build_http_client(settings: FetcherSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        # Open Library answers /isbn/<isbn>.json with a redirect to the edition
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=settings.max_connections,
            max_keepalive_connections=max(1, settings.max_connections // 2),
        ),
    )


class HttpFetcher:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def fetch(self, url: str) -> FetchResult:
        """GET ``url``; body text on 2xx, ``FetchFailure`` otherwise."""
        response = await self._client.get(url)

        if not response.is_success:
            log.info("fetch_failed", url=url, status_code=response.status_code)
            return FetchFailure(
                status=response.status_code,
                status_text=response.reason_phrase,
                retry_after=response.headers.get("retry-after"),
            )

        log.info(
            "fetch_complete",
            url=url,
            status_code=response.status_code,
            content_length=len(response.text),
        )
        return response.text

    async def fetch_with_validators(
        self, url: str, previous: FreshnessRecord | None
    ) -> ConditionalResponse:
        """Conditional GET using the validators of ``previous``, if any."""
        headers: dict[str, str] = {}
        if previous is not None:
            if previous.etag:
                headers["If-None-Match"] = previous.etag
            if previous.last_modified:
                headers["If-Modified-Since"] = previous.last_modified

        response = await self._client.get(url, headers=headers)
        log.info(
            "conditional_fetch_complete",
            url=url,
            status_code=response.status_code,
            conditional=bool(headers),
        )
        return ConditionalResponse(
            status=response.status_code,
            content=response.text if response.status_code == 200 else "",
            etag=response.headers.get("etag"),
            last_modified=response.headers.get("last-modified"),
        )
