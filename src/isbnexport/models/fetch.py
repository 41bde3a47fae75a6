from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class FetchFailure(BaseModel):
    """Non-success outcome of a fetch.

    A successful fetch yields the response body as a plain ``str`` instead.
    """

    status: int
    status_text: str = ""
    retry_after: str | None = None  # Raw Retry-After header value
    cache_until: datetime | None = None  # Set when a host throttle is in effect


class ConditionalResponse(BaseModel):
    """Result of a conditional GET used for freshness revalidation."""

    status: int
    content: str = ""
    etag: str | None = None
    last_modified: str | None = None


FetchResult = str | FetchFailure
