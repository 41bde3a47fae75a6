from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class FreshnessRecord(BaseModel):
    """Fetched content plus its expiry and HTTP revalidation validators.

    Owned by the caller; ``webcheck`` takes one in and hands one back.
    """

    content: str
    expires_at: datetime
    etag: str | None = None
    last_modified: str | None = None
