"""Tool handler for check_for_updates.

Revalidates the configured update-information URL through ``webcheck`` and
persists the resulting freshness record. No MCP or FastMCP imports;
server.py handles the MCP wiring.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import httpx
import structlog

from isbnexport.errors import ErrorCode, IsbnExportError
from isbnexport.freshness import webcheck
from isbnexport.models.tools import CheckForUpdatesOutput

if TYPE_CHECKING:
    from isbnexport.state import AppState


async def handle(state: AppState) -> dict:
    """Handle a check_for_updates tool call."""
    url = state.settings.updates.url
    log = structlog.get_logger().bind(tool="check_for_updates", url=url)
    log.info("handler_called")

    if not url:
        raise IsbnExportError(
            code=ErrorCode.UPDATES_NOT_CONFIGURED,
            message="No update-information URL is configured.",
            suggestion="Set updates.url in isbnexport.yaml or ISBNEXPORT__UPDATES__URL.",
            recoverable=False,
        )

    if state.fetcher is None:
        raise RuntimeError("Fetcher not initialized")

    previous = await state.store.load_freshness(url) if state.store is not None else None

    try:
        record = await webcheck(
            state.fetcher.fetch_with_validators,
            url,
            timedelta(hours=state.settings.updates.ttl_hours),
            previous,
        )
    except httpx.HTTPError as exc:
        raise IsbnExportError(
            code=ErrorCode.UPDATES_FETCH_FAILED,
            message=f"Could not fetch update information: {exc}",
            suggestion="Check your internet connection and try again later.",
            recoverable=True,
        ) from exc

    if state.store is not None and record is not previous:
        await state.store.save_freshness(url, record)

    log.info("update_check_complete", found=record is not None, revalidated=record is not previous)

    output = CheckForUpdatesOutput(
        url=url,
        content=record.content if record is not None else None,
        expires_at=record.expires_at if record is not None else None,
        etag=record.etag if record is not None else None,
        last_modified=record.last_modified if record is not None else None,
    )
    return output.model_dump(mode="json")
