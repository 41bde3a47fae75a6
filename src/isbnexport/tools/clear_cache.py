"""Tool handler for clear_cache."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from isbnexport.models.tools import ClearCacheOutput

if TYPE_CHECKING:
    from isbnexport.state import AppState


async def handle(state: AppState) -> dict:
    """Forget every memoized editions result, in memory and on disk."""
    log = structlog.get_logger().bind(tool="clear_cache")
    log.info("handler_called")

    state.orchestrator.clear_caches()
    cleared = await state.store.clear_snapshots() if state.store is not None else []

    log.info("cache_cleared", cleared_sources=cleared)
    return ClearCacheOutput(cleared_sources=cleared).model_dump(mode="json")
