"""Application state container.

AppState is created once at server startup (inside the FastMCP lifespan context
manager) and injected into every tool handler via the MCP Context object.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from isbnexport.config import Settings
    from isbnexport.fetcher import HttpFetcher
    from isbnexport.orchestrator import Orchestrator
    from isbnexport.protocols import SnapshotStoreProtocol
    from isbnexport.throttle import HostThrottle


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every tool handler."""

    settings: Settings
    orchestrator: Orchestrator
    throttle: HostThrottle

    http_client: httpx.AsyncClient | None = None
    fetcher: HttpFetcher | None = None
    # None when the persistent cache is disabled
    store: SnapshotStoreProtocol | None = None
