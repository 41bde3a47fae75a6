"""Protocol interfaces for swappable components.

The orchestrator, tool handlers and AppState reference these protocols, not
the concrete implementations. This allows:
- Tests to use lightweight in-memory providers and stores
- New editions data sources to be added without touching the orchestrator
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from isbnexport.models.editions import EditionsResult
    from isbnexport.models.freshness import FreshnessRecord
    from isbnexport.throttle import Fetcher


class EditionProvider(Protocol):
    """One external "other editions of this ISBN" data source."""

    name: str

    async def editions_of(self, fetch: Fetcher, isbn: str) -> EditionsResult: ...


class SnapshotStoreProtocol(Protocol):
    """Interface for persisting coordinator snapshots and freshness records."""

    async def load_snapshot(self, name: str) -> Any | None: ...

    async def save_snapshot(self, name: str, entries: Any) -> None: ...

    async def clear_snapshots(self) -> list[str]: ...

    async def load_freshness(self, url: str) -> FreshnessRecord | None: ...

    async def save_freshness(self, url: str, record: FreshnessRecord | None) -> None: ...
