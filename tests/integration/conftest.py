"""Integration test fixtures.

Provides a fully wired AppState (real providers, HttpFetcher behind a host
throttle, in-memory SQLite store) whose HTTP traffic tests mock with respx,
plus a baseline environment for subprocess-based MCP tests.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import aiosqlite
import httpx
import pytest

from isbnexport.config import Settings
from isbnexport.fetcher import HttpFetcher
from isbnexport.orchestrator import Orchestrator
from isbnexport.providers import build_providers
from isbnexport.state import AppState
from isbnexport.store import SnapshotStore
from isbnexport.throttle import HostThrottle, throttled_fetcher

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Baseline env dict for subprocess-based MCP integration tests.

    Points the persistent cache at an isolated tmp directory and leaves the
    update URL unset.
    """
    env = os.environ.copy()
    env["ISBNEXPORT__CACHE__DB_PATH"] = str(tmp_path / "cache.db")
    env["ISBNEXPORT__UPDATES__URL"] = ""
    env["ISBNEXPORT__LOGGING__LEVEL"] = "WARNING"
    return env


@pytest.fixture()
async def app_state() -> AppState:
    """Full AppState wired like the server lifespan, minus the real network."""
    settings = Settings(updates={"url": "https://example.com/isbnexport/updates.json"})

    async with aiosqlite.connect(":memory:") as db:
        store = SnapshotStore(db)
        await store.init_db()

        async with httpx.AsyncClient() as client:
            fetcher = HttpFetcher(client)
            throttle = HostThrottle()
            orchestrator = Orchestrator.from_providers(
                build_providers(settings.providers.enabled),
                throttled_fetcher(fetcher.fetch, throttle),
            )

            state = AppState(
                settings=settings,
                orchestrator=orchestrator,
                throttle=throttle,
                http_client=client,
                fetcher=fetcher,
                store=store,
            )
            yield state
