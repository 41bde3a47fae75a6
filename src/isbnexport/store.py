"""SQLite persistence for coordinator snapshots and freshness records.

Infrastructure errors (``aiosqlite.Error``) are caught internally and degrade
gracefully: read failures return ``None`` (treated as "nothing saved" by
callers), write failures are logged and ignored. A stored snapshot that is
not valid JSON is different: that is a corrupted cache and is reported as
``SnapshotValidationError`` so it is never partially trusted.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import aiosqlite
import structlog

from isbnexport.errors import SnapshotValidationError
from isbnexport.models.freshness import FreshnessRecord

log = structlog.get_logger()

_CREATE_SNAPSHOT_TABLE = """
CREATE TABLE IF NOT EXISTS coordinator_snapshots (
    name      TEXT PRIMARY KEY,
    payload   TEXT NOT NULL,
    saved_at  TEXT NOT NULL
)
"""

_CREATE_FRESHNESS_TABLE = """
CREATE TABLE IF NOT EXISTS freshness_records (
    url            TEXT PRIMARY KEY,
    content        TEXT NOT NULL,
    expires_at     TEXT NOT NULL,
    etag           TEXT,
    last_modified  TEXT
)
"""


class SnapshotStore:
    """SQLite-backed store implementing SnapshotStoreProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_SNAPSHOT_TABLE)
        await self._db.execute(_CREATE_FRESHNESS_TABLE)
        await self._db.commit()

    # ------------------------------------------------------------------
    # Coordinator snapshots
    # ------------------------------------------------------------------

    async def load_snapshot(self, name: str) -> Any | None:
        """Read the decoded JSON snapshot saved under ``name``."""
        try:
            cursor = await self._db.execute(
                "SELECT payload FROM coordinator_snapshots WHERE name = ?", (name,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("snapshot_read_error", name=name, exc_info=True)
            return None
        if row is None:
            return None

        try:
            return json.loads(row[0])
        except json.JSONDecodeError as exc:
            raise SnapshotValidationError([f".: saved cache for {name!r} is not JSON: {exc}"]) from exc

    async def save_snapshot(self, name: str, entries: Any) -> None:
        """Replace the snapshot saved under ``name``. Non-fatal on failure."""
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO coordinator_snapshots (name, payload, saved_at) "
                "VALUES (?, ?, ?)",
                (name, json.dumps(entries), datetime.now(UTC).isoformat()),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("snapshot_write_error", name=name, exc_info=True)

    async def clear_snapshots(self) -> list[str]:
        """Delete every saved snapshot and return the names that were removed."""
        try:
            cursor = await self._db.execute("SELECT name FROM coordinator_snapshots ORDER BY name")
            names = [row[0] for row in await cursor.fetchall()]
            await self._db.execute("DELETE FROM coordinator_snapshots")
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("snapshot_clear_error", exc_info=True)
            return []
        log.info("snapshots_cleared", names=names)
        return names

    # ------------------------------------------------------------------
    # Freshness records
    # ------------------------------------------------------------------

    async def load_freshness(self, url: str) -> FreshnessRecord | None:
        """Read the freshness record for ``url``. ``None`` on miss or read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT content, expires_at, etag, last_modified "
                "FROM freshness_records WHERE url = ?",
                (url,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("freshness_read_error", url=url, exc_info=True)
            return None
        if row is None:
            return None

        try:
            expires_at = datetime.fromisoformat(row[1])
        except (TypeError, ValueError):
            log.warning("freshness_record_invalid", url=url, expires_at=row[1])
            return None
        return FreshnessRecord(
            content=row[0],
            expires_at=expires_at,
            etag=row[2],
            last_modified=row[3],
        )

    async def save_freshness(self, url: str, record: FreshnessRecord | None) -> None:
        """Store ``record`` for ``url``; ``None`` removes any stored record."""
        try:
            if record is None:
                await self._db.execute("DELETE FROM freshness_records WHERE url = ?", (url,))
            else:
                await self._db.execute(
                    "INSERT OR REPLACE INTO freshness_records "
                    "(url, content, expires_at, etag, last_modified) VALUES (?, ?, ?, ?, ?)",
                    (
                        url,
                        record.content,
                        record.expires_at.isoformat(),
                        record.etag,
                        record.last_modified,
                    ),
                )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("freshness_write_error", url=url, exc_info=True)
