"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the FastMCP lifespan context manager
- Register tools
- Start the stdio transport
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite
import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

import isbnexport.tools.check_for_updates as t_updates
import isbnexport.tools.clear_cache as t_clear
import isbnexport.tools.find_other_editions as t_find
from isbnexport import __version__
from isbnexport.config import Settings
from isbnexport.errors import IsbnExportError
from isbnexport.fetcher import HttpFetcher, build_http_client
from isbnexport.orchestrator import Orchestrator, load_snapshots
from isbnexport.providers import build_providers
from isbnexport.state import AppState
from isbnexport.store import SnapshotStore
from isbnexport.throttle import HostThrottle, throttled_fetcher

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stdout carries the MCP JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


async def _open_store(settings: Settings) -> tuple[aiosqlite.Connection, SnapshotStore]:
    db_path = Path(settings.cache.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(db_path))
    store = SnapshotStore(db)
    await store.init_db()
    return db, store


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)

    log.info("server_starting", version=__version__, sources=settings.providers.enabled)

    providers = build_providers(settings.providers.enabled)

    http_client = build_http_client(settings.fetcher)
    fetcher = HttpFetcher(http_client)
    throttle = HostThrottle(
        default_retry_after_seconds=settings.fetcher.default_retry_after_seconds
    )

    db: aiosqlite.Connection | None = None
    store: SnapshotStore | None = None
    snapshots: dict[str, Any] = {}
    if settings.cache.enabled:
        db, store = await _open_store(settings)
        # SnapshotValidationError propagates and aborts startup
        snapshots = await load_snapshots(store, settings.providers.enabled)
        log.info("snapshots_restored", sources=sorted(snapshots))

    orchestrator = Orchestrator.from_providers(
        providers,
        throttled_fetcher(fetcher.fetch, throttle),
        memoize=settings.cache.enabled,
        snapshots=snapshots,
        max_concurrency=settings.providers.max_concurrency,
    )

    state = AppState(
        settings=settings,
        orchestrator=orchestrator,
        throttle=throttle,
        http_client=http_client,
        fetcher=fetcher,
        store=store,
    )

    log.info("server_started", version=__version__, sources=list(orchestrator.services))

    try:
        yield state
    finally:
        if store is not None:
            await orchestrator.save_snapshots(store)
        await http_client.aclose()
        if db is not None:
            await db.close()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------

mcp = FastMCP("isbnexport", lifespan=lifespan)
# FastMCP doesn't expose a version kwarg, so set it on the underlying Server
# so the MCP initialize handshake reports our version, not the SDK's.
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: IsbnExportError) -> CallToolResult:
    """Convert an IsbnExportError to the MCP tool error result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(error.to_dict()))],
        isError=True,
    )


def _log_tool_error(tool: str, exc: IsbnExportError) -> None:
    log.warning(
        "tool_error",
        tool=tool,
        code=exc.code,
        message=exc.message,
        recoverable=exc.recoverable,
    )


@mcp.tool()
async def find_other_editions(
    isbns: list[str],
    ctx: Context,
    sources: list[str] | None = None,
    both_isbns: bool = False,
) -> object:
    """Find the ISBNs of other editions of the given books.

    Every enabled source (or only the named ``sources``) is asked for each
    ISBN and the answers are merged. Problems are reported in ``warnings``
    (bad data that was skipped) and ``temporary_faults`` (failures worth
    retrying, no earlier than ``retry_not_before`` when set). With
    ``both_isbns`` every result is listed as both ISBN-13 and ISBN-10.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_find.handle(isbns, state, sources=sources, both_isbns=both_isbns)
    except IsbnExportError as exc:
        _log_tool_error("find_other_editions", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="find_other_editions", exc_info=True)
        raise


@mcp.tool()
async def check_for_updates(ctx: Context) -> object:
    """Fetch the configured update information, revalidating at most once per TTL."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_updates.handle(state)
    except IsbnExportError as exc:
        _log_tool_error("check_for_updates", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="check_for_updates", exc_info=True)
        raise


@mcp.tool()
async def clear_cache(ctx: Context) -> object:
    """Forget all memoized editions results."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_clear.handle(state)
    except IsbnExportError as exc:
        _log_tool_error("clear_cache", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="clear_cache", exc_info=True)
        raise


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
