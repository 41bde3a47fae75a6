"""Tool handler for find_other_editions.

Receives AppState, asks the orchestrator for the other editions of every
given ISBN, persists the updated memo snapshots and returns a structured
dict. No MCP or FastMCP imports; server.py handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from isbnexport.errors import ErrorCode, IsbnExportError
from isbnexport.isbn import equivalent_isbns
from isbnexport.models.tools import FindOtherEditionsInput, FindOtherEditionsOutput

if TYPE_CHECKING:
    from isbnexport.state import AppState


async def handle(
    isbns: list[str],
    state: AppState,
    sources: list[str] | None = None,
    both_isbns: bool = False,
) -> dict:
    """Handle a find_other_editions tool call."""
    log = structlog.get_logger().bind(tool="find_other_editions", isbn_count=len(isbns))
    log.info("handler_called")

    # Validate input
    try:
        validated = FindOtherEditionsInput(isbns=isbns, sources=sources, both_isbns=both_isbns)
    except ValueError as exc:
        raise IsbnExportError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide between 1 and 500 ISBNs, each a non-empty string of at most 32 characters.",
            recoverable=False,
        ) from exc

    known = state.orchestrator.services
    if validated.sources is not None:
        unknown = [name for name in validated.sources if name not in known]
        if unknown:
            raise IsbnExportError(
                code=ErrorCode.UNKNOWN_SOURCE,
                message=f"Unknown editions source(s): {', '.join(unknown)}.",
                suggestion=f"Choose from the enabled sources: {', '.join(known)}.",
                recoverable=False,
            )

    lookup = await state.orchestrator.lookup_many(validated.isbns, sources=validated.sources)

    if state.store is not None:
        await state.orchestrator.save_snapshots(state.store)

    found = lookup.isbns
    if validated.both_isbns:
        found = {equivalent for isbn in found for equivalent in equivalent_isbns(isbn)}

    log.info(
        "lookup_complete",
        result_count=len(found),
        warnings=len(lookup.warnings),
        faults=len(lookup.temporary_faults),
    )

    output = FindOtherEditionsOutput(
        isbns=sorted(found),
        warnings=lookup.warnings,
        temporary_faults=lookup.temporary_faults,
        retry_not_before=lookup.retry_not_before,
        sources=lookup.sources,
    )
    return output.model_dump(mode="json")
