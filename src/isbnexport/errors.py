from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from isbnexport.models.editions import EditionsResult


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    UNKNOWN_SOURCE = "UNKNOWN_SOURCE"
    SNAPSHOT_INVALID = "SNAPSHOT_INVALID"
    UPDATES_NOT_CONFIGURED = "UPDATES_NOT_CONFIGURED"
    UPDATES_FETCH_FAILED = "UPDATES_FETCH_FAILED"


class IsbnExportError(Exception):
    """Raised by tool handlers for all expected failure conditions.

    Caught by server.py and serialised into the MCP error response.
    Ordinary provider or network trouble is never reported this way; it is
    recorded as warnings and temporary faults on the lookup result instead.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }


class SnapshotValidationError(IsbnExportError):
    """A persisted coordinator snapshot did not match its declared shapes.

    Loading is all-or-nothing: when this is raised no entry has been loaded.
    """

    def __init__(self, errors: list[str]) -> None:
        super().__init__(
            code=ErrorCode.SNAPSHOT_INVALID,
            message="invalid saved cache: " + "; ".join(errors),
            suggestion="Clear the persisted cache with the clear_cache tool.",
            recoverable=False,
        )
        self.errors = errors


class IncompleteLookupError(Exception):
    """A provider finished with temporary faults.

    Raised inside memoized provider calls so the partial result is not
    cached; the orchestrator absorbs ``result`` and reports its faults.
    """

    def __init__(self, result: EditionsResult) -> None:
        super().__init__("; ".join(result.temporary_faults) or "incomplete lookup")
        self.result = result
