"""Helpers shared by the editions providers."""

from __future__ import annotations

import json
from typing import Any

from isbnexport.models.editions import EditionsResult
from isbnexport.models.fetch import FetchFailure, FetchResult


def _status_blurb(status: int) -> str:
    if 500 <= status < 600:
        return "server error:"
    if 400 <= status < 500:
        return "client error:"
    if 300 <= status < 400:
        return "unfinished redirect:"
    if 200 <= status < 300:
        return "OK as error!?:"
    if 100 <= status < 200:
        return "interim as final!?:"
    return "bad(?)"


def response_or_fault(identifier: str, result: FetchResult) -> str | EditionsResult:
    """Pass a successful body through; turn a failure into a temporary fault.

    The fault keeps the failure's ``cache_until`` so throttling hints survive.
    """
    if isinstance(result, str):
        return result
    return EditionsResult.from_fault(
        temporary=f"{identifier} {_status_blurb(result.status)} HTTP status {_status_str(result)}",
        cache_until=result.cache_until,
    )


def _status_str(failure: FetchFailure) -> str:
    return f"{failure.status} {failure.status_text}" if failure.status_text else str(failure.status)


def json_or_fault(identifier: str, body: str) -> Any | EditionsResult:
    """Decode ``body`` as JSON, or return a temporary fault saying it is not."""
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        return EditionsResult.from_fault(temporary=f"{identifier} response is not parseable as JSON")
