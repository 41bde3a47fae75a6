from __future__ import annotations

from isbnexport.models.editions import EditionsLookup, EditionsResult, SourceStats
from isbnexport.models.fetch import ConditionalResponse, FetchFailure, FetchResult
from isbnexport.models.freshness import FreshnessRecord
from isbnexport.models.tools import (
    CheckForUpdatesOutput,
    ClearCacheOutput,
    FindOtherEditionsInput,
    FindOtherEditionsOutput,
)

__all__ = [
    # editions
    "EditionsResult",
    "EditionsLookup",
    "SourceStats",
    # fetch
    "FetchFailure",
    "FetchResult",
    "ConditionalResponse",
    # freshness
    "FreshnessRecord",
    # tools
    "FindOtherEditionsInput",
    "FindOtherEditionsOutput",
    "CheckForUpdatesOutput",
    "ClearCacheOutput",
]
