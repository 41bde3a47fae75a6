from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class EditionsResult(BaseModel):
    """Identifiers and non-fatal problems accumulated by one fetch/parse pipeline.

    ``warnings`` are data glitches that did not stop progress;
    ``temporary_faults`` are fetch or parse failures that may succeed on retry.
    Both keep append order. Identifiers have set semantics.
    """

    identifiers: set[str] = Field(default_factory=set)
    warnings: list[str] = Field(default_factory=list)
    temporary_faults: list[str] = Field(default_factory=list)
    cache_until: datetime | None = None

    @classmethod
    def from_fault(
        cls,
        *,
        warning: str | None = None,
        temporary: str | None = None,
        cache_until: datetime | None = None,
    ) -> EditionsResult:
        result = cls(cache_until=cache_until)
        if warning is not None:
            result.add_warning(warning)
        if temporary is not None:
            result.add_temporary_fault(temporary)
        return result

    def add_identifier(self, identifier: str) -> EditionsResult:
        self.identifiers.add(identifier)
        return self

    def add_warning(self, message: str | BaseException) -> EditionsResult:
        self.warnings.append(str(message))
        return self

    def add_temporary_fault(self, message: str | BaseException) -> EditionsResult:
        self.temporary_faults.append(str(message))
        return self

    def absorb_faults(self, other: EditionsResult) -> EditionsResult:
        """Append ``other``'s warnings and temporary faults after our own."""
        self.warnings = self.warnings + other.warnings
        self.temporary_faults = self.temporary_faults + other.temporary_faults
        self.cache_until = _earliest(self.cache_until, other.cache_until)
        return self

    def absorb(self, other: EditionsResult) -> EditionsResult:
        """Merge ``other`` into this result and return it.

        The identifier union is commutative and associative; fault lists are
        concatenated, so merge order only affects diagnostic ordering.
        """
        self.identifiers |= other.identifiers
        return self.absorb_faults(other)

    def as_result(self, subject: str) -> EditionsResult:
        """Finalize: an empty identifier set is always flagged as a fault."""
        if not self.identifiers:
            self.add_temporary_fault(f"no results found for {subject}")
        return self


def _earliest(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


class SourceStats(BaseModel):
    """Per-source reporting counters. Never used for merging."""

    cache_hits: int = 0
    queries: int = 0
    fetches: int = 0


class EditionsLookup(BaseModel):
    """Merged outcome of asking every provider for the editions of some ISBNs."""

    isbns: set[str] = Field(default_factory=set)
    warnings: list[str] = Field(default_factory=list)
    temporary_faults: list[str] = Field(default_factory=list)
    retry_not_before: datetime | None = None
    sources: dict[str, SourceStats] = Field(default_factory=dict)
