"""Editions lookup orchestration.

Each provider is wrapped in an ``EditionsService`` that counts its fetches,
reports progress through structlog and (optionally) memoizes complete results
in a ``RequestCoordinator`` keyed by canonical ISBN. The ``Orchestrator`` asks
every selected service concurrently, absorbs whatever comes back into one
``EditionsResult``, maps the editions found to their ISBN-13 form and
finalizes it. Provider or network trouble is always turned into temporary
faults; lookups never raise for it.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import TypeAdapter

from isbnexport.coordinator import RequestCoordinator
from isbnexport.errors import IncompleteLookupError
from isbnexport.isbn import canonical_isbn
from isbnexport.models.editions import EditionsLookup, EditionsResult, SourceStats

if TYPE_CHECKING:
    from isbnexport.models.fetch import FetchResult
    from isbnexport.protocols import EditionProvider, SnapshotStoreProtocol
    from isbnexport.throttle import Fetcher

log = structlog.get_logger()

_ISBN_SHAPE = TypeAdapter(str)
_RESULT_SHAPE = TypeAdapter(EditionsResult)
_SNAPSHOT_SHAPE = TypeAdapter(list[tuple[str, EditionsResult]])


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EditionsCoordinator(RequestCoordinator[str, EditionsResult]):
    """Memoizes one provider's results; equivalent ISBN forms share an entry."""

    def cache_key(self, argument: str) -> str:
        return canonical_isbn(argument)


class EditionsService:
    def __init__(
        self,
        provider: EditionProvider,
        fetch: Fetcher,
        *,
        memoize: bool = True,
        saved: Any | None = None,
    ) -> None:
        self.provider = provider
        self.name = provider.name
        self.stats = SourceStats()
        self._fetch = fetch
        self._coordinator = self._new_coordinator(saved) if memoize else None

    async def query(self, isbn: str) -> EditionsResult:
        """Editions of ``isbn`` from this service's provider.

        Complete results are served from the memo when present. Results with
        temporary faults are returned but not memoized.
        """
        if self._coordinator is None:
            return await self._query(isbn)

        if self._coordinator.check_cache(isbn).hit:
            self.stats.cache_hits += 1
            log.info("service_cache_hit", service=self.name, isbn=isbn)

        try:
            return await self._coordinator(isbn)
        except IncompleteLookupError as exc:
            return exc.result

    def save_cache(self) -> list | None:
        """JSON-ready snapshot of the memo, or None when not memoizing."""
        if self._coordinator is None:
            return None
        return _SNAPSHOT_SHAPE.dump_python(self._coordinator.save_cache(), mode="json")

    def clear_cache(self) -> None:
        if self._coordinator is not None:
            self._coordinator = self._new_coordinator(None)

    def _new_coordinator(self, saved: Any | None) -> EditionsCoordinator:
        return EditionsCoordinator(
            self._query_complete,
            saved=saved,
            argument_shape=_ISBN_SHAPE,
            result_shape=_RESULT_SHAPE,
        )

    async def _query_complete(self, isbn: str) -> EditionsResult:
        result = await self._query(isbn)
        if result.temporary_faults:
            raise IncompleteLookupError(result)
        return result

    async def _query(self, isbn: str) -> EditionsResult:
        self.stats.queries += 1
        log.info("service_query_started", service=self.name, isbn=isbn)
        result = await self.provider.editions_of(self._counted_fetch, isbn)
        log.info(
            "service_query_finished",
            service=self.name,
            isbn=isbn,
            isbn_count=len(result.identifiers),
            warnings=result.warnings,
            faults=result.temporary_faults,
        )
        return result

    async def _counted_fetch(self, url: str) -> FetchResult:
        self.stats.fetches += 1
        log.debug("fetch_started", service=self.name, url=url)
        started = time.monotonic()
        result = await self._fetch(url)
        log.debug(
            "fetch_finished",
            service=self.name,
            url=url,
            elapsed_ms=round((time.monotonic() - started) * 1000),
        )
        return result


class Orchestrator:
    def __init__(
        self,
        services: list[EditionsService],
        *,
        max_concurrency: int = 10,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.services = {service.name: service for service in services}
        self._max_concurrency = max_concurrency
        self._clock = clock

    @classmethod
    def from_providers(
        cls,
        providers: Iterable[EditionProvider],
        fetch: Fetcher,
        *,
        memoize: bool = True,
        snapshots: dict[str, Any] | None = None,
        max_concurrency: int = 10,
        clock: Callable[[], datetime] = _utcnow,
    ) -> Orchestrator:
        """Wrap each provider in a service sharing ``fetch``.

        ``snapshots`` maps source names to saved memo snapshots; an invalid
        snapshot raises ``SnapshotValidationError``.
        """
        snapshots = snapshots or {}
        services = [
            EditionsService(
                provider,
                fetch,
                memoize=memoize,
                saved=snapshots.get(provider.name),
            )
            for provider in providers
        ]
        return cls(services, max_concurrency=max_concurrency, clock=clock)

    async def lookup(self, isbn: str, *, sources: Iterable[str] | None = None) -> EditionsLookup:
        """Ask every selected source for the other editions of ``isbn``."""
        return await self.lookup_many([isbn], sources=sources)

    async def lookup_many(
        self, isbns: Iterable[str], *, sources: Iterable[str] | None = None
    ) -> EditionsLookup:
        """Look up several ISBNs, at most ``max_concurrency`` at a time, and merge.

        Equivalent ISBNs are looked up once, under the first form given.
        """
        unique: dict[str, str] = {}
        for isbn in isbns:
            unique.setdefault(canonical_isbn(isbn), isbn)
        isbns = list(unique.values())
        services = self._select(sources)
        semaphore = asyncio.Semaphore(self._max_concurrency)
        hints: list[datetime] = []

        async def bounded(isbn: str) -> EditionsResult:
            async with semaphore:
                return await self._merged(isbn, services, hints)

        merged = EditionsResult()
        for result in await asyncio.gather(*(bounded(isbn) for isbn in isbns)):
            merged.absorb(result)

        merged.as_result(", ".join(isbns))

        now = self._clock()
        live_hints = [hint for hint in hints if hint > now]
        lookup = EditionsLookup(
            isbns=merged.identifiers,
            warnings=merged.warnings,
            temporary_faults=merged.temporary_faults,
            retry_not_before=min(live_hints) if live_hints else None,
            sources={service.name: service.stats.model_copy() for service in services},
        )
        log.info(
            "lookup_complete",
            isbn_count=len(isbns),
            result_count=len(lookup.isbns),
            warnings=len(lookup.warnings),
            faults=len(lookup.temporary_faults),
        )
        return lookup

    async def save_snapshots(self, store: SnapshotStoreProtocol) -> None:
        for name, service in self.services.items():
            entries = service.save_cache()
            if entries is not None:
                await store.save_snapshot(name, entries)

    def clear_caches(self) -> None:
        for service in self.services.values():
            service.clear_cache()

    def _select(self, sources: Iterable[str] | None) -> list[EditionsService]:
        if sources is None:
            return list(self.services.values())
        return [self.services[name] for name in sources]

    async def _merged(
        self, isbn: str, services: list[EditionsService], hints: list[datetime]
    ) -> EditionsResult:
        settled = await asyncio.gather(
            *(service.query(isbn) for service in services),
            return_exceptions=True,
        )

        merged = EditionsResult()
        for service, outcome in zip(services, settled, strict=True):
            if isinstance(outcome, BaseException):
                log.warning(
                    "service_query_failed",
                    service=service.name,
                    isbn=isbn,
                    error=repr(outcome),
                )
                merged.add_temporary_fault(f"{service.name} {isbn}: {outcome!r}")
                continue
            if outcome.cache_until is not None:
                hints.append(outcome.cache_until)
            merged.absorb(outcome)

        # Editions are reported as ISBN-13 and include the book asked about.
        if merged.identifiers:
            merged.identifiers = {canonical_isbn(found) for found in merged.identifiers}
            merged.add_identifier(canonical_isbn(isbn))
        return merged


async def load_snapshots(store: SnapshotStoreProtocol, names: Iterable[str]) -> dict[str, Any]:
    """Read the saved memo snapshot of each named source, skipping missing ones."""
    snapshots: dict[str, Any] = {}
    for name in names:
        saved = await store.load_snapshot(name)
        if saved is not None:
            snapshots[name] = saved
    return snapshots
