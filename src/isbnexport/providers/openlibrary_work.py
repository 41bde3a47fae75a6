"""Open Library editions via the work record.

Two steps:
1. /isbn/<isbn>.json
   - the Open Library work ids (``.works[n].key``) of the ISBN's edition
2. /works/<work id>/editions.json (paginated through ``.links.next``)
   - the ``isbn_10`` / ``isbn_13`` of every listed edition of each work
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin

import structlog
from pydantic import BaseModel, TypeAdapter

from isbnexport.isbn import normalize_isbn
from isbnexport.models.editions import EditionsResult
from isbnexport.providers.base import json_or_fault, response_or_fault
from isbnexport.validation import check_shape

if TYPE_CHECKING:
    from isbnexport.throttle import Fetcher

log = structlog.get_logger()

OL_URL_PREFIX = "https://openlibrary.org"
_WORKS_PREFIX = "/works/"


class _EditionRecord(BaseModel):
    works: list[Any]


class _WorkRef(BaseModel):
    key: str


class _EditionsPage(BaseModel):
    entries: list[Any]


class _EditionEntry(BaseModel):
    isbn_10: list[str] | None = None
    isbn_13: list[str] | None = None


class _PageLinks(BaseModel):
    next: str


class _PageWithNext(BaseModel):
    links: _PageLinks


_EDITION_RECORD = TypeAdapter(_EditionRecord)
_WORK_REF = TypeAdapter(_WorkRef)
_EDITIONS_PAGE = TypeAdapter(_EditionsPage)
_EDITION_ENTRY = TypeAdapter(_EditionEntry)
_PAGE_WITH_NEXT = TypeAdapter(_PageWithNext)


class OpenLibraryWorkEditions:
    """Makes 1 + N requests per ISBN (one per editions page of each work)."""

    name = "Open Library WorkEditions"

    async def editions_of(self, fetch: Fetcher, isbn: str) -> EditionsResult:
        work_ids = await _work_ids_of_isbn(fetch, isbn)
        if not work_ids.identifiers:
            return work_ids

        settled = await asyncio.gather(
            *(
                _all_editions_pages(fetch, f"{OL_URL_PREFIX}/works/{work_id}/editions.json")
                for work_id in sorted(work_ids.identifiers)
            ),
            return_exceptions=True,
        )

        isbns = EditionsResult()
        for outcome in settled:
            if isinstance(outcome, BaseException):
                isbns.add_temporary_fault(outcome)
            else:
                isbns.absorb(outcome)

        # Work id faults come after the editions faults.
        isbns.absorb_faults(work_ids)

        if not isbns.identifiers:
            isbns.add_temporary_fault(
                f"no valid ISBNs among all editions.jsons for all {isbn} works"
            )
        return isbns


async def _work_ids_of_isbn(fetch: Fetcher, isbn: str) -> EditionsResult:
    url_tail = f"/isbn/{isbn}.json"

    response = response_or_fault(url_tail, await fetch(f"{OL_URL_PREFIX}{url_tail}"))
    if isinstance(response, EditionsResult):
        return response

    json_body = json_or_fault(url_tail, response)
    if isinstance(json_body, EditionsResult):
        return json_body

    record = check_shape(_EDITION_RECORD, json_body)
    if not record.ok:
        return EditionsResult.from_fault(
            temporary=f"{url_tail} malformed?: {'; '.join(record.errors)}"
        )
    works = record.value.works  # type: ignore[union-attr]

    if not works:
        return EditionsResult.from_fault(temporary=f"{url_tail} response .works is empty")

    result = EditionsResult()
    for index, work in enumerate(works):
        ref = check_shape(_WORK_REF, work, path=f".works[{index}]")
        if not ref.ok:
            result.add_warning(f"{url_tail} malformed?: {'; '.join(ref.errors)}")
            continue
        key = ref.value.key  # type: ignore[union-attr]
        if not key.startswith(_WORKS_PREFIX):
            result.add_warning(
                f"{url_tail} response .works[{index}].key ({key}) does not start with {_WORKS_PREFIX}"
            )
            continue
        result.add_identifier(key[len(_WORKS_PREFIX):])

    if not result.identifiers:
        result.add_temporary_fault(f"{url_tail} has no valid workIDs")
    return result


async def _all_editions_pages(fetch: Fetcher, url: str) -> EditionsResult:
    """Collect every page of a work's editions.

    A failure fetching the first page propagates; a failure on a later page
    is recorded as a temporary fault and ends the pagination.
    """
    result, next_url = await _editions_page(fetch, url)
    while next_url is not None:
        try:
            page, next_url = await _editions_page(fetch, next_url)
        except Exception as exc:
            log.warning("editions_page_failed", url=next_url, exc_info=True)
            result.add_temporary_fault(exc)
            break
        result.absorb(page)
    return result


async def _editions_page(fetch: Fetcher, url: str) -> tuple[EditionsResult, str | None]:
    url_tail = url.removeprefix(OL_URL_PREFIX)

    response = response_or_fault(url_tail, await fetch(url))
    if isinstance(response, EditionsResult):
        return response, None

    json_body = json_or_fault(url_tail, response)
    if isinstance(json_body, EditionsResult):
        return json_body, None

    # capture the next page right away, even if this one turns out malformed
    next_url: str | None = None
    links = check_shape(_PAGE_WITH_NEXT, json_body)
    if links.ok:
        next_url = urljoin(url, links.value.links.next)  # type: ignore[union-attr]

    result = EditionsResult()

    page = check_shape(_EDITIONS_PAGE, json_body)
    if not page.ok:
        return result.add_temporary_fault(f"{url_tail} malformed?: {'; '.join(page.errors)}"), next_url

    for index, raw_entry in enumerate(page.value.entries):  # type: ignore[union-attr]
        entry = check_shape(_EDITION_ENTRY, raw_entry, path=f".entries[{index}]")
        if not entry.ok:
            result.add_warning(f"{url_tail} malformed?: {'; '.join(entry.errors)}")
            continue

        entry_result = EditionsResult()
        for raw_isbn in [*(entry.value.isbn_10 or []), *(entry.value.isbn_13 or [])]:  # type: ignore[union-attr]
            entry_result.add_identifier(normalize_isbn(raw_isbn))
        if not entry_result.identifiers:
            entry_result.add_warning(f"{url_tail} .entries[{index}] has no ISBNs")
        result.absorb(entry_result)

    return result, next_url
