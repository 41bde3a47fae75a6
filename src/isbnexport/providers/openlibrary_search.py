"""Open Library editions via a single search request.

/search.json?q=<isbn>&fields=isbn
  - collect ``.docs[n].isbn[n]``
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, TypeAdapter

from isbnexport.isbn import normalize_isbn
from isbnexport.models.editions import EditionsResult
from isbnexport.providers.base import json_or_fault, response_or_fault
from isbnexport.validation import check_shape

if TYPE_CHECKING:
    from isbnexport.throttle import Fetcher

OL_URL_PREFIX = "https://openlibrary.org"


class _SearchResults(BaseModel):
    docs: list[Any]


class _SearchDoc(BaseModel):
    isbn: list[Any]


_SEARCH_RESULTS = TypeAdapter(_SearchResults)
_SEARCH_DOC = TypeAdapter(_SearchDoc)


class OpenLibrarySearch:
    name = "Open Library Search"

    async def editions_of(self, fetch: Fetcher, isbn: str) -> EditionsResult:
        isbns = await _search_isbns_of_isbn(fetch, isbn)
        if not isbns.identifiers:
            isbns.add_temporary_fault(f"no valid ISBNs in search results for {isbn}")
        return isbns


async def _search_isbns_of_isbn(fetch: Fetcher, isbn: str) -> EditionsResult:
    url_tail = f"/search.json?q={isbn}&fields=isbn"

    response = response_or_fault(url_tail, await fetch(f"{OL_URL_PREFIX}{url_tail}"))
    if isinstance(response, EditionsResult):
        return response

    json_body = json_or_fault(url_tail, response)
    if isinstance(json_body, EditionsResult):
        return json_body

    result = EditionsResult()

    search = check_shape(_SEARCH_RESULTS, json_body)
    if not search.ok:
        return result.add_temporary_fault(f"{url_tail} malformed?: {'; '.join(search.errors)}")

    for index, raw_doc in enumerate(search.value.docs):  # type: ignore[union-attr]
        doc = check_shape(_SEARCH_DOC, raw_doc, path=f".docs[{index}]")
        if not doc.ok:
            result.add_warning(f"{url_tail} malformed?: {'; '.join(doc.errors)}")
            continue

        doc_result = EditionsResult()
        for isbn_index, raw_isbn in enumerate(doc.value.isbn):  # type: ignore[union-attr]
            if isinstance(raw_isbn, str):
                doc_result.add_identifier(normalize_isbn(raw_isbn))
            else:
                doc_result.add_warning(
                    f"{url_tail} .docs[{index}].isbn[{isbn_index}] is not a string"
                )
        if not doc_result.identifiers:
            doc_result.add_warning(f"{url_tail} .docs[{index}] has no ISBNs")
        result.absorb(doc_result)

    return result
