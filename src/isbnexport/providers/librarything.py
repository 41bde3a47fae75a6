"""LibraryThing ThingISBN editions.

/api/thingISBN/<isbn> answers with
``<?xml ...?><idlist><isbn>...</isbn>...</idlist>``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from xml.etree.ElementTree import ParseError

import defusedxml.ElementTree as DefusedET
from defusedxml import DefusedXmlException

from isbnexport.isbn import normalize_isbn
from isbnexport.models.editions import EditionsResult
from isbnexport.providers.base import response_or_fault

if TYPE_CHECKING:
    from isbnexport.throttle import Fetcher

LT_URL_PREFIX = "https://www.librarything.com"


class LibraryThingThingISBN:
    name = "LibraryThing ThingISBN"

    async def editions_of(self, fetch: Fetcher, isbn: str) -> EditionsResult:
        url_tail = f"/api/thingISBN/{isbn}"

        response = response_or_fault(url_tail, await fetch(f"{LT_URL_PREFIX}{url_tail}"))
        if isinstance(response, EditionsResult):
            isbns = response
        else:
            isbns = _parse_idlist(url_tail, response)

        if not isbns.identifiers:
            isbns.add_temporary_fault(f"no valid ISBNs in search results for {isbn}")
        return isbns


def _parse_idlist(url_tail: str, body: str) -> EditionsResult:
    try:
        root = DefusedET.fromstring(body)
    except (ParseError, DefusedXmlException) as exc:
        return EditionsResult.from_fault(
            temporary=f"{url_tail} response is not parseable as XML: {exc}"
        )

    isbns = EditionsResult()
    for element in root.iter("isbn"):
        normalized = normalize_isbn(element.text or "")
        if not normalized:
            isbns.add_warning(f"{url_tail} empty <isbn>")
            continue
        isbns.add_identifier(normalized)
    return isbns
