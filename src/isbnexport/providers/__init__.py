from __future__ import annotations

from typing import TYPE_CHECKING

from isbnexport.providers.librarything import LibraryThingThingISBN
from isbnexport.providers.openlibrary_search import OpenLibrarySearch
from isbnexport.providers.openlibrary_work import OpenLibraryWorkEditions

if TYPE_CHECKING:
    from isbnexport.protocols import EditionProvider

PROVIDER_CLASSES: dict[str, type[EditionProvider]] = {
    OpenLibraryWorkEditions.name: OpenLibraryWorkEditions,
    OpenLibrarySearch.name: OpenLibrarySearch,
    LibraryThingThingISBN.name: LibraryThingThingISBN,
}


def build_providers(names: list[str]) -> list[EditionProvider]:
    """Instantiate the providers named in ``names``, in order.

    Raises KeyError for an unknown name.
    """
    return [PROVIDER_CLASSES[name]() for name in names]


__all__ = [
    "PROVIDER_CLASSES",
    "build_providers",
    "OpenLibraryWorkEditions",
    "OpenLibrarySearch",
    "LibraryThingThingISBN",
]
