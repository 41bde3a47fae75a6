"""ISBN normalisation, checksum validation and ISBN-10/13 conversion."""

from __future__ import annotations

import re

_SEPARATORS_RE = re.compile(r"[\s-]+")
_ISBN10_RE = re.compile(r"^[0-9]{9}[0-9X]$")
_ISBN13_RE = re.compile(r"^97[89][0-9]{10}$")


def normalize_isbn(isbnish: str) -> str:
    """Strip spaces and hyphens and upper-case. Does not check validity."""
    return _SEPARATORS_RE.sub("", isbnish).upper()


def _isbn10_check_digit(first_nine: str) -> str:
    total = sum((10 - i) * int(ch) for i, ch in enumerate(first_nine))
    check = (11 - total % 11) % 11
    return "X" if check == 10 else str(check)


def _isbn13_check_digit(first_twelve: str) -> str:
    total = sum(int(ch) * (1 if i % 2 == 0 else 3) for i, ch in enumerate(first_twelve))
    return str((10 - total % 10) % 10)


def _is_isbn10(isbn: str) -> bool:
    return bool(_ISBN10_RE.match(isbn)) and _isbn10_check_digit(isbn[:9]) == isbn[9]


def _is_isbn13(isbn: str) -> bool:
    return bool(_ISBN13_RE.match(isbn)) and _isbn13_check_digit(isbn[:12]) == isbn[12]


def validate_isbn(maybe_isbn: str) -> bool:
    """True if ``maybe_isbn`` is an ISBN-10 or a 978/979 ISBN-13 with a correct check digit."""
    isbn = normalize_isbn(maybe_isbn)
    return _is_isbn10(isbn) or _is_isbn13(isbn)


def equivalent_isbns(isbn: str) -> list[str]:
    """Return every equivalent form of a valid ISBN, ISBN-13 first.

    - ISBN-10 -> [its 978 ISBN-13, the ISBN-10]
    - 978 ISBN-13 -> [the ISBN-13, its ISBN-10]
    - 979 ISBN-13 -> [the ISBN-13]

    An invalid ISBN yields just its normalised form.
    """
    normalized = normalize_isbn(isbn)
    if _is_isbn10(normalized):
        base = "978" + normalized[:9]
        return [base + _isbn13_check_digit(base), normalized]
    if _is_isbn13(normalized):
        if normalized.startswith("978"):
            core = normalized[3:12]
            return [normalized, core + _isbn10_check_digit(core)]
        return [normalized]
    return [normalized]


def canonical_isbn(isbn: str) -> str:
    """ISBN-13 form when valid, otherwise the normalised input."""
    return equivalent_isbns(isbn)[0]
