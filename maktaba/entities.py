"""Book-id detection in free text (A01, b55, C123 ...)."""

import re

from maktaba.catalog import Book, Catalog

_BOOK_ID_RE = re.compile(r"\b([ABC]\d{2,3})\b", re.IGNORECASE)


def find_book_ids(text: str) -> list[str]:
    """Upper-cased ids in order of first appearance, without duplicates."""
    seen: dict[str, None] = {}
    for match in _BOOK_ID_RE.finditer(text or ""):
        seen.setdefault(match.group(1).upper(), None)
    return list(seen)


def extract_books(text: str, catalog: Catalog) -> list[Book]:
    """Every catalogued book mentioned in ``text``; unknown ids are dropped."""
    books = []
    for book_id in find_book_ids(text):
        book = catalog.get(book_id)
        if book:
            books.append(book)
    return books


def extract_book_entity(text: str, catalog: Catalog) -> Book | None:
    """First catalogued book mentioned in ``text``."""
    for book_id in find_book_ids(text):
        book = catalog.get(book_id)
        if book:
            return book
    return None
