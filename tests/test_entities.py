"""Tests for book-id extraction from replies."""

from maktaba.entities import extract_book_entity, extract_books, find_book_ids


def test_find_ids_case_insensitive_and_deduplicated():
    assert find_book_ids("a01 and A01, then b12 and c120") == ["A01", "B12", "C120"]


def test_id_length_bounds():
    # Two or three digits only, on word boundaries
    assert find_book_ids("A1 A1234 XA01 A01x B99") == ["B99"]


def test_unknown_ids_are_dropped(catalog):
    text = "الكتاب B12 متوفر، وأيضا C007"
    assert [b.id for b in extract_books(text, catalog)] == ["B12"]


def test_entity_is_first_known_id(catalog):
    book = extract_book_entity("C99 is gone, try A05 or A01", catalog)
    assert book.id == "A05"
    assert book.title == "تاريخ الطبري"


def test_no_entity(catalog):
    assert extract_book_entity("لا يوجد", catalog) is None
    assert extract_book_entity("", catalog) is None
