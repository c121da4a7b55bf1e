import sqlite3

import pytest

from minilib.book import Book
from minilib.library import (
    AlreadyBorrowedError,
    Library,
    MemoryLibrary,
    NotBorrowedError,
    OutOfRangeError,
    StorageError,
    ValidationError,
    open_library,
)


def test_add_and_list(any_lib):
    assert any_lib.list_books() == []

    book = any_lib.add_book("Ulysses", "James Joyce", 1922)

    books = any_lib.list_books()
    assert len(books) == 1
    assert books[0].id == book.id
    assert books[0].title == "Ulysses"
    assert books[0].is_borrowed is False
    assert books[0].status == "available"
    assert book.created_at is not None


def test_add_assigns_unique_ids(any_lib):
    first = any_lib.add_book("Dune", "Frank Herbert", 1965)
    second = any_lib.add_book("Dune", "Frank Herbert", 1965)
    assert first.id != second.id
    assert [b.id for b in any_lib.list_books()] == [first.id, second.id]


def test_add_trims_and_keeps_multi_word_fields(any_lib):
    book = any_lib.add_book("  The Left Hand of Darkness ", " Ursula K. Le Guin  ", " 1969 ")
    assert book.title == "The Left Hand of Darkness"
    assert book.author == "Ursula K. Le Guin"
    assert book.year == 1969


@pytest.mark.parametrize("title, author, year", [
    ("", "Frank Herbert", 1965),
    ("   ", "Frank Herbert", 1965),
    ("Dune", "", 1965),
    ("Dune", "  ", 1965),
    ("Dune", "Frank Herbert", 999),
    ("Dune", "Frank Herbert", 2031),
    ("Dune", "Frank Herbert", "nineteen"),
    ("Dune", "Frank Herbert", ""),
])
def test_add_rejects_invalid_fields(any_lib, title, author, year):
    with pytest.raises(ValidationError):
        any_lib.add_book(title, author, year)
    assert any_lib.list_books() == []


def test_year_bounds_are_inclusive(any_lib):
    any_lib.add_book("Oldest", "Someone", 1000)
    any_lib.add_book("Newest", "Someone", 2030)
    assert len(any_lib.list_books()) == 2


def test_validation_error_is_a_value_error(lib):
    with pytest.raises(ValueError, match="Title cannot be empty."):
        lib.add_book("", "Author", 2000)


def test_find_available_and_borrowed(any_lib):
    any_lib.add_book("Dune", "Frank Herbert", 1965)
    any_lib.add_book("Emma", "Jane Austen", 1815)
    any_lib.borrow_book(1)

    assert [b.title for b in any_lib.find_available()] == ["Emma"]
    assert [b.title for b in any_lib.find_borrowed()] == ["Dune"]
    assert any_lib.get_statistics() == {"total_books": 2, "available": 1, "borrowed": 1}


def test_statistics_on_empty_catalog(any_lib):
    assert any_lib.get_statistics() == {"total_books": 0, "available": 0, "borrowed": 0}


def test_dune_scenario(any_lib):
    any_lib.add_book("Dune", "Frank Herbert", 1965)
    books = any_lib.list_books()
    assert len(books) == 1
    assert books[0].status == "available"

    available = any_lib.find_available()
    borrowed_book = any_lib.borrow_book(1, available)
    assert borrowed_book.status == "borrowed"

    # Same, now stale, listing
    with pytest.raises(AlreadyBorrowedError):
        any_lib.borrow_book(1, available)
    assert any_lib.list_books()[0].status == "borrowed"

    on_loan = any_lib.find_borrowed()
    returned = any_lib.return_book(1, on_loan)
    assert returned.status == "available"

    with pytest.raises(NotBorrowedError):
        any_lib.return_book(1, on_loan)
    assert any_lib.list_books()[0].status == "available"


def test_return_never_borrowed_book(any_lib):
    any_lib.add_book("Dune", "Frank Herbert", 1965)
    # A listing that wrongly contains an available book
    with pytest.raises(NotBorrowedError):
        any_lib.return_book(1, any_lib.list_books())


@pytest.mark.parametrize("selector", [0, -1, 2, 10])
def test_borrow_selector_out_of_range(any_lib, selector):
    any_lib.add_book("Dune", "Frank Herbert", 1965)
    with pytest.raises(OutOfRangeError):
        any_lib.borrow_book(selector, any_lib.find_available())
    assert any_lib.get_statistics()["borrowed"] == 0


@pytest.mark.parametrize("selector", [0, 2])
def test_return_selector_out_of_range(any_lib, selector):
    any_lib.add_book("Dune", "Frank Herbert", 1965)
    any_lib.borrow_book(1)
    with pytest.raises(OutOfRangeError):
        any_lib.return_book(selector, any_lib.find_borrowed())
    assert any_lib.get_statistics()["borrowed"] == 1


def test_borrow_on_empty_listing(any_lib):
    with pytest.raises(OutOfRangeError):
        any_lib.borrow_book(1)
    with pytest.raises(OutOfRangeError):
        any_lib.return_book(1)


def test_selector_refers_to_listing_position(any_lib):
    any_lib.add_book("Dune", "Frank Herbert", 1965)
    any_lib.add_book("Emma", "Jane Austen", 1815)
    any_lib.add_book("Beloved", "Toni Morrison", 1987)
    any_lib.borrow_book(1)  # Dune

    # Position 2 of the available list is now Beloved, not Emma
    book = any_lib.borrow_book(2)
    assert book.title == "Beloved"
    assert [b.title for b in any_lib.find_available()] == ["Emma"]


def test_non_integer_selector_rejected(any_lib):
    any_lib.add_book("Dune", "Frank Herbert", 1965)
    with pytest.raises(OutOfRangeError):
        any_lib.borrow_book("1")
    with pytest.raises(OutOfRangeError):
        any_lib.borrow_book(True)


def test_listing_is_a_snapshot(any_lib):
    any_lib.add_book("Dune", "Frank Herbert", 1965)
    listing = any_lib.find_available()
    any_lib.borrow_book(1, listing)
    assert listing[0].status == "available"
    assert any_lib.get_book(listing[0].id).status == "borrowed"


def test_borrow_updates_timestamp(lib):
    book = lib.add_book("Dune", "Frank Herbert", 1965)
    with sqlite3.connect(lib.db_file) as conn:
        conn.execute("UPDATE books SET updated_at = '2000-01-01 00:00:00' WHERE id = ?", (book.id,))
    borrowed = lib.borrow_book(1)
    assert borrowed.updated_at != "2000-01-01 00:00:00"
    assert borrowed.created_at == book.created_at


def test_persistence(db_file):
    lib = Library(db_file=db_file)
    book = lib.add_book("Sapiens", "Yuval Noah Harari", 2011)
    lib.borrow_book(1)

    # New instance should read persisted data from SQLite
    lib2 = Library(db_file=db_file)
    books = lib2.list_books()
    assert len(books) == 1
    assert books[0].id == book.id
    assert books[0].status == "borrowed"


def test_get_book(any_lib):
    book = any_lib.add_book("Dune", "Frank Herbert", 1965)
    assert any_lib.get_book(book.id).title == "Dune"
    assert any_lib.get_book(12345) is None


def test_custom_year_bounds(tmp_path):
    lib = Library(db_file=str(tmp_path / "years.db"), min_year=1900, max_year=1950)
    with pytest.raises(ValidationError, match="between 1900 and 1950"):
        lib.add_book("Dune", "Frank Herbert", 1965)
    assert lib.add_book("Brave New World", "Aldous Huxley", 1932).year == 1932


def test_memory_library_ids_are_sequential():
    lib = MemoryLibrary()
    ids = [lib.add_book(f"Book {i}", "Author", 2000).id for i in range(3)]
    assert ids == [1, 2, 3]


def test_schema_failure_raises_storage_error(tmp_path):
    missing_dir = tmp_path / "does-not-exist" / "library.db"
    with pytest.raises(StorageError):
        Library(db_file=str(missing_dir))


def test_storage_failure_during_operation(lib):
    with sqlite3.connect(lib.db_file) as conn:
        conn.execute("DROP TABLE books")
    with pytest.raises(StorageError):
        lib.list_books()
    with pytest.raises(StorageError):
        lib.add_book("Dune", "Frank Herbert", 1965)


def test_open_library(tmp_path):
    assert isinstance(open_library(memory=True), MemoryLibrary)
    lib = open_library(db_file=str(tmp_path / "x.db"), memory=False)
    assert type(lib) is Library


def test_book_round_trip_from_row():
    book = Book.from_dict({"id": 3, "title": "Dune", "author": "Frank Herbert", "year": 1965, "is_borrowed": 1})
    assert book.is_borrowed is True
    assert book.to_dict()["status"] == "borrowed"


def test_add_rejects_overlong_year(any_lib):
    with pytest.raises(ValidationError, match="whole number"):
        any_lib.add_book("Dune", "Frank Herbert", "9" * 5000)
    assert any_lib.list_books() == []
