import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence

from minilib.book import Book
from minilib.config import settings
from minilib.database import db_session, initialize_database
from minilib.validators import TextValidator, YearValidator

logger = logging.getLogger(__name__)

_BOOK_COLUMNS = "id, title, author, year, is_borrowed, created_at, updated_at"


class Library:
    """Manages the collection of books and data persistence.

    Borrow and return take a *selector*: a 1-based position into the listing
    the user was just shown (``find_available()`` for borrow,
    ``find_borrowed()`` for return). Callers should pass that same listing so
    the position keeps its meaning; when no listing is given the store
    re-queries and resolves the selector against the fresh list.

    An empty listing has no valid position, so borrow and return raise
    ``OutOfRangeError`` for it. Callers that want a neutral "nothing to
    borrow" message check ``find_available()``/``find_borrowed()`` first,
    as the menu and the borrow/return commands do.
    """

    def __init__(self, db_file: Optional[str] = None, *, min_year: Optional[int] = None,
                 max_year: Optional[int] = None) -> None:
        self.db_file = db_file or settings.data_file
        self.min_year = settings.min_year if min_year is None else min_year
        self.max_year = settings.max_year if max_year is None else max_year
        self._ensure_schema()

    # ------------------------- Core operations ------------------------- #
    def add_book(self, title: str, author: str, year: Any) -> Book:
        """Validate the fields, then create and persist a new, available book."""
        title = TextValidator.clean(title)
        author = TextValidator.clean(author)
        parsed_year = YearValidator.parse(year)

        if not TextValidator.validate_title(title):
            raise ValidationError("Title cannot be empty.")
        if not TextValidator.validate_author(author):
            raise ValidationError("Author cannot be empty.")
        if parsed_year is None:
            raise ValidationError("Year must be a whole number.")
        if not YearValidator.validate_year(parsed_year, self.min_year, self.max_year):
            raise ValidationError(f"Year must be between {self.min_year} and {self.max_year}.")

        book = self._insert(title, author, parsed_year)
        logger.info("Added book id=%s title=%r", book.id, book.title)
        return book

    def list_books(self) -> List[Book]:
        """All books in creation order."""
        return self._fetch_books()

    def find_available(self) -> List[Book]:
        return self._fetch_books(borrowed=False)

    def find_borrowed(self) -> List[Book]:
        return self._fetch_books(borrowed=True)

    def borrow_book(self, selector: int, listing: Optional[Sequence[Book]] = None) -> Book:
        """Borrow the book at ``selector`` in the available listing."""
        if listing is None:
            listing = self.find_available()
        target = self._select(selector, listing)
        if not self._set_borrowed(target.id, True):
            self._raise_transition_error(target, AlreadyBorrowedError(f"'{target.title}' is already borrowed."))
        logger.info("Borrowed book id=%s", target.id)
        return self.get_book(target.id)

    def return_book(self, selector: int, listing: Optional[Sequence[Book]] = None) -> Book:
        """Return the book at ``selector`` in the borrowed listing."""
        if listing is None:
            listing = self.find_borrowed()
        target = self._select(selector, listing)
        if not self._set_borrowed(target.id, False):
            self._raise_transition_error(target, NotBorrowedError(f"'{target.title}' is not borrowed."))
        logger.info("Returned book id=%s", target.id)
        return self.get_book(target.id)

    def get_statistics(self) -> Dict[str, int]:
        """Get catalog counts."""
        with self._session() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total, COALESCE(SUM(is_borrowed), 0) AS borrowed FROM books"
            ).fetchone()
        total, borrowed = row["total"], row["borrowed"]
        return {"total_books": total, "available": total - borrowed, "borrowed": borrowed}

    def get_book(self, book_id: int) -> Optional[Book]:
        with self._session() as conn:
            row = conn.execute(f"SELECT {_BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,)).fetchone()
        return Book.from_dict(dict(row)) if row else None

    # ------------------------- Persistence ------------------------- #
    def _ensure_schema(self) -> None:
        try:
            initialize_database(self.db_file)
        except sqlite3.Error as exc:
            logger.error("Could not prepare database %s: %s", self.db_file, exc)
            raise StorageError(f"Could not open catalog database '{self.db_file}': {exc}") from exc

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        try:
            with db_session(self.db_file) as conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("Storage failure on %s: %s", self.db_file, exc)
            raise StorageError(f"Storage failure: {exc}") from exc

    def _insert(self, title: str, author: str, year: int) -> Book:
        with self._session() as conn:
            cursor = conn.execute(
                "INSERT INTO books (title, author, year, is_borrowed) VALUES (?, ?, ?, 0)",
                (title, author, year),
            )
            # Read back the generated id and timestamps
            row = conn.execute(
                f"SELECT {_BOOK_COLUMNS} FROM books WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return Book.from_dict(dict(row))

    def _fetch_books(self, borrowed: Optional[bool] = None) -> List[Book]:
        query = f"SELECT {_BOOK_COLUMNS} FROM books"
        params: tuple = ()
        if borrowed is not None:
            query += " WHERE is_borrowed = ?"
            params = (int(borrowed),)
        query += " ORDER BY id"
        with self._session() as conn:
            rows = conn.execute(query, params).fetchall()
        return [Book.from_dict(dict(row)) for row in rows]

    def _set_borrowed(self, book_id: int, borrowed: bool) -> bool:
        """Flip the flag only if it currently holds the opposite value."""
        with self._session() as conn:
            cursor = conn.execute(
                "UPDATE books SET is_borrowed = ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE id = ? AND is_borrowed = ?",
                (int(borrowed), book_id, int(not borrowed)),
            )
            return cursor.rowcount > 0

    # ------------------------- Utilities ------------------------- #
    @staticmethod
    def _select(selector: int, listing: Sequence[Book]) -> Book:
        if isinstance(selector, bool) or not isinstance(selector, int):
            raise OutOfRangeError(f"Invalid selection: {selector!r}.")
        if not listing:
            raise OutOfRangeError("There is nothing to select from.")
        if selector < 1 or selector > len(listing):
            raise OutOfRangeError(f"Please choose a number between 1 and {len(listing)}.")
        return listing[selector - 1]

    def _raise_transition_error(self, target: Book, error: "LibraryError") -> None:
        if self.get_book(target.id) is None:
            raise OutOfRangeError(f"'{target.title}' is no longer in the catalog.")
        raise error

    def close(self) -> None:
        """Connections are opened per operation, so there is nothing to release."""
        return None


class MemoryLibrary(Library):
    """Single-session catalog kept in an ordered list.

    Identifiers are sequential from 1 and are lost when the process exits.
    """

    def __init__(self, *, min_year: Optional[int] = None, max_year: Optional[int] = None) -> None:
        self.db_file = None
        self.min_year = settings.min_year if min_year is None else min_year
        self.max_year = settings.max_year if max_year is None else max_year
        self._books: List[Book] = []
        self._next_id = 1

    def get_statistics(self) -> Dict[str, int]:
        borrowed = sum(1 for book in self._books if book.is_borrowed)
        total = len(self._books)
        return {"total_books": total, "available": total - borrowed, "borrowed": borrowed}

    def get_book(self, book_id: int) -> Optional[Book]:
        for book in self._books:
            if book.id == book_id:
                return self._copy(book)
        return None

    def _insert(self, title: str, author: str, year: int) -> Book:
        now = self._now()
        book = Book(title, author, year, id=self._next_id, created_at=now, updated_at=now)
        self._next_id += 1
        self._books.append(book)
        return self._copy(book)

    def _fetch_books(self, borrowed: Optional[bool] = None) -> List[Book]:
        return [self._copy(b) for b in self._books if borrowed is None or b.is_borrowed == borrowed]

    def _set_borrowed(self, book_id: int, borrowed: bool) -> bool:
        for book in self._books:
            if book.id == book_id:
                if book.is_borrowed == borrowed:
                    return False
                book.is_borrowed = borrowed
                book.updated_at = self._now()
                return True
        return False

    @staticmethod
    def _copy(book: Book) -> Book:
        # Callers get snapshots so a displayed listing never changes under them
        return Book.from_dict(book.to_dict())

    @staticmethod
    def _now() -> str:
        # Same format as SQLite's CURRENT_TIMESTAMP
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def open_library(db_file: Optional[str] = None, memory: Optional[bool] = None) -> Library:
    """Build the catalog store selected by arguments or settings."""
    if memory is None:
        memory = settings.storage_backend == "memory"
    if memory:
        return MemoryLibrary()
    return Library(db_file=db_file)


class LibraryError(Exception):
    """Base class for catalog errors that the CLI reports and recovers from."""


class ValidationError(LibraryError, ValueError):
    pass


class OutOfRangeError(LibraryError, IndexError):
    pass


class AlreadyBorrowedError(LibraryError):
    pass


class NotBorrowedError(LibraryError):
    pass


class StorageError(LibraryError):
    pass
