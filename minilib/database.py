import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)

# Columns added after the first schema version, with the SQL used to add them
# and to back-fill existing rows. SQLite does not allow ALTER TABLE with a
# non-constant default, so timestamps are added bare and then filled in.
_MIGRATED_COLUMNS = (
    ("year", "ALTER TABLE books ADD COLUMN year INTEGER NOT NULL DEFAULT 0", None),
    ("is_borrowed", "ALTER TABLE books ADD COLUMN is_borrowed INTEGER NOT NULL DEFAULT 0", None),
    (
        "created_at",
        "ALTER TABLE books ADD COLUMN created_at TIMESTAMP",
        "UPDATE books SET created_at = CURRENT_TIMESTAMP WHERE created_at IS NULL",
    ),
    (
        "updated_at",
        "ALTER TABLE books ADD COLUMN updated_at TIMESTAMP",
        "UPDATE books SET updated_at = COALESCE(created_at, CURRENT_TIMESTAMP) WHERE updated_at IS NULL",
    ),
)


def get_db_connection(db_file: str) -> sqlite3.Connection:
    """Establishes a connection to the SQLite database."""
    conn = sqlite3.connect(db_file)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def db_session(db_file: str) -> Iterator[sqlite3.Connection]:
    """Open a connection for one operation.

    Commits when the block finishes, rolls back if it raises, and closes the
    connection on every path.
    """
    conn = get_db_connection(db_file)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def create_tables(db_file: str) -> None:
    """Creates the books table if it doesn't exist and adds any missing columns."""
    with db_session(db_file) as conn:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                year INTEGER NOT NULL,
                is_borrowed INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Check which columns exist, add the rest (migration from older files)
        cursor.execute("PRAGMA table_info(books)")
        columns = [column[1] for column in cursor.fetchall()]
        for name, alter_sql, backfill_sql in _MIGRATED_COLUMNS:
            if name in columns:
                continue
            logger.info("Adding missing column books.%s", name)
            cursor.execute(alter_sql)
            if backfill_sql:
                cursor.execute(backfill_sql)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_is_borrowed ON books(is_borrowed)")


def initialize_database(db_file: str) -> None:
    """Initializes the database, creating tables and migrating columns if needed."""
    create_tables(db_file)
    logger.debug("Database ready at %s", db_file)
