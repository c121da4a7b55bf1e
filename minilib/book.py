from __future__ import annotations

AVAILABLE = "available"
BORROWED = "borrowed"


class Book:
    """Represents a single book record in the catalog."""

    def __init__(self, title: str, author: str, year: int, is_borrowed: bool = False,
                 id: int | None = None, created_at: str | None = None,
                 updated_at: str | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author = author.strip()
        self.year = int(year)
        self.is_borrowed = bool(is_borrowed)
        self.created_at = created_at
        self.updated_at = updated_at

    @property
    def status(self) -> str:
        return BORROWED if self.is_borrowed else AVAILABLE

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} ({self.year}) - {self.status}"

    def __repr__(self) -> str:
        return f"Book(id={self.id!r}, title={self.title!r}, status={self.status!r})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "year": self.year,
            "is_borrowed": self.is_borrowed,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # SQLite stores the flag as 0/1
        return Book(
            id=data.get("id"),
            title=data["title"],
            author=data["author"],
            year=data["year"],
            is_borrowed=bool(data.get("is_borrowed", False)),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )
