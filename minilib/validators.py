import re
from typing import Optional

_INTEGER = re.compile(r"-?\d+")


def _to_int(text: str) -> Optional[int]:
    if not _INTEGER.fullmatch(text):
        return None
    try:
        return int(text)
    except ValueError:
        # More digits than the interpreter will convert
        return None


class TextValidator:
    """Checks for the free-text fields of a book."""

    @staticmethod
    def clean(text: Optional[str]) -> str:
        if text is None:
            return ""
        return text.strip()

    @staticmethod
    def validate_title(title: Optional[str]) -> bool:
        return bool(TextValidator.clean(title))

    @staticmethod
    def validate_author(author: Optional[str]) -> bool:
        return bool(TextValidator.clean(author))


class YearValidator:
    """Publication year parsing and range checks."""

    @staticmethod
    def parse(raw) -> Optional[int]:
        """Return the year as an int, or None when it is not a whole number."""
        if isinstance(raw, bool):
            return None
        if isinstance(raw, int):
            return raw
        text = TextValidator.clean(raw if isinstance(raw, str) else None)
        return _to_int(text)

    @staticmethod
    def validate_year(year: Optional[int], min_year: int, max_year: int) -> bool:
        if year is None:
            return False
        return min_year <= year <= max_year


def parse_selector(raw: Optional[str]) -> Optional[int]:
    """Parse a 1-based list position typed by the user.

    Returns None for anything that is not an integer. Range checks are left to
    the store, which knows the listing the position refers to.
    """
    text = TextValidator.clean(raw)
    return _to_int(text)
