import json
from typing import Any, Dict, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from minilib.book import Book

# Allowed values: 'plain', 'json', 'rich'
OUTPUT_MODES = ("plain", "json", "rich")

EMPTY_CATALOG_MESSAGE = "No books in library."


def resolve_output_mode(mode: Optional[str], default: str = "plain") -> str:
    """Normalize an output mode; unknown values fall back to the default."""
    mode = (mode or "").lower().strip()
    return mode if mode in OUTPUT_MODES else default


def format_book_line(position: int, book: Book) -> str:
    return f"{position}. {book.title} by {book.author} ({book.year}) - {book.status}"


def format_counts(stats: Dict[str, Any]) -> str:
    return (
        f"Available: {stats.get('available', 0)} | "
        f"Borrowed: {stats.get('borrowed', 0)} | "
        f"Total: {stats.get('total_books', 0)}"
    )


def print_list_result(books: Sequence[Book], mode: str, console: Console,
                      title: str = "Catalog", stats: Optional[Dict[str, Any]] = None,
                      empty_message: str = EMPTY_CATALOG_MESSAGE) -> None:
    """Print a numbered book list in the current output mode.

    The numbers printed are the selectors accepted by borrow/return for the
    same listing.
    - plain: '1. Title by Author (Year) - status' lines plus a counts line
    - json: object with 'books' and, when given, 'counts'
    - rich: Rich table
    """
    if mode == "json":
        payload: Dict[str, Any] = {
            "books": [dict(book.to_dict(), position=i) for i, book in enumerate(books, 1)]
        }
        if stats is not None:
            payload["counts"] = stats
        print(json.dumps(payload, ensure_ascii=False))
        return

    if not books:
        if mode == "rich":
            console.print(f"[yellow]{escape(empty_message)}[/]")
        else:
            print(empty_message)
        return

    if mode == "rich":
        table = Table(title=f"📚 {title}", show_lines=True, header_style="bold cyan")
        table.add_column("#", style="bold", justify="right", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Year", style="magenta", no_wrap=True)
        table.add_column("Status", no_wrap=True)
        for i, book in enumerate(books, 1):
            status_style = "red" if book.is_borrowed else "green"
            table.add_row(
                str(i), escape(book.title), escape(book.author), str(book.year),
                f"[{status_style}]{book.status}[/]",
            )
        console.print(table)
        if stats is not None:
            console.print(f"[dim]{format_counts(stats)}[/]")
    else:
        for i, book in enumerate(books, 1):
            print(format_book_line(i, book))
        if stats is not None:
            print(format_counts(stats))


def print_stats_result(stats: Dict[str, Any], mode: str, console: Console) -> None:
    """Print catalog statistics in the current output mode."""
    total = stats.get("total_books", 0)
    available = stats.get("available", 0)
    borrowed = stats.get("borrowed", 0)

    if mode == "json":
        print(json.dumps({"total_books": total, "available": available, "borrowed": borrowed}))
    elif mode == "rich":
        content = (
            f"[bold]Total Books:[/] {total}\n"
            f"[bold]Available:[/] {available}\n"
            f"[bold]Borrowed:[/] {borrowed}"
        )
        console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        print(f"Total Books: {total}")
        print(f"Available: {available}")
        print(f"Borrowed: {borrowed}")


def print_book_result(message: str, book: Book, mode: str, console: Console) -> None:
    """Report a successful add/borrow/return."""
    if mode == "json":
        print(json.dumps(dict(book.to_dict(), message=message), ensure_ascii=False))
    elif mode == "rich":
        console.print(Panel.fit(
            f"[green]{escape(message)}:[/] [bold]{escape(book.title)}[/] - {escape(book.author)} "
            f"({book.year}) [dim]#{book.id}, {book.status}[/]",
            title="✅ Success",
            border_style="green",
        ))
    else:
        print(f"{message}: {book.title} by {book.author} ({book.year}) - {book.status}")


def print_info(message: str, mode: str, console: Console) -> None:
    if mode == "json":
        print(json.dumps({"message": message}, ensure_ascii=False))
    elif mode == "rich":
        console.print(f"[yellow]{escape(message)}[/]")
    else:
        print(message)


def print_error(message: str, mode: str, console: Console) -> None:
    if mode == "json":
        print(json.dumps({"error": message}, ensure_ascii=False))
    elif mode == "rich":
        console.print(f"[bold red]Error:[/] {escape(message)}")
    else:
        print(f"Error: {message}")
