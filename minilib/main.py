import csv
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from minilib.config import settings
from minilib.library import Library, LibraryError, StorageError, ValidationError, open_library
from minilib.ui_helpers import (
    print_book_result,
    print_error,
    print_info,
    print_list_result,
    print_stats_result,
    resolve_output_mode,
)
from minilib.validators import parse_selector

APP_NAME = settings.app_name

console = Console()
logger = logging.getLogger(__name__)


def configure_logging() -> None:
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


class MenuController:
    """Interactive menu loop over a catalog store.

    Holds only the store it was given; each pass reads one choice, runs at most
    one operation and redisplays the menu.
    """

    MENU_ITEMS = [
        ("1", "Add Book", "➕"),
        ("2", "List Books", "📚"),
        ("3", "Borrow Book", "📤"),
        ("4", "Return Book", "📥"),
        ("5", "Exit", "🚪"),
    ]
    EXIT_CHOICE = "5"

    def __init__(self, library: Library, console: Console, output_mode: str = "rich") -> None:
        self.library = library
        self.console = console
        self.output_mode = output_mode
        self.actions: Dict[str, Callable[[], None]] = {
            "1": self.add_book,
            "2": self.list_books,
            "3": self.borrow_book,
            "4": self.return_book,
        }

    def render_menu(self) -> None:
        table = Table.grid(padding=(0, 2))
        table.add_column(justify="right", style="bold cyan", width=4)
        table.add_column(justify="left", style="white")
        for key, label, icon in self.MENU_ITEMS:
            table.add_row(f"[reverse]{key}[/]", f"{icon} {label}")

        self.console.print(Panel(
            table,
            title=f"Welcome to the {APP_NAME}",
            subtitle="Please select an option",
            border_style="cyan",
            box=box.HEAVY,
            padding=(1, 2),
        ))

    def read_line(self, prompt: str) -> str:
        # Whole-line reads so multi-word titles and authors survive
        return self.console.input(f"[bold]{prompt}[/]: ").strip()

    def run(self) -> None:
        while True:
            self.render_menu()
            try:
                choice = self.read_line("Your choice")
                if choice == self.EXIT_CHOICE:
                    break
                action = self.actions.get(choice)
                if action is None:
                    print_error(f"Invalid option '{choice}'. Please choose 1-5.", self.output_mode, self.console)
                    continue
                try:
                    action()
                except LibraryError as e:
                    logger.debug("Operation failed: %s", e)
                    print_error(str(e), self.output_mode, self.console)
            except (EOFError, KeyboardInterrupt):
                break
            finally:
                self.console.print()  # blank line between operations
        self.console.print(f"[green]Goodbye! Thanks for using the {escape(APP_NAME)}.[/]")

    # ------------------------- Menu operations ------------------------- #
    def add_book(self) -> None:
        title = self.read_line("Title")
        author = self.read_line("Author")
        year = self.read_line("Publication year")
        book = self.library.add_book(title, author, year)
        print_book_result("Added", book, self.output_mode, self.console)

    def list_books(self) -> None:
        books = self.library.list_books()
        stats = self.library.get_statistics()
        print_list_result(books, self.output_mode, self.console, stats=stats)

    def borrow_book(self) -> None:
        listing = self.library.find_available()
        if not listing:
            print_info("No books are available to borrow.", self.output_mode, self.console)
            return
        print_list_result(listing, self.output_mode, self.console, title="Available books")
        book = self.library.borrow_book(self._read_selector(), listing)
        print_book_result("Borrowed", book, self.output_mode, self.console)

    def return_book(self) -> None:
        listing = self.library.find_borrowed()
        if not listing:
            print_info("No books are currently borrowed.", self.output_mode, self.console)
            return
        print_list_result(listing, self.output_mode, self.console, title="Borrowed books")
        book = self.library.return_book(self._read_selector(), listing)
        print_book_result("Returned", book, self.output_mode, self.console)

    def _read_selector(self) -> int:
        raw = self.read_line("Book number")
        selector = parse_selector(raw)
        if selector is None:
            raise ValidationError(f"'{raw}' is not a number.")
        return selector


# --- Typer CLI application ---
app = typer.Typer(help="Mini Library Manager", add_completion=False)


@dataclass
class CliState:
    library: Library
    output: Optional[str] = None

    def mode(self, default: str) -> str:
        return resolve_output_mode(self.output or settings.output_mode, default)


class StatusFilter(str, Enum):
    all = "all"
    available = "available"
    borrowed = "borrowed"


def _run_menu(state: CliState) -> None:
    MenuController(state.library, console, state.mode("rich")).run()


@app.callback(invoke_without_command=True)
def _global_options(
    ctx: typer.Context,
    db_file: Optional[str] = typer.Option(None, "--db-file", help="SQLite catalog file (default: LIBRARY_DB_FILE or library.db)"),
    memory: bool = typer.Option(False, "--memory", help="Keep the catalog in memory for this session only"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output format: plain | json | rich"),
):
    """Personal library catalog. Without a command the interactive menu starts."""
    configure_logging()
    try:
        # An explicit --db-file wins over LIBRARY_STORAGE=memory
        if memory:
            use_memory: Optional[bool] = True
        elif db_file:
            use_memory = False
        else:
            use_memory = None
        library = open_library(db_file=db_file, memory=use_memory)
    except StorageError as e:
        # Schema setup failed: nothing can work, abort before the menu
        console.print(f"[bold red]Could not start the library:[/] {escape(str(e))}")
        raise typer.Exit(code=1)
    ctx.obj = CliState(library=library, output=output)
    if ctx.invoked_subcommand is None:
        _run_menu(ctx.obj)


@app.command("menu")
def cli_menu(ctx: typer.Context):
    """Start the interactive menu."""
    _run_menu(ctx.obj)


@app.command("list")
def cli_list(
    ctx: typer.Context,
    status: StatusFilter = typer.Option(StatusFilter.all, "--status", "-s", help="Which books to show"),
):
    """List books with their status. Numbers match borrow/return positions."""
    state: CliState = ctx.obj
    mode = state.mode("plain")
    lib = state.library
    try:
        if status == StatusFilter.available:
            books = lib.find_available()
        elif status == StatusFilter.borrowed:
            books = lib.find_borrowed()
        else:
            books = lib.list_books()
        print_list_result(books, mode, console, stats=lib.get_statistics())
    except LibraryError as e:
        print_error(str(e), mode, console)
        raise typer.Exit(code=1)


@app.command("add")
def cli_add(ctx: typer.Context, title: str, author: str, year: str):
    """Add a book."""
    state: CliState = ctx.obj
    mode = state.mode("plain")
    try:
        book = state.library.add_book(title, author, year)
    except LibraryError as e:
        print_error(str(e), mode, console)
        raise typer.Exit(code=1)
    print_book_result("Added", book, mode, console)


@app.command("borrow")
def cli_borrow(ctx: typer.Context, position: int = typer.Argument(..., help="Position in 'list --status available'")):
    """Borrow the book at POSITION of the available list."""
    state: CliState = ctx.obj
    mode = state.mode("plain")
    lib = state.library
    try:
        listing = lib.find_available()
        if not listing:
            print_info("No books are available to borrow.", mode, console)
            return
        book = lib.borrow_book(position, listing)
    except LibraryError as e:
        print_error(str(e), mode, console)
        raise typer.Exit(code=1)
    print_book_result("Borrowed", book, mode, console)


@app.command("return")
def cli_return(ctx: typer.Context, position: int = typer.Argument(..., help="Position in 'list --status borrowed'")):
    """Return the book at POSITION of the borrowed list."""
    state: CliState = ctx.obj
    mode = state.mode("plain")
    lib = state.library
    try:
        listing = lib.find_borrowed()
        if not listing:
            print_info("No books are currently borrowed.", mode, console)
            return
        book = lib.return_book(position, listing)
    except LibraryError as e:
        print_error(str(e), mode, console)
        raise typer.Exit(code=1)
    print_book_result("Returned", book, mode, console)


@app.command("stats")
def cli_stats(ctx: typer.Context):
    """Show catalog statistics."""
    state: CliState = ctx.obj
    mode = state.mode("plain")
    try:
        stats = state.library.get_statistics()
    except LibraryError as e:
        print_error(str(e), mode, console)
        raise typer.Exit(code=1)
    print_stats_result(stats, mode, console)


@app.command("export")
def cli_export(
    ctx: typer.Context,
    format: str = typer.Option("csv", "--format", "-f", help="csv or json"),
    output_file: str = typer.Option("library_export", "--output-file", help="File name without extension"),
):
    """Export the catalog to a file (csv, json)."""
    state: CliState = ctx.obj
    try:
        books = state.library.list_books()
    except LibraryError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    if not books:
        print("No books to export.")
        return

    fmt = format.lower()
    if fmt == "csv":
        filename = f"{output_file}.csv"
        with open(filename, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow(["id", "title", "author", "year", "status", "created_at", "updated_at"])
            for book in books:
                writer.writerow([book.id, book.title, book.author, book.year, book.status,
                                 book.created_at, book.updated_at])
    elif fmt == "json":
        filename = f"{output_file}.json"
        with open(filename, "w", encoding="utf-8") as jsonfile:
            json.dump([book.to_dict() for book in books], jsonfile, indent=2, ensure_ascii=False)
    else:
        print(f"Unsupported format: {format}. Use csv or json.")
        raise typer.Exit(code=1)
    print(f"Exported {len(books)} books to {filename}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
