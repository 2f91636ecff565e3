import os
import json
from typing import Any, Dict, Iterable, List, Optional
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markup import escape

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "BOOKS_CLI_OUTPUT"

BODY_PREVIEW_LENGTH = 60

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def _preview(text: str, limit: int = BODY_PREVIEW_LENGTH) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 3] + "..."

def print_list_result(books: List[Any], deleting: Iterable[int] = ()) -> None:
    """Print the book list in the current output mode.
    - plain: '#ID Title (author N)' lines, or 'No books found.'
    - json: JSON array of id, title, body, userId
    - rich: Rich table, rows being deleted are dimmed
    """
    mode = get_output_mode()
    busy = set(deleting)

    if not books:
        print("No books found.")
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True, justify="right")
        table.add_column("Title", style="white")
        table.add_column("Description", style="white")
        table.add_column("Author ID", style="cyan", justify="right")
        for b in books:
            style = "dim" if b.id in busy else None
            table.add_row(str(b.id), escape(b.title), escape(_preview(b.body)), str(b.owner_id), style=style)
        _console.print(table)
    else:
        for b in books:
            suffix = " [deleting...]" if b.id in busy else ""
            print(f"#{b.id} {b.title} (author {b.owner_id}){suffix}")

def print_book_result(book: Any) -> None:
    """Print a single book with its full description."""
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(book.to_dict(), ensure_ascii=False))
    elif mode == "rich":
        content = f"[bold]{escape(book.title)}[/]\n\n{escape(book.body)}\n\n[dim]Author ID: {book.owner_id}[/]"
        _console.print(Panel.fit(content, title=f"📖 Book #{book.id}", border_style="blue"))
    else:
        print(f"ID: {book.id}")
        print(f"Title: {book.title}")
        print(f"Description: {book.body}")
        print(f"Author ID: {book.owner_id}")

def notify(title: str, description: str, *, error: bool = False) -> None:
    """Transient notification for the outcome of an operation."""
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps({"title": title, "description": description, "error": error}, ensure_ascii=False))
    elif mode == "rich":
        style = "red" if error else "green"
        _console.print(f"[bold {style}]{escape(title)}:[/] {escape(description)}")
    else:
        print(f"{title}: {description}")

def print_error_banner(message: Optional[str]) -> None:
    """Persistent banner shown while the last reload failed."""
    if not message:
        return
    if get_output_mode() == "rich":
        _console.print(Panel.fit(f"[red]{escape(message)}[/]\n[dim]Choose 'refresh' to try again.[/]",
                                 border_style="red"))
    else:
        print(f"Error: {message}")

def print_field_errors(errors: Dict[str, str]) -> None:
    """Show validation messages next to their field names."""
    if get_output_mode() == "json":
        print(json.dumps({"errors": errors}, ensure_ascii=False))
        return
    for field, message in errors.items():
        if get_output_mode() == "rich":
            _console.print(f"  [red]✗ {field}[/]: {escape(message)}")
        else:
            print(f"  {field}: {message}")
