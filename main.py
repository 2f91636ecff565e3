import asyncio
import logging
import subprocess
import sys
import webbrowser
from typing import Optional

import typer
from rich.console import Console
from rich.prompt import Confirm, IntPrompt, Prompt

from book import Book
from config import settings
from library import BookStore
from services.http_client import BooksAPIError, BooksClient, NotFound
from utils.ui_helpers import (
    notify,
    print_book_result,
    print_error_banner,
    print_field_errors,
    print_list_result,
    set_output_mode,
)
from utils.validators import BookForm, ValidationError

APP_NAME = "Books CLI"

console = Console()
logger = logging.getLogger(__name__)

app = typer.Typer(help="Manage the book collection of the remote API")


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every HTTP request"),
):
    """Global CLI options (output mode, logging)."""
    if output:
        set_output_mode(output)
    _configure_logging(verbose)


def _run(coro, failure_message: Optional[str] = None):
    """Run one command's coroutine; remote failures end the command with exit code 1."""
    try:
        return asyncio.run(coro)
    except BooksAPIError as e:
        logger.debug("Command failed: %s", e)
        message = str(e) if isinstance(e, NotFound) or not failure_message else failure_message
        notify("Error", message, error=True)
        raise typer.Exit(code=1)


def _fill_form(form: BookForm, *, ask_all: bool = True):
    """Prompt for each field until the form validates. Returns the draft."""
    while True:
        if ask_all or "title" in form.errors:
            form.set_field("title", Prompt.ask("Title", default=form.values["title"] or None) or "")
        if ask_all or "body" in form.errors:
            form.set_field("body", Prompt.ask("Description", default=form.values["body"] or None) or "")
        if ask_all or "owner_id" in form.errors:
            form.set_field("owner_id", IntPrompt.ask("Author ID", default=form.values["owner_id"]))
        try:
            return form.submit()
        except ValidationError as e:
            print_field_errors(e.errors)
            ask_all = False


def _apply_options(form: BookForm, title: Optional[str], body: Optional[str], owner_id: Optional[int]) -> bool:
    """Copy command-line values into the form. Returns True when every field was given."""
    if title is not None:
        form.set_field("title", title)
    if body is not None:
        form.set_field("body", body)
    if owner_id is not None:
        form.set_field("owner_id", owner_id)
    return None not in (title, body, owner_id)


def _submit_options(form: BookForm, complete: bool, interactive: bool):
    if not complete and interactive:
        return _fill_form(form)
    try:
        return form.submit()
    except ValidationError as e:
        notify("Invalid book", "Please fix the fields below.", error=True)
        print_field_errors(e.errors)
        raise typer.Exit(code=2)


# --- Typer CLI application ---

@app.command("list")
def cli_list():
    """List the books of the collection (first 20, remote order)."""
    async def _list():
        async with BooksClient() as client:
            store = BookStore(client)
            await store.reload()
            return store.snapshot()

    snap = _run(_list())
    if snap.last_error:
        print_error_banner(snap.last_error)
        raise typer.Exit(code=1)
    print_list_result(list(snap.books))


@app.command("show")
def cli_show(book_id: int = typer.Argument(..., help="Book ID")):
    """Show one book with its full description."""
    async def _show():
        async with BooksClient() as client:
            return await BookStore(client).fetch(book_id)

    print_book_result(_run(_show()))


@app.command("add")
def cli_add(
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Book title"),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="Book description"),
    owner_id: Optional[int] = typer.Option(None, "--owner-id", "-u", help="Author ID"),
    interactive: bool = typer.Option(True, "--interactive/--no-interactive", help="Prompt for missing fields"),
):
    """Add a new book. Missing fields are prompted for."""
    form = BookForm()
    draft = _submit_options(form, _apply_options(form, title, body, owner_id), interactive)

    async def _add():
        async with BooksClient() as client:
            return await BookStore(client).add(draft)

    book = _run(_add(), "Failed to add book. Please try again.")
    notify("Success", "Book added successfully!")
    print_book_result(book)


@app.command("edit")
def cli_edit(
    book_id: int = typer.Argument(..., help="Book ID"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="New description"),
    owner_id: Optional[int] = typer.Option(None, "--owner-id", "-u", help="New author ID"),
    interactive: bool = typer.Option(True, "--interactive/--no-interactive", help="Prompt for missing fields"),
):
    """Edit an existing book. Fields not given keep their current value."""
    async def _fetch():
        async with BooksClient() as client:
            return await BookStore(client).fetch(book_id)

    form = BookForm(editing=_run(_fetch()))
    draft = _submit_options(form, _apply_options(form, title, body, owner_id), interactive)

    async def _edit():
        async with BooksClient() as client:
            return await BookStore(client).edit(book_id, draft)

    book = _run(_edit(), "Failed to update book. Please try again.")
    notify("Success", "Book updated successfully!")
    print_book_result(book)


@app.command("delete")
def cli_delete(
    book_id: int = typer.Argument(..., help="Book ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete a book after confirmation."""
    if not yes and not Confirm.ask(f"Delete book #{book_id}? This action cannot be undone."):
        print("Cancelled.")
        return

    async def _delete():
        async with BooksClient() as client:
            await BookStore(client).remove(book_id)

    _run(_delete(), "Failed to delete book. Please try again.")
    notify("Success", "Book deleted successfully!")


# --- Interactive shell ---
# Prompts block on stdin, so the shell runs them on a worker thread

SHELL_ACTIONS = ["list", "refresh", "add", "edit", "delete", "show", "quit"]


async def _shell_add(store: BookStore) -> None:
    draft = await asyncio.to_thread(_fill_form, BookForm())
    try:
        with console.status("[bold green]Saving book..."):
            await store.add(draft)
    except BooksAPIError as e:
        logger.debug("Add failed: %s", e)
        notify("Error", "Failed to add book. Please try again.", error=True)
        return
    notify("Success", "Book added successfully!")


async def _pick_listed(store: BookStore) -> Optional[Book]:
    book_id = await asyncio.to_thread(IntPrompt.ask, "Book ID")
    book = store.find_book(book_id)
    if book is None:
        notify("Error", f"Book {book_id} is not in the list.", error=True)
    return book


async def _shell_edit(store: BookStore) -> None:
    book = await _pick_listed(store)
    if book is None:
        return
    draft = await asyncio.to_thread(_fill_form, BookForm(editing=book))
    try:
        with console.status("[bold green]Saving book..."):
            await store.edit(book.id, draft)
    except BooksAPIError as e:
        logger.debug("Edit failed: %s", e)
        notify("Error", "Failed to update book. Please try again.", error=True)
        return
    notify("Success", "Book updated successfully!")


async def _shell_delete(store: BookStore) -> None:
    book = await _pick_listed(store)
    if book is None:
        return
    question = f"Delete \"{book.title}\"? This action cannot be undone."
    if not await asyncio.to_thread(Confirm.ask, question):
        return
    try:
        with console.status(f"[bold red]Deleting book #{book.id}..."):
            await store.remove(book.id)
    except BooksAPIError as e:
        logger.debug("Delete failed: %s", e)
        notify("Error", "Failed to delete book. Please try again.", error=True)
        return
    notify("Success", "Book deleted successfully!")


async def _shell_refresh(store: BookStore) -> None:
    with console.status("[bold green]Loading books..."):
        ok = await store.reload()
    if not ok:
        notify("Error", "Failed to load books. Please check your connection.", error=True)


async def _shell_loop(store: BookStore) -> None:
    await _shell_refresh(store)
    while True:
        print_error_banner(store.last_error)
        print_list_result(store.books, deleting=store.deleting_ids)
        action = await asyncio.to_thread(Prompt.ask, "Action", choices=SHELL_ACTIONS, default="list")
        if action == "quit":
            return
        if action == "refresh":
            await _shell_refresh(store)
        elif action == "add":
            await _shell_add(store)
        elif action == "edit":
            await _shell_edit(store)
        elif action == "delete":
            await _shell_delete(store)
        elif action == "show":
            book = await _pick_listed(store)
            if book is not None:
                print_book_result(book)


@app.command("shell")
def cli_shell():
    """Interactive session: the list stays in memory between actions."""
    console.print(f"[bold cyan]{settings.app_name}[/] [dim]({settings.collection_url})[/]")

    async def _shell():
        async with BooksClient() as client:
            await _shell_loop(BookStore(client))

    _run(_shell())


@app.command("serve")
def cli_serve(open_browser: bool = typer.Option(True, "--open/--no-open", help="Open the web UI in a browser")):
    """Start the web UI with uvicorn."""
    host = settings.api_host
    port = int(settings.api_port)
    url = f"http://{host}:{port}/"
    print(f"Starting web UI on {url}")
    if open_browser:
        try:
            webbrowser.open(url)
        except webbrowser.Error as e:
            logger.warning("Could not open a browser: %s", e)
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
    ]
    subprocess.run(args)


if __name__ == "__main__":
    app()
