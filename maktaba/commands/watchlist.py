"""Watchlist commands - list, add, remove and clear saved books."""

from datetime import datetime

from rich.console import Console
from rich.table import Table

from maktaba.commands import load_runtime, open_watchlist
from maktaba.watchlist import BookmarkEntry

console = Console()


def _print_entries(entries: list[BookmarkEntry]) -> None:
    if not entries:
        console.print("[dim]No saved books.[/dim]")
        return
    table = Table(title="🔖 Watchlist")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Shelf")
    table.add_column("Saved", style="dim")
    for e in entries:
        saved = datetime.fromtimestamp(e.saved_at).strftime("%Y-%m-%d %H:%M")
        table.add_row(e.book_id, e.title, e.list, saved)
    console.print(table)


def list_entries(args):
    config, _ = load_runtime(args)
    _print_entries(open_watchlist(config).get())


def add_entry(args):
    config, catalog = load_runtime(args)
    book = catalog.get(args.book_id)
    if not book:
        console.print(f"[yellow]Unknown book id: {args.book_id}[/yellow]")
        return
    entries = open_watchlist(config).add(BookmarkEntry(book_id=book.id, title=book.title, list=book.list))
    _print_entries(entries)


def remove_entry(args):
    config, _ = load_runtime(args)
    _print_entries(open_watchlist(config).remove(args.book_id.upper()))


def clear_entries(args):
    config, _ = load_runtime(args)
    open_watchlist(config).clear()
    console.print("🧹 Watchlist cleared")
