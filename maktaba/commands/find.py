"""Find command - offline catalog lookup, no API call."""

from rich.console import Console

from maktaba.commands import load_runtime

console = Console()


def run(args):
    _, catalog = load_runtime(args)
    books = catalog.search(args.query, limit=args.limit)
    if not books:
        console.print(catalog.templates.not_found or "Not found.")
        return
    template = catalog.templates.found or "{id} | {title} | {list}"
    for book in books:
        console.print(template.format(id=book.id, title=book.title, list=book.list), markup=False)
