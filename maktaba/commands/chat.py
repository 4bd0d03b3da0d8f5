"""Chat command - text chat with the librarian."""

from rich.console import Console

from maktaba.commands import load_runtime, open_watchlist
from maktaba.conversation import ChatMessage, Conversation
from maktaba.credentials import CredentialPool
from maktaba.gemini_client import GeminiTextClient

console = Console()


def _print_reply(conversation: Conversation, msg: ChatMessage) -> None:
    style = "red" if msg.is_error else "cyan"
    console.print(f"[{style}]📚 {msg.text}[/{style}]")
    offers = conversation.bookmark_offers(msg)
    if offers:
        ids = ", ".join(b.id for b in offers)
        console.print(f"[dim]   Save with /save ID: {ids}[/dim]")


def _handle_save(conversation: Conversation, arg: str) -> None:
    book = conversation.catalog.get(arg)
    if not book:
        console.print(f"[yellow]Unknown book id: {arg}[/yellow]")
        return
    conversation.bookmark(book)
    console.print(f"[green]🔖 Saved {book.id} - {book.title}[/green]")


def run(args):
    """Run the chat command."""
    config, catalog = load_runtime(args)
    pool = CredentialPool.from_config(config)
    if pool.is_empty:
        console.print("[yellow]⚠️  No API keys configured (GOOGLE_KEY_1 .. GOOGLE_KEY_4)[/yellow]")

    with GeminiTextClient.from_config(config, pool, catalog) as client:
        conversation = Conversation(client, catalog, watchlist=open_watchlist(config))
        welcome = conversation.start()

        if args.message:
            console.print(f"🎙️  You: {args.message}")
            reply = conversation.send(args.message)
            if reply:
                _print_reply(conversation, reply)
            return

        console.print(f"[bold]{catalog.bot_name}[/bold]")
        console.print("[dim]   /new starts a new chat, /save ID bookmarks a book, exit quits[/dim]\n")
        _print_reply(conversation, welcome)

        while True:
            try:
                user_input = console.input("[bold]You:[/bold] ").strip()
            except (KeyboardInterrupt, EOFError):
                console.print("\n\n👋 مع السلامة!")
                break

            if not user_input:
                continue
            if user_input.lower() in ("exit", "quit", "bye"):
                console.print("\n👋 مع السلامة!")
                break
            if user_input == "/new":
                _print_reply(conversation, conversation.start())
                continue
            if user_input.startswith("/save"):
                _handle_save(conversation, user_input[len("/save"):].strip())
                continue

            with console.status("..."):
                reply = conversation.send(user_input)
            _print_reply(conversation, reply)
            console.print()
