#!/usr/bin/env python3
"""maktaba - library catalog assistant CLI."""

import argparse
import sys

from maktaba import __version__
from maktaba.commands import chat, find, status, voice, watchlist


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="maktaba",
        description="Library catalog assistant over the Gemini API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  maktaba chat                 Interactive text chat
  maktaba chat -m "A05"        Send a single message
  maktaba voice                Live voice conversation (Ctrl+C to stop)
  maktaba find "ابن خلدون"     Look a book up in the local catalog
  maktaba watchlist            Show saved books
  maktaba status               Check configuration, keys and audio
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to a YAML config file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    chat_parser = subparsers.add_parser("chat", help="Chat with the librarian")
    chat_parser.add_argument("-m", "--message", help="Send a single message")
    chat_parser.set_defaults(func=chat.run)

    voice_parser = subparsers.add_parser("voice", help="Start a live voice session")
    voice_parser.set_defaults(func=voice.run)

    find_parser = subparsers.add_parser("find", help="Search the local catalog by id or title")
    find_parser.add_argument("query", help="Book id (e.g. A01) or title words")
    find_parser.add_argument("-n", "--limit", type=int, default=5, help="Maximum results")
    find_parser.set_defaults(func=find.run)

    wl_parser = subparsers.add_parser("watchlist", help="Manage saved books")
    wl_sub = wl_parser.add_subparsers(dest="watchlist_command", help="Watchlist subcommands")
    wl_list = wl_sub.add_parser("list", help="List saved books")
    wl_list.set_defaults(func=watchlist.list_entries)
    wl_add = wl_sub.add_parser("add", help="Save a book by id")
    wl_add.add_argument("book_id")
    wl_add.set_defaults(func=watchlist.add_entry)
    wl_remove = wl_sub.add_parser("remove", help="Remove a saved book")
    wl_remove.add_argument("book_id")
    wl_remove.set_defaults(func=watchlist.remove_entry)
    wl_clear = wl_sub.add_parser("clear", help="Remove all saved books")
    wl_clear.set_defaults(func=watchlist.clear_entries)
    wl_parser.set_defaults(func=watchlist.list_entries)

    status_parser = subparsers.add_parser("status", help="Show configuration status")
    status_parser.set_defaults(func=status.run)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\n\n👋 مع السلامة!")
        sys.exit(0)
    except Exception as e:
        print(f"\n❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
