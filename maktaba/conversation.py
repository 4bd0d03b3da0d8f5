"""Conversation controller: transcript, session state and bookmarks."""

from __future__ import annotations

import random
import uuid
from dataclasses import dataclass, field

from maktaba.catalog import Book, Catalog
from maktaba.entities import extract_book_entity, extract_books
from maktaba.errors import MaktabaError
from maktaba.gemini_client import GeminiTextClient
from maktaba.logging_config import get_logger
from maktaba.session_state import SessionState
from maktaba.watchlist import BookmarkEntry, WatchlistStore

log = get_logger(__name__)


@dataclass
class ChatMessage:
    text: str
    sender: str  # "user" or "bot"
    is_error: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class Conversation:
    """One chat. Owns the only live :class:`SessionState`."""

    def __init__(
        self,
        client: GeminiTextClient,
        catalog: Catalog,
        watchlist: WatchlistStore | None = None,
        rng=random,
    ):
        self.client = client
        self.catalog = catalog
        self.watchlist = watchlist
        self.rng = rng
        self.session = SessionState()
        self.messages: list[ChatMessage] = []

    def start(self) -> ChatMessage:
        """New chat: forget the session and greet."""
        self.session.reset()
        welcome = ChatMessage(text=self.catalog.random_welcome(self.rng), sender="bot")
        self.messages = [welcome]
        return welcome

    def send(self, text: str) -> ChatMessage | None:
        """Send user text, append and return the bot (or error) message."""
        text = text.strip()
        if not text:
            return None

        self.messages.append(ChatMessage(text=text, sender="user"))
        try:
            reply = self.client.send(text, self.session)
        except MaktabaError as e:
            log.error("Request failed: %s", e)
            msg = ChatMessage(text=e.message or self.catalog.templates.error, sender="bot", is_error=True)
            self.messages.append(msg)
            return msg

        msg = ChatMessage(text=reply, sender="bot")
        self.messages.append(msg)

        book = extract_book_entity(reply, self.catalog)
        if book:
            self.session.remember_entity(book.id, book.title)
        return msg

    def bookmark_offers(self, message: ChatMessage) -> list[Book]:
        if message.sender != "bot" or message.is_error:
            return []
        return extract_books(message.text, self.catalog)

    def bookmark(self, book: Book) -> list[BookmarkEntry]:
        if self.watchlist is None:
            raise RuntimeError("No watchlist configured")
        self.session.add_preferred_topic(book.list)
        return self.watchlist.add(BookmarkEntry(book_id=book.id, title=book.title, list=book.list))
