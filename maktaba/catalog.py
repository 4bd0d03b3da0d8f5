"""Static book catalog and bot persona, loaded once at startup."""

from __future__ import annotations

import json
import os
import random
from dataclasses import dataclass, field

from maktaba.logging_config import get_logger

log = get_logger(__name__)

_DEFAULT_DATA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "library.json")


@dataclass(frozen=True)
class Book:
    id: str
    title: str
    list: str  # shelf
    lang: str | None = None

    def to_dict(self) -> dict:
        data = {"id": self.id, "title": self.title, "list": self.list}
        if self.lang:
            data["lang"] = self.lang
        return data


@dataclass(frozen=True)
class BotBehavior:
    tone: str
    focus: str
    style: str
    persona: str


@dataclass(frozen=True)
class ResponseTemplates:
    not_found: str = ""
    found: str = ""
    multiple_found: str = ""
    general_help: str = ""
    closing: tuple[str, ...] = ()
    error: str = ""


@dataclass
class Catalog:
    """Read-only list of books plus the strings the prompts are built from."""

    bot_name: str
    behavior: BotBehavior
    books: list[Book] = field(default_factory=list)
    welcome_messages: list[str] = field(default_factory=list)
    templates: ResponseTemplates = field(default_factory=ResponseTemplates)

    def __post_init__(self):
        self._by_id = {b.id.upper(): b for b in self.books}

    @classmethod
    def load(cls, path: str | None = None) -> "Catalog":
        """Load the catalog from a JSON file (packaged sample by default)."""
        path = os.path.expanduser(path or _DEFAULT_DATA_PATH)
        if not os.path.exists(path):
            raise FileNotFoundError(f"Catalog file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        templates = data.get("responseTemplates", {})
        catalog = cls(
            bot_name=data.get("botName", ""),
            behavior=BotBehavior(**data["botBehavior"]),
            books=[Book(**b) for b in data.get("books", [])],
            welcome_messages=list(data.get("welcomeMessages", [])),
            templates=ResponseTemplates(
                not_found=templates.get("notFound", ""),
                found=templates.get("found", ""),
                multiple_found=templates.get("multipleFound", ""),
                general_help=templates.get("generalHelp", ""),
                closing=tuple(templates.get("closing", [])),
                error=templates.get("error", ""),
            ),
        )
        log.info("Loaded catalog '%s' with %d books from %s", catalog.bot_name, len(catalog), path)
        return catalog

    def __len__(self) -> int:
        return len(self.books)

    def __contains__(self, book_id: str) -> bool:
        return book_id.upper() in self._by_id

    def get(self, book_id: str) -> Book | None:
        return self._by_id.get(book_id.strip().upper())

    def search(self, query: str, limit: int = 5) -> list[Book]:
        """Exact id match, otherwise books whose title contains every query word."""
        book = self.get(query)
        if book:
            return [book]
        terms = query.lower().split()
        if not terms:
            return []
        hits = [b for b in self.books if all(t in b.title.lower() for t in terms)]
        return hits[:limit]

    def books_json(self) -> str:
        return json.dumps([b.to_dict() for b in self.books], ensure_ascii=False, indent=2)

    def random_welcome(self, rng=random) -> str:
        if not self.welcome_messages:
            return self.templates.general_help
        return rng.choice(self.welcome_messages)
