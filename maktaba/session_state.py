"""Per-conversation memory that replaces sending the full chat history.

Only two derived facts travel between turns: the last book the assistant
mentioned (so "the second part" or "I want it" can be resolved) and the
shelves the user has shown interest in.
"""

from dataclasses import dataclass, field

from maktaba.logging_config import get_logger

log = get_logger(__name__)

MAX_PREFERRED_TOPICS = 5


@dataclass
class SessionState:
    last_entity_id: str | None = None
    last_entity_title: str | None = None
    preferred_topics: list[str] = field(default_factory=list)

    @property
    def has_entity(self) -> bool:
        return bool(self.last_entity_id and self.last_entity_title)

    def remember_entity(self, book_id: str, title: str) -> None:
        """Last writer wins; the previous entity is dropped."""
        self.last_entity_id = book_id
        self.last_entity_title = title
        log.debug("Session entity -> %s (%s)", book_id, title)

    def add_preferred_topic(self, topic: str) -> None:
        topic = topic.strip()
        if not topic or topic in self.preferred_topics:
            return
        self.preferred_topics.append(topic)
        # Oldest interest goes first
        if len(self.preferred_topics) > MAX_PREFERRED_TOPICS:
            del self.preferred_topics[0]

    def reset(self) -> None:
        self.last_entity_id = None
        self.last_entity_title = None
        self.preferred_topics.clear()
