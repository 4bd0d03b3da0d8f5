"""Ordered pool of API keys with a round-robin cursor."""

import random
import threading
from typing import Iterable

from maktaba.errors import NoCredentials
from maktaba.logging_config import get_logger

log = get_logger(__name__)


def mask(credential: str) -> str:
    """Return a log-safe form of a key: only the last four characters."""
    return f"...{credential[-4:]}" if credential else "<empty>"


class CredentialPool:
    """API keys in a fixed order plus a shared rotation cursor.

    The cursor is the only mutable state. It is shared by every request made
    through the same pool; ``advance()`` is atomic but two requests in flight
    at once will interleave their rotations.
    """

    def __init__(self, credentials: Iterable[str], start: int = 0):
        self._credentials = [c.strip() for c in credentials if c and c.strip()]
        self._cursor = start % len(self._credentials) if self._credentials else 0
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: dict) -> "CredentialPool":
        keys = config.get("gemini", {}).get("api_keys") or []
        pool = cls(keys)
        log.info("Credential pool loaded with %d key(s)", len(pool))
        return pool

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def is_empty(self) -> bool:
        return not self._credentials

    @property
    def cursor(self) -> int:
        return self._cursor

    def current(self) -> str:
        """Credential under the cursor."""
        if not self._credentials:
            raise NoCredentials("credential pool is empty")
        with self._lock:
            return self._credentials[self._cursor]

    def advance(self) -> str:
        """Move the cursor to the next credential and return it."""
        if not self._credentials:
            raise NoCredentials("credential pool is empty")
        with self._lock:
            self._cursor = (self._cursor + 1) % len(self._credentials)
            return self._credentials[self._cursor]

    def random_start(self, rng=random) -> int:
        if not self._credentials:
            return 0
        return rng.randrange(len(self._credentials))

    def rotation(self, start: int | None = None) -> list[str]:
        """All credentials in round-robin order beginning at ``start``.

        Defaults to the cursor. The shared cursor is not moved.
        """
        n = len(self._credentials)
        if n == 0:
            return []
        first = self._cursor if start is None else start % n
        return [self._credentials[(first + i) % n] for i in range(n)]

    def masked(self) -> list[str]:
        return [mask(c) for c in self._credentials]
