"""Persistent watchlist of bookmarked books (SQLite via SQLAlchemy)."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field

from sqlalchemy import Column, Float, Integer, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from maktaba.logging_config import get_logger

log = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class Bookmark(Base):
    __tablename__ = "bookmarks"
    id = Column(Integer, primary_key=True)
    book_id = Column(String, unique=True, nullable=False)
    title = Column(String, nullable=False)
    shelf = Column(String, default="")
    saved_at = Column(Float, nullable=False)  # unix seconds


@dataclass
class BookmarkEntry:
    book_id: str
    title: str
    list: str
    saved_at: float = field(default_factory=time.time)


class WatchlistStore:
    """Bookmarks, newest first, unique by book id."""

    def __init__(self, db_path: str):
        db_path = os.path.expanduser(db_path)
        db_dir = os.path.dirname(db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        self.engine = create_engine(f"sqlite:///{db_path}", echo=False)
        self._Session = sessionmaker(bind=self.engine)

    def init_db(self):
        """Create the table if it doesn't exist."""
        Base.metadata.create_all(self.engine)

    def _session(self) -> Session:
        return self._Session()

    def get(self) -> list[BookmarkEntry]:
        with self._session() as s:
            rows = s.query(Bookmark).order_by(Bookmark.saved_at.desc(), Bookmark.id.desc()).all()
            return [
                BookmarkEntry(book_id=r.book_id, title=r.title, list=r.shelf, saved_at=r.saved_at)
                for r in rows
            ]

    def add(self, entry: BookmarkEntry) -> list[BookmarkEntry]:
        """Save a bookmark. Does nothing if the book is already on the list."""
        with self._session() as s:
            if s.query(Bookmark).filter_by(book_id=entry.book_id).first():
                log.debug("Bookmark %s already saved", entry.book_id)
            else:
                s.add(Bookmark(
                    book_id=entry.book_id,
                    title=entry.title,
                    shelf=entry.list,
                    saved_at=entry.saved_at,
                ))
                s.commit()
                log.info("Bookmarked %s (%s)", entry.book_id, entry.title)
        return self.get()

    def remove(self, book_id: str) -> list[BookmarkEntry]:
        with self._session() as s:
            deleted = s.query(Bookmark).filter_by(book_id=book_id).delete()
            s.commit()
        if deleted:
            log.info("Removed bookmark %s", book_id)
        return self.get()

    def clear(self) -> None:
        with self._session() as s:
            s.query(Bookmark).delete()
            s.commit()
        log.info("Watchlist cleared")
