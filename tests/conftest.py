"""Shared test fixtures."""

import os
import sys
import tempfile

# Ensure project root is on sys.path so 'maktaba' is importable without install
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pytest

from maktaba.audio import AudioCapture, AudioPlayback
from maktaba.catalog import Book, BotBehavior, Catalog, ResponseTemplates
from maktaba.live_session import LiveConnection
from maktaba.watchlist import WatchlistStore


@pytest.fixture
def catalog():
    """Small in-memory catalog."""
    return Catalog(
        bot_name="Test Librarian",
        behavior=BotBehavior(tone="friendly", focus="find books", style="short Arabic", persona="a librarian"),
        books=[
            Book("A01", "مقدمة ابن خلدون", "التاريخ"),
            Book("A05", "تاريخ الطبري", "التاريخ"),
            Book("B12", "الأيام", "الأدب"),
            Book("C120", "كتاب المناظر", "العلوم"),
        ],
        welcome_messages=["hello", "welcome"],
        templates=ResponseTemplates(not_found="not here", error="generic error"),
    )


@pytest.fixture
def tmp_watchlist():
    """Provide a temporary WatchlistStore, cleaned up after test."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    store = WatchlistStore(path)
    store.init_db()
    yield store
    store.engine.dispose()
    os.unlink(path)


# ---------------------------------------------------------------------------
# Audio / live fakes
# ---------------------------------------------------------------------------

class FakeCapture(AudioCapture):
    def __init__(self, sample_rate=16000, calls=None):
        self.sample_rate = sample_rate
        self.calls = calls if calls is not None else []
        self.on_frame = None

    def open(self):
        self.calls.append("capture.open")

    def start(self, on_frame):
        self.calls.append("capture.start")
        self.on_frame = on_frame

    def stop(self):
        self.calls.append("capture.stop")
        self.on_frame = None

    def close(self):
        self.calls.append("capture.close")

    def emit(self, samples):
        if self.on_frame:
            self.on_frame(np.asarray(samples, dtype=np.float32))


class FakePlayback(AudioPlayback):
    def __init__(self, sample_rate=24000, calls=None):
        self.sample_rate = sample_rate
        self.calls = calls if calls is not None else []
        self.now = 0.0
        self.next_id = 0
        self.played = {}  # id -> (start, n_samples)
        self.stopped = []

    def open(self):
        self.calls.append("playback.open")

    def clock(self):
        return self.now

    def play(self, samples, start_at):
        self.next_id += 1
        self.played[self.next_id] = (start_at, len(samples))
        return self.next_id

    def stop(self, source):
        self.calls.append("playback.stop")
        self.stopped.append(source)

    def close(self):
        self.calls.append("playback.close")


class FakeConnection(LiveConnection):
    """Scripted live session: push events with feed(), end with finish()/fail()."""

    def __init__(self, calls=None):
        import asyncio

        self.calls = calls if calls is not None else []
        self.sent = []
        self.closed = 0
        self.send_error = None
        self._inbox = asyncio.Queue()

    async def send_audio(self, pcm):
        if self.send_error:
            raise self.send_error
        self.sent.append(pcm)

    async def receive(self):
        while True:
            item = await self._inbox.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self):
        self.calls.append("session.close")
        self.closed += 1

    def feed(self, event):
        self._inbox.put_nowait(event)

    def finish(self):
        self._inbox.put_nowait(None)

    def fail(self, error):
        self._inbox.put_nowait(error)


@pytest.fixture
def calls():
    return []


@pytest.fixture
def fake_capture(calls):
    return FakeCapture(calls=calls)


@pytest.fixture
def fake_playback(calls):
    return FakePlayback(calls=calls)
