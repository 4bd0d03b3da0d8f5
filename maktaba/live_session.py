"""Live voice session: state machine over one bidirectional audio stream.

Everything that happens during a session (microphone frames, model audio,
barge-in, remote close, transport failure) is turned into an event and put
on a single ``asyncio.Queue``; one consumer task applies them in order.

    IDLE -> CONNECTING -> STREAMING <-> INTERRUPTED -> CLOSED
                 \\______________\\____________\\______> ERROR

Credentials rotate only during the handshake. Once streaming, a transport
error ends the session.
"""

from __future__ import annotations

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable

import numpy as np

from maktaba.audio import (
    AudioCapture,
    AudioPlayback,
    PlaybackScheduler,
    float_to_pcm16,
    pcm16_to_float,
    rms,
)
from maktaba.credentials import CredentialPool
from maktaba.errors import LiveTransportError, MaktabaError, NoCredentials
from maktaba.logging_config import get_logger
from maktaba.rotation import connect_with_rotation

log = get_logger(__name__)

_MSG_NO_KEYS = "لا توجد مفاتيح API متوفرة"


class LiveState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    INTERRUPTED = "interrupted"
    CLOSED = "closed"
    ERROR = "error"


_ACTIVE_STATES = (LiveState.CONNECTING, LiveState.STREAMING, LiveState.INTERRUPTED)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass
class Opened:
    pass


@dataclass
class CapturedFrame:
    samples: np.ndarray


@dataclass
class AudioFrame:
    data: bytes  # 16-bit PCM at the playback rate


@dataclass
class Interrupted:
    pass


@dataclass
class TurnComplete:
    pass


@dataclass
class Closed:
    reason: str = ""


@dataclass
class Error:
    error: Exception


# ---------------------------------------------------------------------------
# Remote side
# ---------------------------------------------------------------------------

class LiveConnection(ABC):
    """An established realtime session with the model."""

    @abstractmethod
    async def send_audio(self, pcm: bytes) -> None:
        """Push one 16-bit PCM capture frame."""

    @abstractmethod
    def receive(self) -> AsyncIterator:
        """Yield AudioFrame / Interrupted / TurnComplete events until the
        server closes the session. Raises on transport failure."""

    @abstractmethod
    async def close(self) -> None:
        pass


# (credential, system instruction) -> connection
Connector = Callable[[str, str], Awaitable[LiveConnection]]


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class LiveSessionManager:
    """Owns the microphone, the two audio streams and the remote session
    for the duration of one connection."""

    def __init__(
        self,
        pool: CredentialPool,
        connector: Connector,
        capture: AudioCapture,
        playback: AudioPlayback,
        instruction: str,
        on_state: Callable[[LiveState], None] | None = None,
        on_volume: Callable[[float], None] | None = None,
        rng=random,
    ):
        self.pool = pool
        self.connector = connector
        self.capture = capture
        self.playback = playback
        self.instruction = instruction
        self.on_state = on_state
        self.on_volume = on_volume
        self.rng = rng

        self.scheduler = PlaybackScheduler(playback)
        self.state = LiveState.IDLE
        self.error: str | None = None
        self.volume = 0.0

        self._connection: LiveConnection | None = None
        self._events: asyncio.Queue | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pump_task: asyncio.Task | None = None
        self._consumer_task: asyncio.Task | None = None
        self._sending = False
        self._capture_running = False
        self._capture_open = False
        self._playback_open = False
        self._generation = 0  # bumped by connect() and disconnect()

    # -- public API --------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self.state in (LiveState.STREAMING, LiveState.INTERRUPTED)

    async def connect(self) -> None:
        """Acquire audio, handshake with rotating keys, start streaming.

        Cancelling the call while the handshake is pending releases
        everything and leaves the session CLOSED.

        Raises:
            NoCredentials: Pool is empty (nothing is acquired).
            AllCredentialsFailed: No key produced a session.
        """
        if self.state in _ACTIVE_STATES:
            log.warning("connect() ignored, session is %s", self.state.value)
            return

        self.error = None
        if self.pool.is_empty:
            self.error = _MSG_NO_KEYS
            self._set_state(LiveState.ERROR)
            raise NoCredentials("credential pool is empty", message=_MSG_NO_KEYS)

        self._generation += 1
        generation = self._generation
        self._set_state(LiveState.CONNECTING)
        self._loop = asyncio.get_running_loop()
        self._events = asyncio.Queue()

        try:
            self.capture.open()
            self._capture_open = True
            self.playback.open()
            self._playback_open = True
            self.scheduler.reset()
            # Frames are dropped until _sending is set after the handshake
            self.capture.start(self._on_captured)
            self._capture_running = True

            connection = await connect_with_rotation(
                self.pool,
                lambda key: self.connector(key, self.instruction),
                rng=self.rng,
            )
        except asyncio.CancelledError:
            if generation == self._generation:
                log.info("Live connect cancelled")
                await self._release()
                self._set_state(LiveState.CLOSED)
            raise
        except Exception as e:
            if generation != self._generation:
                # disconnect() already released this attempt's resources
                log.info("Stale live handshake failed: %s", e)
                return
            if isinstance(e, MaktabaError):
                self.error = e.message
            else:
                self.error = f"فشل الاتصال: {e}"
            log.error("Live connect failed: %s", e)
            await self._release()
            self._set_state(LiveState.ERROR)
            raise

        if generation != self._generation:
            # disconnect() (and maybe a newer connect()) ran during the handshake
            log.info("Dropping stale live session")
            await connection.close()
            return

        self._connection = connection
        self._sending = True
        self._set_state(LiveState.STREAMING)
        self._events.put_nowait(Opened())
        self._pump_task = asyncio.create_task(self._pump())
        self._consumer_task = asyncio.create_task(self._consume())

    async def disconnect(self) -> None:
        """Tear down from any state and end in CLOSED. Safe to repeat."""
        if self.state == LiveState.CLOSED:
            return
        # Any handshake still in flight is now stale
        self._generation += 1
        await self._release()
        self._set_state(LiveState.CLOSED)
        await self._stop_consumer()

    async def wait_closed(self) -> None:
        """Wait until the session stops streaming (closed or failed)."""
        if self._consumer_task is not None:
            await asyncio.wait({self._consumer_task})

    # -- event production -------------------------------------------------

    def _on_captured(self, samples: np.ndarray) -> None:
        # Audio thread
        if not self._sending or self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._events.put_nowait, CapturedFrame(samples))
        except RuntimeError:
            log.debug("Event loop closed, capture frame dropped")

    async def _pump(self) -> None:
        try:
            async for event in self._connection.receive():
                await self._events.put(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._events.put(Error(e))
        else:
            await self._events.put(Closed("remote closed the session"))

    # -- event consumption ------------------------------------------------

    async def _consume(self) -> None:
        while True:
            event = await self._events.get()
            if not await self._handle(event):
                return

    async def _handle(self, event) -> bool:
        """Apply one event. Returns False when the session is over."""
        if isinstance(event, CapturedFrame):
            if not self._sending:
                return True
            self._set_volume(rms(event.samples))
            try:
                await self._connection.send_audio(float_to_pcm16(event.samples))
            except Exception as e:
                return await self._handle(Error(e))
            return True

        if isinstance(event, AudioFrame):
            if self.state == LiveState.INTERRUPTED:
                self._set_state(LiveState.STREAMING)
            self.scheduler.schedule(pcm16_to_float(event.data))
            return True

        if isinstance(event, Interrupted):
            log.info("Barge-in: dropping %d queued chunk(s)", len(self.scheduler.active_sources))
            self.scheduler.interrupt()
            self._set_state(LiveState.INTERRUPTED)
            return True

        if isinstance(event, Opened):
            log.info("Live session open")
            return True

        if isinstance(event, TurnComplete):
            log.debug("Model turn complete")
            return True

        if isinstance(event, Closed):
            log.info("Live session closed: %s", event.reason)
            await self._release()
            self._set_state(LiveState.CLOSED)
            return False

        if isinstance(event, Error):
            detail = str(event.error) or LiveTransportError.user_message
            self.error = f"خطأ: {detail}"
            log.error("Live session error: %s", event.error)
            await self._release()
            self._set_state(LiveState.ERROR)
            return False

        log.warning("Unknown live event %r", event)
        return True

    # -- teardown ---------------------------------------------------------

    async def _release(self) -> None:
        """Release everything in a fixed order. Each step is best-effort."""
        self._sending = False

        if self._capture_running:
            self._capture_running = False
            self._best_effort("stop capture", self.capture.stop)

        self._best_effort("stop playback sources", self.scheduler.stop_all)

        if self._capture_open:
            self._capture_open = False
            self._best_effort("close capture", self.capture.close)
        if self._playback_open:
            self._playback_open = False
            self._best_effort("close playback", self.playback.close)

        connection, self._connection = self._connection, None
        if connection is not None:
            try:
                await connection.close()
            except Exception as e:
                log.debug("Ignoring error closing live session: %s", e)

        pump, self._pump_task = self._pump_task, None
        if pump is not None and pump is not asyncio.current_task():
            pump.cancel()

        self._set_volume(0.0)

    async def _stop_consumer(self) -> None:
        task, self._consumer_task = self._consumer_task, None
        if task is None or task is asyncio.current_task() or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @staticmethod
    def _best_effort(label: str, fn) -> None:
        try:
            fn()
        except Exception as e:
            log.debug("Ignoring error during %s: %s", label, e)

    # -- notifications ----------------------------------------------------

    def _set_state(self, state: LiveState) -> None:
        if state == self.state:
            return
        log.debug("Live state %s -> %s", self.state.value, state.value)
        self.state = state
        if self.on_state:
            self.on_state(state)

    def _set_volume(self, volume: float) -> None:
        self.volume = volume
        if self.on_volume:
            self.on_volume(volume)
