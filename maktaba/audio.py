"""Audio capture / playback for the live voice session.

Capture and playback run on two separate streams with their own sample
rates (16 kHz in, 24 kHz out, the native rates of the live service) so
nothing is resampled through a shared clock.

The live session only talks to the :class:`AudioCapture` and
:class:`AudioPlayback` interfaces; the sounddevice classes below are the real
hardware implementations and tests swap in fakes.
"""

import itertools
import threading
from abc import ABC, abstractmethod
from typing import Callable

import numpy as np

from maktaba.logging_config import get_logger

log = get_logger(__name__)

CAPTURE_SAMPLE_RATE = 16000
PLAYBACK_SAMPLE_RATE = 24000
CAPTURE_BLOCK_SIZE = 4096


# ---------------------------------------------------------------------------
# Sample helpers
# ---------------------------------------------------------------------------

def rms(samples: np.ndarray) -> float:
    """Root-mean-square level of a float frame (drives the volume meter)."""
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """float32 [-1, 1] -> 16-bit little-endian PCM."""
    clipped = np.clip(samples, -1.0, 1.0)
    return (clipped * 32767).astype("<i2").tobytes()


def pcm16_to_float(data: bytes) -> np.ndarray:
    """16-bit little-endian PCM -> float32 [-1, 1)."""
    return np.frombuffer(data, dtype="<i2").astype(np.float32) / 32768.0


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------

class AudioCapture(ABC):
    """Microphone input at a fixed sample rate."""

    sample_rate: int

    @abstractmethod
    def open(self) -> None:
        """Prepare the capture context."""

    @abstractmethod
    def start(self, on_frame: Callable[[np.ndarray], None]) -> None:
        """Acquire the microphone and deliver mono float32 frames.

        ``on_frame`` may be called from an audio thread.
        """

    @abstractmethod
    def stop(self) -> None:
        """Detach the pipeline and release the microphone."""

    @abstractmethod
    def close(self) -> None:
        """Close the capture context."""


class AudioPlayback(ABC):
    """Speaker output with a monotonic clock and time-scheduled sources."""

    sample_rate: int

    @abstractmethod
    def open(self) -> None:
        pass

    @abstractmethod
    def clock(self) -> float:
        """Current playback time in seconds."""

    @abstractmethod
    def play(self, samples: np.ndarray, start_at: float) -> int:
        """Schedule ``samples`` to start at ``start_at``; returns a source id."""

    @abstractmethod
    def stop(self, source: int) -> None:
        """Stop one source now, whether it started or not."""

    @abstractmethod
    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------

class PlaybackScheduler:
    """Queues inbound chunks back to back without gaps or overlap.

    Each chunk starts at ``max(next_start_time, clock())`` and moves
    ``next_start_time`` forward by its own duration.
    """

    def __init__(self, playback: AudioPlayback):
        self.playback = playback
        self.next_start_time = 0.0
        self._sources: dict[int, float] = {}  # source id -> end time

    @property
    def active_sources(self) -> list[int]:
        return list(self._sources)

    def reset(self) -> None:
        self.next_start_time = self.playback.clock()

    def schedule(self, samples: np.ndarray) -> float:
        """Schedule a chunk and return its start time."""
        now = self.playback.clock()
        self._prune(now)
        start = max(self.next_start_time, now)
        duration = len(samples) / self.playback.sample_rate
        source = self.playback.play(samples, start)
        self._sources[source] = start + duration
        self.next_start_time = start + duration
        return start

    def interrupt(self) -> None:
        """Barge-in: drop everything queued and restart the cursor at now."""
        self.stop_all()
        self.next_start_time = self.playback.clock()

    def stop_all(self) -> None:
        for source in list(self._sources):
            try:
                self.playback.stop(source)
            except Exception as e:
                log.debug("Ignoring error stopping source %d: %s", source, e)
        self._sources.clear()

    def _prune(self, now: float) -> None:
        for source, end in list(self._sources.items()):
            if end <= now:
                del self._sources[source]


# ---------------------------------------------------------------------------
# sounddevice implementations
# ---------------------------------------------------------------------------

class SoundDeviceCapture(AudioCapture):
    """Mono float32 microphone capture via ``sd.InputStream``."""

    def __init__(
        self,
        sample_rate: int = CAPTURE_SAMPLE_RATE,
        block_size: int = CAPTURE_BLOCK_SIZE,
        device=None,
    ):
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.device = device
        self._stream = None

    def open(self) -> None:
        import sounddevice as sd

        # Fails early (PortAudioError) if the device can't do our rate
        sd.check_input_settings(device=self.device, channels=1, dtype="float32", samplerate=self.sample_rate)

    def start(self, on_frame: Callable[[np.ndarray], None]) -> None:
        import sounddevice as sd

        def callback(indata, frames, time_info, status):
            if status:
                log.debug("Capture status: %s", status)
            on_frame(indata[:, 0].copy())

        self._stream = sd.InputStream(
            samplerate=self.sample_rate,
            blocksize=self.block_size,
            device=self.device,
            channels=1,
            dtype="float32",
            callback=callback,
        )
        self._stream.start()
        log.info("Microphone capture started (%d Hz)", self.sample_rate)

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()
            log.info("Microphone released")

    def close(self) -> None:
        self.stop()


class SoundDevicePlayback(AudioPlayback):
    """Speaker output via ``sd.OutputStream``.

    The clock counts frames handed to the device. Scheduled sources are mixed
    into each output block at their frame offsets.
    """

    def __init__(self, sample_rate: int = PLAYBACK_SAMPLE_RATE, device=None):
        self.sample_rate = sample_rate
        self.device = device
        self._stream = None
        self._lock = threading.Lock()
        self._frames_played = 0
        self._sources: dict[int, tuple[int, np.ndarray]] = {}
        self._ids = itertools.count(1)

    def open(self) -> None:
        import sounddevice as sd

        self._stream = sd.OutputStream(
            samplerate=self.sample_rate,
            device=self.device,
            channels=1,
            dtype="float32",
            callback=self._callback,
        )
        self._stream.start()
        log.info("Playback stream opened (%d Hz)", self.sample_rate)

    def clock(self) -> float:
        with self._lock:
            return self._frames_played / self.sample_rate

    def play(self, samples: np.ndarray, start_at: float) -> int:
        source = next(self._ids)
        start_frame = int(round(start_at * self.sample_rate))
        with self._lock:
            self._sources[source] = (start_frame, np.asarray(samples, dtype=np.float32))
        return source

    def stop(self, source: int) -> None:
        with self._lock:
            self._sources.pop(source, None)

    def close(self) -> None:
        stream, self._stream = self._stream, None
        with self._lock:
            self._sources.clear()
        if stream is not None:
            stream.stop()
            stream.close()
            log.info("Playback stream closed")

    def _callback(self, outdata, frames, time_info, status):
        block = np.zeros(frames, dtype=np.float32)
        with self._lock:
            start = self._frames_played
            end = start + frames
            for source, (s0, buf) in list(self._sources.items()):
                s1 = s0 + len(buf)
                if s1 <= start:
                    del self._sources[source]
                    continue
                if s0 >= end:
                    continue
                lo, hi = max(s0, start), min(s1, end)
                block[lo - start:hi - start] += buf[lo - s0:hi - s0]
            self._frames_played = end
        outdata[:, 0] = block


def input_device_available() -> bool:
    """True when at least one input device exists."""
    import sounddevice as sd

    try:
        devices = sd.query_devices()
    except Exception as e:
        log.warning("Audio device query failed: %s", e)
        return False
    if isinstance(devices, dict):
        return devices.get("max_input_channels", 0) > 0
    return any(d.get("max_input_channels", 0) > 0 for d in devices)
