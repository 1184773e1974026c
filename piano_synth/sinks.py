"""
Output sinks for rendered notes.

Each render context owns exactly one sink, so concurrent notes never share
an output path:

- NullSink: keeps buffers in memory (headless runs, tests)
- WavFileSink: writes one 16-bit WAV per note with soundfile
- DeviceSink: streams to the sound card through its own sounddevice
  OutputStream
"""

from __future__ import annotations

import logging
import os
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional, Tuple

import numpy as np
import soundfile as sf

from .errors import InvalidArgument, InvalidState

logger = logging.getLogger(__name__)


class AudioSink(ABC):
    """Destination for rendered audio."""

    def __init__(self):
        self._closed = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable sink name."""
        pass

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    def write(self, audio: np.ndarray, sample_rate: int, start_time: float = 0.0) -> None:
        """Accept a rendered buffer (mono float32)."""
        pass

    def close(self) -> None:
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise InvalidState(f"{self.name} sink is closed")


class NullSink(AudioSink):
    """Collects buffers without playing them."""

    def __init__(self):
        super().__init__()
        self.buffers: List[Tuple[float, np.ndarray]] = []
        self.sample_rate: Optional[int] = None

    @property
    def name(self) -> str:
        return "null"

    def write(self, audio: np.ndarray, sample_rate: int, start_time: float = 0.0) -> None:
        self._check_open()
        self.sample_rate = sample_rate
        self.buffers.append((start_time, audio))

    @property
    def audio(self) -> np.ndarray:
        """All written buffers, concatenated."""
        if not self.buffers:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate([buf for _, buf in self.buffers])


class WavFileSink(AudioSink):
    """Writes everything a note renders into one PCM_16 WAV file on close."""

    def __init__(self, path: str):
        super().__init__()
        self.path = str(path)
        self._chunks: List[np.ndarray] = []
        self._sample_rate: Optional[int] = None

    @property
    def name(self) -> str:
        return f"wav:{self.path}"

    def write(self, audio: np.ndarray, sample_rate: int, start_time: float = 0.0) -> None:
        self._check_open()
        if self._sample_rate not in (None, sample_rate):
            raise InvalidArgument("WAV sink received buffers at different sample rates")
        self._sample_rate = sample_rate
        self._chunks.append(np.asarray(audio, dtype=np.float32))

    def close(self) -> None:
        if self._closed:
            return
        super().close()
        if not self._chunks:
            return
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        audio = np.clip(np.concatenate(self._chunks), -1.0, 1.0)
        sf.write(self.path, audio, self._sample_rate, subtype="PCM_16")
        self._chunks.clear()
        logger.info("Wrote %s", self.path)


class DeviceSink(AudioSink):
    """
    Plays rendered audio on an output device.

    Opens a dedicated ``sounddevice.OutputStream`` per sink, so several
    notes can sound at once without stopping each other.
    """

    def __init__(self, device: Optional[Any] = None, blocksize: int = 0):
        super().__init__()
        self.device = device
        self.blocksize = blocksize
        self._stream = None
        self._buffer = np.zeros(0, dtype=np.float32)
        self._position = 0
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "device" if self.device is None else f"device:{self.device}"

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.debug("Output stream status: %s", status)
        with self._lock:
            chunk = self._buffer[self._position:self._position + frames]
            self._position += len(chunk)
        outdata[:len(chunk), 0] = chunk
        outdata[len(chunk):, 0] = 0.0

    def write(self, audio: np.ndarray, sample_rate: int, start_time: float = 0.0) -> None:
        self._check_open()
        import sounddevice as sd

        with self._lock:
            pending = self._buffer[self._position:]
            self._buffer = np.concatenate([pending, np.asarray(audio, dtype=np.float32)])
            self._position = 0

        if self._stream is None:
            self._stream = sd.OutputStream(
                samplerate=sample_rate,
                channels=1,
                dtype="float32",
                device=self.device,
                blocksize=self.blocksize,
                callback=self._callback,
            )
            self._stream.start()

    def close(self) -> None:
        if self._closed:
            return
        super().close()
        if self._stream is not None:
            try:
                self._stream.stop()
            finally:
                self._stream.close()
                self._stream = None


SINK_KINDS = ("null", "wav", "device")


def make_sink(
    kind: str = "null",
    output_dir: Optional[str] = None,
    label: str = "note",
    device: Optional[Any] = None,
) -> AudioSink:
    """
    Create a fresh sink for one note.

    Args:
        kind: One of ``SINK_KINDS``
        output_dir: Directory for WAV files (``wav`` only)
        label: File name stem for WAV files
        device: sounddevice device id or name (``device`` only)
    """
    kind = (kind or "null").lower()
    if kind == "null":
        return NullSink()
    if kind == "wav":
        directory = Path(output_dir or "output")
        return WavFileSink(str(directory / f"{label}_{uuid.uuid4().hex[:8]}.wav"))
    if kind == "device":
        return DeviceSink(device=device)
    raise InvalidArgument(f"Unknown sink kind {kind!r}; expected one of {SINK_KINDS}")
