"""Microphone capture for voice transcription."""

from __future__ import annotations

import io
import threading
import wave
from enum import Enum
from typing import Any, Protocol

from ..errors import RecordingUnavailable
from ..runs.events import EventWriter, emit

DEFAULT_SAMPLE_RATE = 16000


class RecordingState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"


class AudioSource(Protocol):
    mime_type: str

    def open(self) -> None:
        ...

    def close(self) -> bytes:
        ...


class SoundDeviceSource:
    """Mono 16-bit PCM capture through ``sounddevice``, returned as WAV bytes."""

    mime_type = "audio/wav"

    def __init__(self, sample_rate: int = DEFAULT_SAMPLE_RATE, device: int | str | None = None) -> None:
        self.sample_rate = sample_rate
        self.device = device
        self._chunks: list[Any] = []
        self._stream: Any = None

    def open(self) -> None:
        try:
            import sounddevice as sd
        except (ImportError, OSError) as exc:
            raise RecordingUnavailable(f"Audio capture unavailable: {exc}") from exc

        self._chunks = []

        def callback(indata, frames, time_info, status):  # noqa: ARG001
            self._chunks.append(indata.copy())

        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="int16",
                device=self.device,
                callback=callback,
            )
            self._stream.start()
        except Exception as exc:
            self._stream = None
            raise RecordingUnavailable(f"Microphone could not be opened: {exc}") from exc

    def close(self) -> bytes:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()
        chunks, self._chunks = self._chunks, []
        pcm = b"".join(chunk.tobytes() for chunk in chunks)
        return encode_wav(pcm, self.sample_rate)


def encode_wav(pcm: bytes, sample_rate: int, channels: int = 1, sample_width: int = 2) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as handle:
        handle.setnchannels(channels)
        handle.setsampwidth(sample_width)
        handle.setframerate(sample_rate)
        handle.writeframes(pcm)
    return buffer.getvalue()


class Recorder:
    """Explicit idle/recording state. Only ``start`` and ``stop`` change it."""

    def __init__(self, source: AudioSource | None = None, events: EventWriter | None = None) -> None:
        self._source = source or SoundDeviceSource()
        self._events = events
        self._lock = threading.Lock()
        self._state = RecordingState.IDLE

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def mime_type(self) -> str:
        return self._source.mime_type

    def start(self) -> tuple[bool, str | None]:
        with self._lock:
            if self._state is RecordingState.RECORDING:
                return False, "A recording is already in progress."
            self._source.open()
            self._state = RecordingState.RECORDING
        emit(self._events, "recording_started", mime_type=self._source.mime_type)
        return True, None

    def stop(self) -> bytes | None:
        with self._lock:
            if self._state is not RecordingState.RECORDING:
                return None
            self._state = RecordingState.IDLE
            audio = self._source.close()
        emit(self._events, "recording_stopped", bytes=len(audio))
        return audio
