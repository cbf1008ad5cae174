"""Microphone capture and the recording state machine."""

import asyncio
import io
import threading
import time
import wave
from abc import ABC, abstractmethod
from datetime import timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from .transcription import TranscriptionClient
from ..errors import DeviceUnavailable, InvalidState, TutorCoreError
from ..models import Notice, NoticeLevel
from ..utils.logger import get_app_logger


class CaptureState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"


class MicrophoneStream(ABC):
    """An open microphone handle."""

    @abstractmethod
    def close(self) -> None:
        pass


class MicrophoneBackend(ABC):
    """Source of 16-bit PCM chunks."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1):
        self.sample_rate = sample_rate
        self.channels = channels

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * self.channels * 2

    @abstractmethod
    def open(self, on_chunk: Callable[[bytes], None]) -> MicrophoneStream:
        """
        Acquire the microphone and start delivering chunks.

        Args:
            on_chunk: Called with raw PCM bytes, possibly from another thread

        Returns:
            The open stream

        Raises:
            DeviceUnavailable: Permission denied or no input device
        """
        pass

    def finalize(self, chunks: List[bytes]) -> bytes:
        """Concatenate PCM chunks into a single WAV payload."""
        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as handle:
            handle.setnchannels(self.channels)
            handle.setsampwidth(2)
            handle.setframerate(self.sample_rate)
            handle.writeframes(b"".join(chunks))
        return buffer.getvalue()


class _SoundDeviceStream(MicrophoneStream):
    def __init__(self, stream):
        self._stream = stream

    def close(self) -> None:
        try:
            self._stream.stop()
        finally:
            self._stream.close()


class SoundDeviceMicrophone(MicrophoneBackend):
    """Microphone backed by a sounddevice RawInputStream."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1, device: Optional[Any] = None):
        super().__init__(sample_rate, channels)
        self.device = device

    def open(self, on_chunk: Callable[[bytes], None]) -> MicrophoneStream:
        try:
            import sounddevice as sd
        except Exception as exc:  # pragma: no cover - environment-dependent
            raise DeviceUnavailable("sounddevice is required for recording.") from exc

        def _callback(indata, _frames, _time, status):
            if status:
                return
            on_chunk(bytes(indata))

        try:
            stream = sd.RawInputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                device=self.device,
                callback=_callback,
            )
            stream.start()
        except Exception as exc:
            raise DeviceUnavailable(f"Microphone unavailable: {exc}") from exc

        return _SoundDeviceStream(stream)


class AudioCaptureController:
    """
    Owns the microphone and the Idle -> Recording -> Processing -> Idle cycle.

    The microphone is released on every exit path. Transcription failures and
    empty transcripts surface as notices, never as chat messages.
    """

    def __init__(
        self,
        transcriber: TranscriptionClient,
        microphone: MicrophoneBackend,
        on_transcript: Callable[[str], Awaitable[Any]],
        on_notice: Optional[Callable[[Notice], None]] = None,
        max_clip_duration: timedelta = timedelta(seconds=120)
    ):
        self.transcriber = transcriber
        self.microphone = microphone
        self.on_transcript = on_transcript
        self.on_notice = on_notice
        self.max_clip_duration = max_clip_duration
        self.logger = get_app_logger("audio_capture")

        self.state = CaptureState.IDLE
        self._stream: Optional[MicrophoneStream] = None
        self._task: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._started_at: Optional[float] = None

        self._chunk_lock = threading.Lock()
        self._chunks: List[bytes] = []
        self._buffered = 0
        self._truncated = False

    @property
    def elapsed(self) -> float:
        """Seconds since the current capture started."""
        if self._started_at is None or self.state == CaptureState.IDLE:
            return 0.0
        return time.monotonic() - self._started_at

    @property
    def truncated(self) -> bool:
        return self._truncated

    def _set_state(self, state: CaptureState):
        self.logger.debug(f"Capture state {self.state.value} -> {state.value}")
        self.state = state
        if state == CaptureState.IDLE:
            self._started_at = None
            self._idle.set()
        else:
            self._idle.clear()

    def _notify(self, level: NoticeLevel, message: str):
        self.logger.info(f"Capture notice: {message}")
        if self.on_notice is not None:
            self.on_notice(Notice(level=level, message=message, source="audio_capture"))

    def _on_chunk(self, chunk: bytes):
        limit = self.max_clip_duration.total_seconds() * self.microphone.bytes_per_second
        with self._chunk_lock:
            if self._truncated:
                return
            if self._buffered + len(chunk) > limit:
                self._truncated = True
                return
            self._chunks.append(chunk)
            self._buffered += len(chunk)

    def _take_chunks(self) -> List[bytes]:
        with self._chunk_lock:
            chunks = self._chunks
            self._chunks = []
            self._buffered = 0
            return chunks

    def _release(self):
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.close()
        except Exception as e:
            self.logger.warning(f"Failed to close microphone stream: {e}")

    async def start(self):
        """
        Acquire the microphone and begin buffering.

        Raises:
            InvalidState: A capture cycle is already active
            DeviceUnavailable: The microphone cannot be opened
        """
        if self.state != CaptureState.IDLE:
            raise InvalidState(f"Cannot start recording while {self.state.value}")

        self._take_chunks()
        self._truncated = False

        try:
            self._stream = self.microphone.open(self._on_chunk)
        except DeviceUnavailable:
            self.logger.warning("Microphone unavailable")
            raise
        except Exception as e:
            raise DeviceUnavailable(f"Microphone unavailable: {e}") from e

        self._started_at = time.monotonic()
        self._set_state(CaptureState.RECORDING)

    async def stop(self) -> Optional[str]:
        """
        Finalize the clip, release the microphone and transcribe.

        Returns:
            The transcript emitted to on_transcript, or None

        Raises:
            InvalidState: Not recording
        """
        if self.state != CaptureState.RECORDING:
            raise InvalidState(f"Cannot stop recording while {self.state.value}")

        self._set_state(CaptureState.PROCESSING)
        try:
            self._release()
            chunks = self._take_chunks()

            if self._truncated:
                limit = int(self.max_clip_duration.total_seconds())
                self._notify(NoticeLevel.WARNING, f"Recording reached the {limit}s limit and was truncated.")

            if not chunks:
                self._notify(NoticeLevel.WARNING, "No audio was captured. Please try again.")
                return None

            task = asyncio.create_task(self.transcriber.transcribe(self.microphone.finalize(chunks)))
            self._task = task
            try:
                await asyncio.wait({task})
            finally:
                if not task.done():
                    task.cancel()

            if task.cancelled():
                self.logger.info("Transcription cancelled")
                return None

            try:
                text = task.result()
            except TutorCoreError as e:
                self.logger.warning(f"Transcription failed: {e}")
                self._notify(NoticeLevel.ERROR, "Could not transcribe the recording. Please try again.")
                return None

            if not text:
                self._notify(NoticeLevel.WARNING, "No speech was recognized. Please try again.")
                return None
        finally:
            self._task = None
            self._release()
            self._set_state(CaptureState.IDLE)

        try:
            await self.on_transcript(text)
        except TutorCoreError as e:
            self.logger.warning(f"Transcript not submitted: {e}")
            self._notify(NoticeLevel.WARNING, f"Transcript could not be submitted: {e}")
            return None
        return text

    async def cancel(self):
        """Discard the current capture, or cancel its in-flight transcription."""
        if self.state == CaptureState.RECORDING:
            self._release()
            self._take_chunks()
            self._set_state(CaptureState.IDLE)
            self.logger.info("Recording discarded")
        elif self.state == CaptureState.PROCESSING:
            if self._task is not None:
                self._task.cancel()
            await self._idle.wait()
