"""Speech synthesis, playback and the output state machine."""

import asyncio
import importlib.util
import io
import os
import tempfile
import threading
import wave
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..config import Voice
from ..errors import DeviceUnavailable, ExternalServiceError, InvalidState, ServiceTimeout, ValidationError
from ..models import Notice, NoticeLevel
from ..utils.logger import get_app_logger


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class SpeechCapabilities:
    """Which synthesis capabilities were available at construction time."""

    supports_hosted: bool
    supports_local: bool


# === Synthesis backends ===

class SynthesisBackend(ABC):
    """A text-to-speech capability producing WAV payloads."""

    name: str = "synthesis"
    hosted: bool = True

    @abstractmethod
    def is_available(self) -> bool:
        pass

    @abstractmethod
    async def synthesize(self, text: str, voice: Voice) -> bytes:
        pass


class HostedSynthesisBackend(SynthesisBackend):
    """OpenAI speech endpoint."""

    name = "openai"
    hosted = True

    def __init__(
        self,
        api_key: Optional[str],
        api_base: str = "https://api.openai.com/v1",
        model: str = "tts-1",
        max_chars: int = 4096,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.model = model
        self.max_chars = max_chars
        self._client = client

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def _post(self, client: httpx.AsyncClient, text: str, voice: Voice) -> httpx.Response:
        return await client.post(
            f"{self.api_base}/audio/speech",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": self.model,
                "input": text[:self.max_chars],
                "voice": Voice(voice).value,
                "response_format": "wav",
            },
        )

    async def synthesize(self, text: str, voice: Voice) -> bytes:
        if self._client is not None:
            response = await self._post(self._client, text, voice)
        else:
            async with httpx.AsyncClient(timeout=None) as client:
                response = await self._post(client, text, voice)

        response.raise_for_status()
        return response.content


class LocalSynthesisBackend(SynthesisBackend):
    """Offline pyttsx3 engine, run in a worker thread."""

    name = "pyttsx3"
    hosted = False

    def __init__(self, enabled: bool = True, rate: Optional[int] = None):
        self.enabled = enabled
        self.rate = rate

    def is_available(self) -> bool:
        return self.enabled and importlib.util.find_spec("pyttsx3") is not None

    def _synthesize_sync(self, text: str) -> bytes:
        import pyttsx3

        engine = pyttsx3.init()
        if self.rate:
            engine.setProperty("rate", int(self.rate))

        tmp = tempfile.NamedTemporaryFile(suffix=".wav", delete=False)
        tmp_path = tmp.name
        tmp.close()

        try:
            engine.save_to_file(text, tmp_path)
            engine.runAndWait()
            with open(tmp_path, "rb") as f:
                return f.read()
        finally:
            os.unlink(tmp_path)

    async def synthesize(self, text: str, voice: Voice) -> bytes:
        return await asyncio.to_thread(self._synthesize_sync, text)


# === Audio output ===

class AudioOutput(ABC):
    """The single audio output device."""

    @abstractmethod
    def start(self, payload: bytes, volume: float, on_finished: Callable[[], None]) -> None:
        """Start playing a WAV payload; on_finished may be called from another thread."""
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def resume(self) -> None:
        pass

    @abstractmethod
    def set_volume(self, volume: float) -> None:
        pass


class SoundDeviceOutput(AudioOutput):
    """Plays 16-bit PCM WAV through a sounddevice OutputStream."""

    def __init__(self, device: Optional[Any] = None):
        self.device = device
        self._stream = None
        self._volume = 1.0
        self._paused = False
        self._lock = threading.Lock()

    def start(self, payload: bytes, volume: float, on_finished: Callable[[], None]) -> None:
        try:
            import numpy as np
            import sounddevice as sd
        except Exception as exc:  # pragma: no cover - environment-dependent
            raise DeviceUnavailable("sounddevice and numpy are required for playback.") from exc

        self.stop()

        with wave.open(io.BytesIO(payload), "rb") as handle:
            channels = handle.getnchannels()
            sample_rate = handle.getframerate()
            if handle.getsampwidth() != 2:
                raise ValueError("Only 16-bit PCM WAV payloads are supported")
            frames = handle.readframes(handle.getnframes())

        samples = np.frombuffer(frames, dtype=np.int16).reshape(-1, channels)
        position = 0

        def _callback(outdata, frame_count, _time, _status):
            nonlocal position
            if self._paused:
                outdata.fill(0)
                return
            chunk = samples[position:position + frame_count]
            position += len(chunk)
            outdata[:len(chunk)] = (chunk * self._volume).astype(np.int16)
            outdata[len(chunk):] = 0
            if len(chunk) < frame_count:
                raise sd.CallbackStop

        with self._lock:
            self._volume = volume
            self._paused = False
            try:
                self._stream = sd.OutputStream(
                    samplerate=sample_rate,
                    channels=channels,
                    dtype="int16",
                    device=self.device,
                    callback=_callback,
                    finished_callback=on_finished,
                )
                self._stream.start()
            except Exception as exc:
                self._stream = None
                raise DeviceUnavailable(f"Audio output unavailable: {exc}") from exc

    def stop(self) -> None:
        with self._lock:
            stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def set_volume(self, volume: float) -> None:
        self._volume = volume


# === Controller ===

class SpeechSynthesisController:
    """
    Owns the audio output, the synthesis cache and the playback state machine.

    Backends are negotiated once at construction; the resulting fallback chain
    is fixed for the controller's lifetime. Only one source plays at a time and
    a newer play() supersedes any loading or playing one.
    Synthesized payloads are kept per message id in a bounded LRU cache, and
    concurrent plays of one message share a single synthesis call.
    """

    def __init__(
        self,
        backends: List[SynthesisBackend],
        output: AudioOutput,
        on_notice: Optional[Callable[[Notice], None]] = None,
        timeout: float = 30.0,
        voice: Voice = Voice.ALLOY,
        cache_size: int = 32
    ):
        self.backends = [b for b in backends if b.is_available()]
        self.capabilities = SpeechCapabilities(
            supports_hosted=any(b.hosted for b in self.backends),
            supports_local=any(not b.hosted for b in self.backends),
        )
        self.output = output
        self.on_notice = on_notice
        self.timeout = timeout
        self.voice = voice
        self.logger = get_app_logger("speech_synthesis")

        self.state = PlaybackState.IDLE
        self.current_message_id: Optional[str] = None
        self.cache_size = max(1, cache_size)
        self._cache: "OrderedDict[str, bytes]" = OrderedDict()
        self._inflight: Dict[str, asyncio.Future] = {}
        self._generation = 0
        self._volume = 1.0
        self._muted = False

        self.logger.info(
            f"Speech synthesis capabilities: hosted={self.capabilities.supports_hosted}, "
            f"local={self.capabilities.supports_local}"
        )

    @classmethod
    def from_settings(
        cls,
        settings,
        output: Optional[AudioOutput] = None,
        on_notice: Optional[Callable[[Notice], None]] = None
    ) -> "SpeechSynthesisController":
        backends = [
            HostedSynthesisBackend(
                api_key=settings.openai_api_key,
                api_base=settings.openai_api_base,
                model=settings.synthesis_model,
                max_chars=settings.synthesis_max_chars,
            ),
            LocalSynthesisBackend(enabled=settings.enable_local_synthesis),
        ]
        return cls(
            backends,
            output or SoundDeviceOutput(),
            on_notice=on_notice,
            timeout=settings.synthesis_timeout,
            voice=settings.voice,
            cache_size=settings.synthesis_cache_size,
        )

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def effective_volume(self) -> float:
        return 0.0 if self._muted else self._volume

    def _set_state(self, state: PlaybackState):
        self.logger.debug(f"Playback state {self.state.value} -> {state.value}")
        self.state = state

    def _notify(self, message: str):
        if self.on_notice is not None:
            self.on_notice(Notice(level=NoticeLevel.WARNING, message=message, source="speech_synthesis"))

    def _halt_output(self):
        if self.state in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            self.output.stop()

    def _on_finished(self, generation: int):
        if generation == self._generation and self.state in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            self._set_state(PlaybackState.IDLE)

    async def _synthesize(self, text: str, voice: Voice) -> bytes:
        last_error: Optional[Exception] = None

        for backend in self.backends:
            try:
                payload = await asyncio.wait_for(backend.synthesize(text, voice), timeout=self.timeout)
            except asyncio.TimeoutError:
                last_error = ServiceTimeout(f"{backend.name} synthesis timed out after {self.timeout}s")
            except Exception as e:
                last_error = e
            else:
                if last_error is not None:
                    fallback = "the offline voice" if not backend.hosted else backend.name
                    self._notify(f"Preferred voice is unavailable, using {fallback}.")
                return payload
            self.logger.warning(f"Synthesis via {backend.name} failed: {last_error}")

        self._notify("Voice playback is unavailable right now.")
        if last_error is None:
            raise ExternalServiceError("No speech synthesis capability is available")
        raise ExternalServiceError(f"Speech synthesis failed: {last_error}") from last_error

    async def _synthesize_into_cache(self, message_id: str, text: str, voice: Voice) -> bytes:
        payload = await self._synthesize(text, voice)
        self._remember(message_id, payload)
        return payload

    def _remember(self, message_id: str, payload: bytes):
        self._cache[message_id] = payload
        self._cache.move_to_end(message_id)
        while len(self._cache) > self.cache_size:
            evicted, _ = self._cache.popitem(last=False)
            self.logger.debug(f"Evicted cached audio for {evicted}")

    def _pending_synthesis(self, message_id: str, text: str, voice: Voice) -> asyncio.Future:
        """One synthesis per message id; concurrent plays share it."""
        pending = self._inflight.get(message_id)
        if pending is None:
            pending = asyncio.ensure_future(self._synthesize_into_cache(message_id, text, voice))
            self._inflight[message_id] = pending

            def _done(future, key=message_id):
                if self._inflight.get(key) is future:
                    del self._inflight[key]
                if not future.cancelled():
                    future.exception()

            pending.add_done_callback(_done)
        else:
            self.logger.debug(f"Joining in-flight synthesis for {message_id}")
        return pending

    def _start_output(self, payload: bytes, generation: int):
        loop = asyncio.get_running_loop()

        def _finished():
            loop.call_soon_threadsafe(self._on_finished, generation)

        try:
            self.output.start(payload, self.effective_volume, _finished)
        except DeviceUnavailable:
            self._set_state(PlaybackState.IDLE)
            raise
        except Exception as e:
            self._set_state(PlaybackState.IDLE)
            raise DeviceUnavailable(f"Audio output failed: {e}") from e

        self._set_state(PlaybackState.PLAYING)

    async def play(self, message_id: str, text: str, voice: Optional[Voice] = None):
        """
        Speak a message, synthesizing it unless a cached payload exists.

        Args:
            message_id: Identity of the message; the cache key
            text: Text to speak
            voice: Optional voice override

        Raises:
            ValidationError: Empty text
            ExternalServiceError: Every negotiated backend failed
            DeviceUnavailable: The output device could not start
        """
        if not text or not text.strip():
            raise ValidationError("Nothing to speak")

        self._generation += 1
        generation = self._generation
        self._halt_output()
        self.current_message_id = message_id

        payload = self._cache.get(message_id)
        if payload is None:
            self._set_state(PlaybackState.LOADING)
            pending = self._pending_synthesis(message_id, text, voice or self.voice)
            try:
                payload = await asyncio.shield(pending)
            except ExternalServiceError:
                if generation == self._generation:
                    self._set_state(PlaybackState.IDLE)
                raise
            if generation != self._generation:
                self.logger.debug(f"Synthesis for {message_id} superseded, not playing")
                return
        else:
            self._cache.move_to_end(message_id)
            self.logger.debug(f"Playing cached audio for {message_id}")

        self._start_output(payload, generation)

    def stop(self):
        """Stop playback and abandon any pending synthesis result."""
        self._generation += 1
        self._halt_output()
        self._set_state(PlaybackState.IDLE)

    def pause(self):
        if self.state != PlaybackState.PLAYING:
            raise InvalidState(f"Cannot pause while {self.state.value}")
        self.output.pause()
        self._set_state(PlaybackState.PAUSED)

    def resume(self):
        if self.state != PlaybackState.PAUSED:
            raise InvalidState(f"Cannot resume while {self.state.value}")
        self.output.resume()
        self._set_state(PlaybackState.PLAYING)

    def set_volume(self, volume: float):
        self._volume = min(1.0, max(0.0, float(volume)))
        self.output.set_volume(self.effective_volume)

    def mute(self, flag: bool = True):
        self._muted = flag
        self.output.set_volume(self.effective_volume)

    def is_cached(self, message_id: str) -> bool:
        return message_id in self._cache

    def clear_cache(self):
        self._cache.clear()
