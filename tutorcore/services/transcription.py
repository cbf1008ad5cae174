"""Speech-to-text boundary."""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from ..errors import (
    ClipTooLarge,
    ExternalServiceError,
    ServiceTimeout,
    TransientNetworkError,
    TutorCoreError,
    ValidationError,
)
from ..utils.logger import get_app_logger


class SpeechToTextBackend(ABC):
    """A speech-to-text capability."""

    name: str = "stt"

    @abstractmethod
    async def transcribe(self, audio: bytes) -> str:
        """
        Transcribe a finalized WAV clip.

        Args:
            audio: WAV payload

        Returns:
            Raw transcript text
        """
        pass


class OpenAITranscriptionBackend(SpeechToTextBackend):
    """Hosted Whisper transcription over the OpenAI audio API."""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        api_base: str = "https://api.openai.com/v1",
        model: str = "whisper-1",
        client: Optional[httpx.AsyncClient] = None
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.model = model
        self._client = client

    async def _post(self, client: httpx.AsyncClient, audio: bytes) -> httpx.Response:
        return await client.post(
            f"{self.api_base}/audio/transcriptions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            files={"file": ("clip.wav", audio, "audio/wav")},
            data={"model": self.model},
        )

    async def transcribe(self, audio: bytes) -> str:
        if self._client is not None:
            response = await self._post(self._client, audio)
        else:
            async with httpx.AsyncClient(timeout=None) as client:
                response = await self._post(client, audio)

        response.raise_for_status()
        return response.json().get("text", "")


class TranscriptionClient:
    """
    Stateless async boundary to a speech-to-text backend.

    Oversized and empty clips are rejected before any network call. Failures
    are classified and never retried; retrying means re-recording.
    """

    def __init__(self, backend: SpeechToTextBackend, max_clip_bytes: int, timeout: float):
        self.backend = backend
        self.max_clip_bytes = max_clip_bytes
        self.timeout = timeout
        self.logger = get_app_logger("transcription")

    @classmethod
    def from_settings(cls, settings) -> "TranscriptionClient":
        backend = OpenAITranscriptionBackend(
            api_key=settings.openai_api_key,
            api_base=settings.openai_api_base,
            model=settings.transcription_model,
        )
        return cls(backend, settings.max_clip_bytes, settings.transcription_timeout)

    async def transcribe(self, audio: bytes) -> str:
        """
        Transcribe an audio clip.

        Args:
            audio: WAV payload

        Returns:
            Whitespace-normalized transcript (may be empty)

        Raises:
            ValidationError: Empty clip
            ClipTooLarge: Clip exceeds max_clip_bytes
            ServiceTimeout: Backend exceeded the timeout
            TransientNetworkError: Connection-level failure
            ExternalServiceError: Any other backend failure
        """
        if not audio:
            raise ValidationError("Audio clip is empty")
        if len(audio) > self.max_clip_bytes:
            raise ClipTooLarge(f"Audio clip is {len(audio)} bytes, limit is {self.max_clip_bytes}")

        self.logger.debug(f"Transcribing {len(audio)} bytes via {self.backend.name}")
        try:
            text = await asyncio.wait_for(self.backend.transcribe(audio), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ServiceTimeout(f"Transcription timed out after {self.timeout}s") from e
        except httpx.TimeoutException as e:
            raise ServiceTimeout(f"Transcription request timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientNetworkError(f"Transcription service unreachable: {e}") from e
        except TutorCoreError:
            raise
        except Exception as e:
            raise ExternalServiceError(f"Transcription failed: {e}") from e

        return " ".join((text or "").split())
