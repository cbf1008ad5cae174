"""In-memory collaborators for service tests."""

import asyncio
from typing import Callable, List, Optional

import pytest

from tutorcore.config import Voice
from tutorcore.errors import DeviceUnavailable
from tutorcore.models import SourceCitation
from tutorcore.services import (
    AudioOutput,
    MicrophoneBackend,
    MicrophoneStream,
    ResponseGenerator,
    SpeechToTextBackend,
    SynthesisBackend,
    TranscriptionClient,
    TutorReply,
)


class FakeStream(MicrophoneStream):
    def __init__(self, microphone: "FakeMicrophone"):
        self.microphone = microphone

    def close(self) -> None:
        self.microphone.open_streams -= 1
        self.microphone.close_count += 1


class FakeMicrophone(MicrophoneBackend):
    """Microphone that delivers chunks on demand."""

    def __init__(self):
        super().__init__(sample_rate=16000, channels=1)
        self.unavailable = False
        self.open_streams = 0
        self.close_count = 0
        self._on_chunk: Optional[Callable[[bytes], None]] = None

    def open(self, on_chunk):
        if self.unavailable:
            raise DeviceUnavailable("Permission denied")
        if self.open_streams:
            raise DeviceUnavailable("Microphone busy")
        self.open_streams += 1
        self._on_chunk = on_chunk
        return FakeStream(self)

    def emit(self, chunk: bytes):
        self._on_chunk(chunk)


class FakeSpeechToText(SpeechToTextBackend):
    name = "fake-stt"

    def __init__(self, text: str = "What is photosynthesis?"):
        self.text = text
        self.error: Optional[Exception] = None
        self.delay = 0.0
        self.calls: List[bytes] = []

    async def transcribe(self, audio: bytes) -> str:
        self.calls.append(audio)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.text


class FakeSynthesis(SynthesisBackend):
    def __init__(self, name: str = "hosted", hosted: bool = True, payload: bytes = b"RIFF-fake"):
        self.name = name
        self.hosted = hosted
        self.payload = payload
        self.available = True
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[str] = []

    def is_available(self) -> bool:
        return self.available

    async def synthesize(self, text: str, voice: Voice) -> bytes:
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return self.payload


class FakeOutput(AudioOutput):
    """Audio output that records what it was asked to play."""

    def __init__(self):
        self.started: List[bytes] = []
        self.volume: Optional[float] = None
        self.stop_count = 0
        self.paused = False
        self._on_finished: Optional[Callable[[], None]] = None

    def start(self, payload, volume, on_finished):
        self.started.append(payload)
        self.volume = volume
        self._on_finished = on_finished

    def stop(self):
        self.stop_count += 1

    def pause(self):
        self.paused = True

    def resume(self):
        self.paused = False

    def set_volume(self, volume):
        self.volume = volume

    def finish(self):
        self._on_finished()


class FakeResponder(ResponseGenerator):
    def __init__(self):
        self.reply = TutorReply(
            response_text="Photosynthesis is how plants turn light into chemical energy.",
            source_citations=[SourceCitation(document_id="d1", filename="bio101.pdf")],
            model="tutor-1",
        )
        self.error: Optional[Exception] = None
        self.delay = 0.0
        self.calls: List[dict] = []

    async def ask(self, question, conversation_id, topic, use_documents):
        self.calls.append(dict(
            question=question, conversation_id=conversation_id, topic=topic, use_documents=use_documents
        ))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def microphone():
    return FakeMicrophone()


@pytest.fixture
def stt():
    return FakeSpeechToText()


@pytest.fixture
def transcriber(stt):
    return TranscriptionClient(stt, max_clip_bytes=1024 * 1024, timeout=1.0)


@pytest.fixture
def output():
    return FakeOutput()


@pytest.fixture
def responder():
    return FakeResponder()


@pytest.fixture
def hosted_backend():
    return FakeSynthesis(name="hosted", hosted=True, payload=b"hosted-wav")


@pytest.fixture
def local_backend():
    return FakeSynthesis(name="local", hosted=False, payload=b"local-wav")
