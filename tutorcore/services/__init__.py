"""Orchestration services."""

from .context import SessionContext, SessionState
from .audio_capture import (
    AudioCaptureController,
    CaptureState,
    MicrophoneBackend,
    MicrophoneStream,
    SoundDeviceMicrophone,
)
from .transcription import OpenAITranscriptionBackend, SpeechToTextBackend, TranscriptionClient
from .speech_synthesis import (
    AudioOutput,
    HostedSynthesisBackend,
    LocalSynthesisBackend,
    PlaybackState,
    SoundDeviceOutput,
    SpeechCapabilities,
    SpeechSynthesisController,
    SynthesisBackend,
)
from .session_tracker import SessionTracker
from .conversation_store import ConversationStore, Timeline, TimelineEntry, derive_title
from .response_generation import HttpResponseGenerator, ResponseGenerator, TutorReply
from .orchestrator import ChatOrchestrator, TurnResult, TurnState

__all__ = [
    "SessionContext",
    "SessionState",
    "AudioCaptureController",
    "CaptureState",
    "MicrophoneBackend",
    "MicrophoneStream",
    "SoundDeviceMicrophone",
    "OpenAITranscriptionBackend",
    "SpeechToTextBackend",
    "TranscriptionClient",
    "AudioOutput",
    "HostedSynthesisBackend",
    "LocalSynthesisBackend",
    "PlaybackState",
    "SoundDeviceOutput",
    "SpeechCapabilities",
    "SpeechSynthesisController",
    "SynthesisBackend",
    "SessionTracker",
    "ConversationStore",
    "Timeline",
    "TimelineEntry",
    "derive_title",
    "HttpResponseGenerator",
    "ResponseGenerator",
    "TutorReply",
    "ChatOrchestrator",
    "TurnResult",
    "TurnState",
]
