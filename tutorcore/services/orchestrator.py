"""Top-level coordinator for chat turns."""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .audio_capture import AudioCaptureController, MicrophoneBackend, SoundDeviceMicrophone
from .context import SessionContext
from .conversation_store import ConversationStore, Timeline
from .response_generation import HttpResponseGenerator, ResponseGenerator, TutorReply
from .session_tracker import SessionTracker
from .speech_synthesis import AudioOutput, SpeechSynthesisController
from .transcription import TranscriptionClient
from ..config import ChatOptions
from ..db.persistence import PersistenceService
from ..errors import (
    ExternalServiceError,
    InvalidState,
    PersistenceError,
    ServiceTimeout,
    TransientNetworkError,
    TutorCoreError,
    ValidationError,
)
from ..models import Message, MessageDraft, Notice, NoticeLevel, Sender
from ..utils.logger import get_app_logger


class TurnState(str, Enum):
    COMPOSING = "composing"
    SUBMITTING = "submitting"
    AWAITING = "awaiting"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class TurnResult:
    """Outcome of one submitted turn."""

    state: TurnState
    user_message: Optional[Message] = None
    reply: Optional[Message] = None
    error: Optional[TutorCoreError] = None


def describe_failure(error: TutorCoreError) -> str:
    """User-facing text for a failed turn."""
    if isinstance(error, ServiceTimeout):
        return "The tutor took too long to respond. Please try again."
    if isinstance(error, TransientNetworkError):
        return "Could not reach the tutor service. Check your connection and try again."
    if isinstance(error, PersistenceError):
        return "The reply could not be saved. Please try again."
    return "The tutor could not answer right now. Please try again."


class ChatOrchestrator:
    """
    Drives one conversation view through its chat turns.

    Exactly one turn is in flight at a time. Service and persistence failures
    become visible system messages; the user's own message is only rolled
    back when its append failed.
    """

    def __init__(
        self,
        context: SessionContext,
        store: ConversationStore,
        sessions: SessionTracker,
        responder: ResponseGenerator,
        options: ChatOptions,
        synthesis: Optional[SpeechSynthesisController] = None,
        response_timeout: float = 60.0,
        on_notice: Optional[Callable[[Notice], None]] = None
    ):
        self.context = context
        self.store = store
        self.sessions = sessions
        self.responder = responder
        self.options = options
        self.synthesis = synthesis
        self.response_timeout = response_timeout
        self.on_notice = on_notice
        self.logger = get_app_logger("orchestrator")

        self.timeline = Timeline()
        self.state = TurnState.COMPOSING
        self._busy = False
        self._playback_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(
        cls,
        settings,
        persistence: PersistenceService,
        owner_id: str,
        organization_id: str,
        topic: Optional[str] = None,
        responder: Optional[ResponseGenerator] = None,
        output: Optional[AudioOutput] = None,
        on_notice: Optional[Callable[[Notice], None]] = None
    ) -> "ChatOrchestrator":
        """Wire a conversation view from application settings."""
        context = SessionContext(owner_id=owner_id, organization_id=organization_id, topic=topic)
        options = settings.chat_options()

        synthesis = None
        if options.auto_play_synthesis or output is not None:
            synthesis = SpeechSynthesisController.from_settings(settings, output=output, on_notice=on_notice)

        if responder is None:
            if not settings.ask_url:
                raise ValueError("ask_url must be configured to build a response generator")
            responder = HttpResponseGenerator(settings.ask_url, settings.ask_api_key)

        return cls(
            context=context,
            store=ConversationStore(persistence, context, settings.persistence_timeout),
            sessions=SessionTracker(
                persistence,
                context,
                settings.persistence_timeout,
                single_open_session=settings.single_open_session
            ),
            responder=responder,
            options=options,
            synthesis=synthesis,
            response_timeout=settings.response_timeout,
            on_notice=on_notice,
        )

    def voice_input(
        self,
        transcriber: TranscriptionClient,
        microphone: Optional[MicrophoneBackend] = None
    ) -> AudioCaptureController:
        """Build a capture controller that feeds transcripts into this view."""
        return AudioCaptureController(
            transcriber=transcriber,
            microphone=microphone or SoundDeviceMicrophone(),
            on_transcript=self.submit_transcript,
            on_notice=self.on_notice,
            max_clip_duration=self.options.max_clip_duration,
        )

    @property
    def busy(self) -> bool:
        return self._busy

    def _set_state(self, state: TurnState):
        self.logger.debug(f"Turn state {self.state.value} -> {state.value}")
        self.state = state

    def _add_local_system(self, content: str) -> Message:
        message = Message(
            id=f"local-{uuid.uuid4()}",
            conversation_id=self.context.conversation_id or "",
            sender=Sender.SYSTEM,
            content=content,
            timestamp=datetime.utcnow(),
        )
        self.timeline.add_local(message)
        return message

    async def _append_system(self, conversation_id: str, content: str) -> Message:
        """Show a failure in the timeline, persisting it when possible."""
        try:
            message = await self.store.append_message(
                conversation_id,
                MessageDraft(sender=Sender.SYSTEM, content=content)
            )
        except PersistenceError as e:
            self.logger.warning(f"System message kept local only: {e}")
            return self._add_local_system(content)

        self.timeline.append(message)
        return message

    async def _ask(self, question: str, conversation_id: str) -> TutorReply:
        try:
            return await asyncio.wait_for(
                self.responder.ask(question, conversation_id, self.context.topic, self.options.use_documents),
                timeout=self.response_timeout
            )
        except asyncio.TimeoutError as e:
            raise ServiceTimeout(f"Response generation timed out after {self.response_timeout}s") from e
        except TutorCoreError:
            raise
        except Exception as e:
            raise ExternalServiceError(f"Response generation failed: {e}") from e

    async def submit(self, text: str) -> TurnResult:
        """
        Run one chat turn.

        Args:
            text: Typed or transcribed question

        Returns:
            TurnResult with the final turn state

        Raises:
            InvalidState: A turn is already in flight
            ValidationError: Empty or whitespace-only input
        """
        if self._busy:
            raise InvalidState("A message is already being answered")

        question = (text or "").strip()
        if not question:
            raise ValidationError("Message cannot be empty")

        self._busy = True
        try:
            return await self._run_turn(question)
        finally:
            self._busy = False

    async def submit_transcript(self, text: str) -> TurnResult:
        """Voice entry point; same path as typed input."""
        return await self.submit(text)

    async def _run_turn(self, question: str) -> TurnResult:
        self._set_state(TurnState.SUBMITTING)
        draft = MessageDraft(sender=Sender.USER, content=question)
        temp_id = self.timeline.add_pending(draft, self.context.conversation_id)

        try:
            conversation_id = await self.store.ensure_conversation()
            user_message = await self.store.append_message(conversation_id, draft)
        except PersistenceError as e:
            self.logger.error(f"User message not saved: {e}")
            self.timeline.discard(temp_id)
            self.sessions.record_error()
            self._add_local_system("Your message could not be saved. Please try again.")
            self._set_state(TurnState.FAILED)
            return TurnResult(state=TurnState.FAILED, error=e)

        self.timeline.confirm(temp_id, user_message)

        await self.sessions.start_session(self.context.topic)
        await self.sessions.increment_query_count()

        self._set_state(TurnState.AWAITING)
        try:
            reply = await self._ask(question, conversation_id)
        except TutorCoreError as e:
            self.logger.warning(f"Response generation failed: {e}")
            self.sessions.record_error()
            await self._append_system(conversation_id, describe_failure(e))
            self._set_state(TurnState.FAILED)
            return TurnResult(state=TurnState.FAILED, user_message=user_message, error=e)

        try:
            assistant = await self.store.append_message(
                conversation_id,
                MessageDraft(
                    sender=Sender.ASSISTANT,
                    content=reply.response_text,
                    source_citations=reply.source_citations
                )
            )
        except PersistenceError as e:
            self.logger.error(f"Assistant reply not saved: {e}")
            self.sessions.record_error()
            self._add_local_system(describe_failure(e))
            self._set_state(TurnState.FAILED)
            return TurnResult(state=TurnState.FAILED, user_message=user_message, error=e)

        self.timeline.append(assistant)
        if self.options.auto_play_synthesis and self.synthesis is not None:
            self._start_playback(assistant)

        self._set_state(TurnState.RESOLVED)
        return TurnResult(state=TurnState.RESOLVED, user_message=user_message, reply=assistant)

    def _start_playback(self, message: Message):
        self._playback_task = asyncio.create_task(self._play(message))

    async def _play(self, message: Message):
        try:
            await self.synthesis.play(message.id, message.content, self.options.voice)
        except TutorCoreError as e:
            self.logger.warning(f"Playback of {message.id} failed: {e}")
            if self.on_notice is not None:
                self.on_notice(Notice(level=NoticeLevel.WARNING, message=str(e), source="playback"))

    async def play_message(self, message_id: str):
        """Speak a message from the timeline."""
        if self.synthesis is None:
            raise InvalidState("Speech output is not configured")
        entry = self.timeline.get(message_id)
        if entry is None:
            raise ValidationError(f"Unknown message: {message_id}")
        await self.synthesis.play(entry.message.id, entry.message.content, self.options.voice)

    async def load(self, conversation_id: str):
        """Bind an existing conversation and show its committed history."""
        if self._busy:
            raise InvalidState("Cannot switch conversations while a message is being answered")

        history = await self.store.load_history(conversation_id)
        self.context.conversation_id = conversation_id
        self.timeline.replace_all(history)
        self._set_state(TurnState.COMPOSING)

    async def close(self):
        """Stop playback and end the session; in-flight writes keep running."""
        if self.synthesis is not None:
            self.synthesis.stop()
        if self._playback_task is not None and not self._playback_task.done():
            self._playback_task.cancel()
        await self.sessions.end_session()
