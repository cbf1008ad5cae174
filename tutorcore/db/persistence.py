"""Persistence service consumed by the orchestration core."""

import asyncio
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .connection import DatabaseConnection
from .database_models import ConversationDO, MessageDO, SessionDO
from .repositories import ConversationRepository, MessageRepository, SessionRepository
from ..errors import InvalidState, PersistenceError
from ..models import Attachment, Conversation, Message, Sender, Session, SourceCitation
from ..utils.logger import get_app_logger


# Marks an argument the caller did not pass (None is a valid rating)
UNSET: Any = object()


class PersistenceService(ABC):
    """Contract for conversation, message and session storage."""

    @abstractmethod
    async def create_conversation(
        self,
        owner_id: str,
        organization_id: str,
        topic: Optional[str] = None,
        title: Optional[str] = None
    ) -> str:
        pass

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        pass

    @abstractmethod
    async def list_conversations(self, owner_id: str) -> List[Conversation]:
        pass

    @abstractmethod
    async def update_conversation(
        self,
        conversation_id: str,
        last_message_at: Optional[datetime] = None,
        title: Optional[str] = None,
        tags: Optional[List[str]] = None,
        category: Optional[str] = None,
        starred: Optional[bool] = None,
        summary: Optional[str] = None
    ) -> None:
        pass

    @abstractmethod
    async def append_message(
        self,
        conversation_id: str,
        sender: Sender,
        content: str,
        attachment: Optional[Attachment] = None,
        source_citations: Optional[List[SourceCitation]] = None
    ) -> Message:
        pass

    @abstractmethod
    async def list_messages(self, conversation_id: str) -> List[Message]:
        pass

    @abstractmethod
    async def get_message(self, message_id: str) -> Optional[Message]:
        pass

    @abstractmethod
    async def update_message_flags(
        self,
        message_id: str,
        feedback_rating: Optional[int] = UNSET,
        is_important: Optional[bool] = None
    ) -> Optional[Message]:
        pass

    @abstractmethod
    async def create_session(
        self,
        owner_id: str,
        organization_id: str,
        topic: Optional[str] = None
    ) -> str:
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[Session]:
        pass

    @abstractmethod
    async def find_open_session(self, owner_id: str) -> Optional[Session]:
        pass

    @abstractmethod
    async def update_session_topic(self, session_id: str, topic: str) -> None:
        pass

    @abstractmethod
    async def increment_query_count(self, session_id: str) -> int:
        pass

    @abstractmethod
    async def end_session(self, session_id: str, performance_data: Optional[Dict[str, Any]] = None) -> bool:
        pass


def _to_conversation(conv: ConversationDO) -> Conversation:
    return Conversation(**asdict(conv))


def _to_message(msg: MessageDO) -> Message:
    data = asdict(msg)
    data.pop("seq")
    return Message(**data)


def _to_session(session: SessionDO) -> Session:
    return Session(**asdict(session))


class DuckDBPersistence(PersistenceService):
    """
    PersistenceService backed by DuckDB.

    Repository calls run in a worker thread. A thread lock held inside the
    worker keeps statement sequences on the shared connection serialized even
    when the awaiting coroutine is cancelled; a cancelled write still runs to
    completion or failure.
    """

    def __init__(self, db: DatabaseConnection):
        """
        Initialize persistence over an open database connection.

        Args:
            db: DatabaseConnection instance
        """
        self.db = db
        self.conversations = ConversationRepository(db.conn)
        self.messages = MessageRepository(db.conn)
        self.sessions = SessionRepository(db.conn)
        self.logger = get_app_logger("persistence")
        self._lock = threading.Lock()

    def _locked(self, fn: Callable, *args):
        with self._lock:
            return fn(*args)

    async def _run(self, fn: Callable, *args):
        return await asyncio.to_thread(self._locked, fn, *args)

    # Conversations

    async def create_conversation(self, owner_id, organization_id, topic=None, title=None) -> str:
        now = datetime.utcnow()
        conv = ConversationDO(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            organization_id=organization_id,
            title=title,
            topic=topic,
            created_at=now,
            last_message_at=now
        )
        if not await self._run(self.conversations.create, conv):
            raise PersistenceError(f"Failed to create conversation for {owner_id}")
        return conv.id

    async def get_conversation(self, conversation_id):
        conv = await self._run(self.conversations.get, conversation_id)
        return _to_conversation(conv) if conv else None

    async def list_conversations(self, owner_id):
        convs = await self._run(self.conversations.list_by_owner, owner_id)
        if convs is None:
            raise PersistenceError(f"Failed to list conversations for {owner_id}")
        return [_to_conversation(c) for c in convs]

    async def update_conversation(
        self,
        conversation_id,
        last_message_at=None,
        title=None,
        tags=None,
        category=None,
        starred=None,
        summary=None
    ):
        updates = {
            key: value
            for key, value in (
                ("last_message_at", last_message_at),
                ("title", title),
                ("tags", tags),
                ("category", category),
                ("starred", starred),
                ("summary", summary),
            )
            if value is not None
        }
        if not await self._run(self.conversations.update, conversation_id, updates):
            raise PersistenceError(f"Failed to update conversation {conversation_id}")

    # Messages

    def _append(self, msg: MessageDO) -> Optional[MessageDO]:
        if self.conversations.get(msg.conversation_id) is None:
            self.logger.error(f"Cannot append to unknown conversation {msg.conversation_id}")
            return None
        return self.messages.add(msg)

    async def append_message(self, conversation_id, sender, content, attachment=None, source_citations=None):
        msg = MessageDO(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            sender=Sender(sender).value,
            content=content,
            timestamp=datetime.utcnow(),
            attachment=attachment.model_dump() if attachment else None,
            source_citations=[c.model_dump() for c in source_citations or []]
        )
        stored = await self._run(self._append, msg)
        if stored is None:
            raise PersistenceError(f"Failed to append message to conversation {conversation_id}")
        return _to_message(stored)

    async def list_messages(self, conversation_id):
        msgs = await self._run(self.messages.get_by_conversation, conversation_id)
        if msgs is None:
            raise PersistenceError(f"Failed to load messages for conversation {conversation_id}")
        return [_to_message(m) for m in msgs]

    async def get_message(self, message_id):
        msg = await self._run(self.messages.get, message_id)
        return _to_message(msg) if msg else None

    async def update_message_flags(self, message_id, feedback_rating=UNSET, is_important=None):
        if feedback_rating is not UNSET and feedback_rating not in (-1, 0, 1, None):
            raise ValueError(f"Invalid feedback rating: {feedback_rating}")

        updates: Dict[str, Any] = {}
        if feedback_rating is not UNSET:
            updates["feedback_rating"] = feedback_rating
        if is_important is not None:
            updates["is_important"] = is_important

        if not await self._run(self.messages.update_flags, message_id, updates):
            raise PersistenceError(f"Failed to update message {message_id}")
        return await self.get_message(message_id)

    # Sessions

    async def create_session(self, owner_id, organization_id, topic=None):
        session = SessionDO(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            organization_id=organization_id,
            topic=topic,
            started_at=datetime.utcnow()
        )
        if not await self._run(self.sessions.create, session):
            raise PersistenceError(f"Failed to create session for {owner_id}")
        return session.id

    async def get_session(self, session_id):
        session = await self._run(self.sessions.get, session_id)
        return _to_session(session) if session else None

    async def find_open_session(self, owner_id):
        session = await self._run(self.sessions.find_open, owner_id)
        return _to_session(session) if session else None

    async def update_session_topic(self, session_id, topic):
        updated = await self._run(self.sessions.update_topic, session_id, topic)
        if updated is None:
            raise PersistenceError(f"Failed to update topic of session {session_id}")
        if not updated:
            raise InvalidState(f"Session {session_id} is not open")

    async def increment_query_count(self, session_id):
        count = await self._run(self.sessions.increment_query_count, session_id)
        if count is None:
            raise PersistenceError(f"Failed to increment query count of session {session_id}")
        if count == 0:
            raise InvalidState(f"Session {session_id} is not open")
        return count

    async def end_session(self, session_id, performance_data=None):
        ended = await self._run(self.sessions.end, session_id, performance_data)
        if ended is None:
            raise PersistenceError(f"Failed to end session {session_id}")
        return ended
