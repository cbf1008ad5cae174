"""Conversation metadata, message persistence and the visible timeline."""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Set

from .context import SessionContext
from ..db.persistence import PersistenceService
from ..errors import PersistenceError, ValidationError
from ..models import Conversation, Message, MessageDraft, Sender
from ..utils.logger import get_app_logger


TITLE_MAX_CHARS = 60


def derive_title(text: str) -> str:
    """Build a conversation title from the first user message."""
    collapsed = " ".join(text.split())
    if len(collapsed) <= TITLE_MAX_CHARS:
        return collapsed
    return collapsed[:TITLE_MAX_CHARS] + "..."


@dataclass
class TimelineEntry:
    key: str
    message: Message
    pending: bool = False
    local: bool = False


class Timeline:
    """
    Client-side message list indexed by key.

    Optimistic entries live under a temporary key until confirm() swaps in
    the persisted record at the same position, or discard() removes them.
    """

    def __init__(self):
        self._order: List[str] = []
        self._entries: Dict[str, TimelineEntry] = {}

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[TimelineEntry]:
        return self._entries.get(key)

    def _insert(self, entry: TimelineEntry) -> str:
        self._order.append(entry.key)
        self._entries[entry.key] = entry
        return entry.key

    def add_pending(self, draft: MessageDraft, conversation_id: Optional[str] = None) -> str:
        temp_id = f"temp-{uuid.uuid4()}"
        message = Message(
            id=temp_id,
            conversation_id=conversation_id or "",
            sender=draft.sender,
            content=draft.content,
            timestamp=datetime.utcnow(),
            attachment=draft.attachment,
            source_citations=draft.source_citations,
        )
        return self._insert(TimelineEntry(key=temp_id, message=message, pending=True))

    def confirm(self, temp_id: str, message: Message):
        if temp_id not in self._entries:
            raise KeyError(temp_id)
        index = self._order.index(temp_id)
        self._order[index] = message.id
        del self._entries[temp_id]
        self._entries[message.id] = TimelineEntry(key=message.id, message=message)

    def discard(self, temp_id: str):
        if self._entries.pop(temp_id, None) is not None:
            self._order.remove(temp_id)

    def append(self, message: Message) -> str:
        """Add an already persisted message."""
        return self._insert(TimelineEntry(key=message.id, message=message))

    def add_local(self, message: Message) -> str:
        """Add a message that exists only on this client."""
        return self._insert(TimelineEntry(key=message.id, message=message, local=True))

    def replace_all(self, history: List[Message]):
        self._order = []
        self._entries = {}
        for message in history:
            self.append(message)

    @property
    def entries(self) -> List[TimelineEntry]:
        return [self._entries[key] for key in self._order]

    @property
    def messages(self) -> List[Message]:
        return [entry.message for entry in self.entries]


class ConversationStore:
    """Sole writer of Conversation and Message records."""

    def __init__(self, persistence: PersistenceService, context: SessionContext, timeout: float = 10.0):
        self.persistence = persistence
        self.context = context
        self.timeout = timeout
        self.logger = get_app_logger("conversation_store")
        self._titled: Set[str] = set()

    async def _call(self, coro, action: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise PersistenceError(f"Timed out after {self.timeout}s: {action}") from e

    async def create_conversation(self, topic: Optional[str] = None, title: Optional[str] = None) -> str:
        """Create a conversation and bind it to the context."""
        conversation_id = await self._call(
            self.persistence.create_conversation(
                self.context.owner_id,
                self.context.organization_id,
                topic if topic is not None else self.context.topic,
                title
            ),
            "create conversation"
        )
        if title:
            self._titled.add(conversation_id)
        self.context.conversation_id = conversation_id
        self.logger.info(f"Created conversation {conversation_id}")
        return conversation_id

    async def ensure_conversation(self, topic: Optional[str] = None) -> str:
        if self.context.conversation_id:
            return self.context.conversation_id
        return await self.create_conversation(topic=topic)

    async def _pending_title(self, conversation_id: str, draft: MessageDraft) -> Optional[str]:
        if draft.sender != Sender.USER or conversation_id in self._titled:
            return None
        try:
            conversation = await self._call(self.persistence.get_conversation(conversation_id), "get conversation")
        except PersistenceError as e:
            self.logger.warning(f"Could not read conversation {conversation_id} for titling: {e}")
            return None

        self._titled.add(conversation_id)
        if conversation is None or conversation.title:
            return None
        return derive_title(draft.content)

    async def append_message(self, conversation_id: str, draft: MessageDraft) -> Message:
        """
        Persist a message and update the conversation metadata.

        Args:
            conversation_id: Conversation ID
            draft: Message content

        Returns:
            The authoritative persisted message

        Raises:
            PersistenceError: The write failed or timed out; nothing was exposed to readers
        """
        message = await self._call(
            self.persistence.append_message(
                conversation_id,
                draft.sender,
                draft.content,
                draft.attachment,
                draft.source_citations
            ),
            "append message"
        )
        title = await self._pending_title(conversation_id, draft)
        await self.update_conversation_meta(conversation_id, message.timestamp, title=title)
        return message

    async def load_history(self, conversation_id: str) -> List[Message]:
        return await self._call(self.persistence.list_messages(conversation_id), "load history")

    async def update_conversation_meta(
        self,
        conversation_id: str,
        last_message_at: datetime,
        title: Optional[str] = None,
        tags: Optional[List[str]] = None,
        category: Optional[str] = None
    ):
        try:
            await self._call(
                self.persistence.update_conversation(
                    conversation_id,
                    last_message_at=last_message_at,
                    title=title,
                    tags=tags,
                    category=category
                ),
                "update conversation"
            )
        except PersistenceError as e:
            self.logger.warning(f"Failed to update metadata of conversation {conversation_id}: {e}")

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return await self._call(self.persistence.get_conversation(conversation_id), "get conversation")

    async def list_conversations(self) -> List[Conversation]:
        return await self._call(self.persistence.list_conversations(self.context.owner_id), "list conversations")

    async def set_starred(self, conversation_id: str, starred: bool):
        await self._call(
            self.persistence.update_conversation(conversation_id, starred=starred),
            "star conversation"
        )

    async def rename_conversation(self, conversation_id: str, title: str):
        title = " ".join((title or "").split())
        if not title:
            raise ValidationError("Title cannot be empty")
        await self._call(
            self.persistence.update_conversation(conversation_id, title=title),
            "rename conversation"
        )
        self._titled.add(conversation_id)

    async def rate_message(self, message_id: str, rating: Optional[int]) -> Optional[Message]:
        if rating not in (-1, 0, 1, None):
            raise ValidationError(f"Invalid feedback rating: {rating}")
        return await self._call(
            self.persistence.update_message_flags(message_id, feedback_rating=rating),
            "rate message"
        )

    async def mark_important(self, message_id: str, flag: bool = True) -> Optional[Message]:
        return await self._call(
            self.persistence.update_message_flags(message_id, is_important=flag),
            "mark message"
        )
