"""Repository layer for data access."""

from .conversation import ConversationRepository
from .message import MessageRepository
from .session import SessionRepository

__all__ = ["ConversationRepository", "MessageRepository", "SessionRepository"]
