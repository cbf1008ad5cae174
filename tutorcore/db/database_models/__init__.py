"""Database models (Data Objects) - map to database tables."""

from .conversation import ConversationDO
from .message import MessageDO
from .session import SessionDO

__all__ = ["ConversationDO", "MessageDO", "SessionDO"]
