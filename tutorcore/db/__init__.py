"""Database package - connection, models, repositories and persistence service."""

from .connection import DatabaseConnection
from .repositories.conversation import ConversationRepository
from .repositories.message import MessageRepository
from .repositories.session import SessionRepository
from .persistence import PersistenceService, DuckDBPersistence

__all__ = [
    "DatabaseConnection",
    "ConversationRepository",
    "MessageRepository",
    "SessionRepository",
    "PersistenceService",
    "DuckDBPersistence",
]
