"""Pydantic models for records and API request/response."""

from .message import (
    Sender,
    Attachment,
    SourceCitation,
    MessageDraft,
    Message,
    CreateMessageRequest,
    UpdateMessageRequest,
    ConversationMessagesResponse,
)
from .conversation import (
    Conversation,
    CreateConversationRequest,
    UpdateConversationRequest,
    ConversationListResponse,
)
from .session import (
    Session,
    CreateSessionRequest,
    UpdateTopicRequest,
    EndSessionRequest,
    QueryCountResponse,
)
from .notice import Notice, NoticeLevel

__all__ = [
    "Sender",
    "Attachment",
    "SourceCitation",
    "MessageDraft",
    "Message",
    "CreateMessageRequest",
    "UpdateMessageRequest",
    "ConversationMessagesResponse",
    "Conversation",
    "CreateConversationRequest",
    "UpdateConversationRequest",
    "ConversationListResponse",
    "Session",
    "CreateSessionRequest",
    "UpdateTopicRequest",
    "EndSessionRequest",
    "QueryCountResponse",
    "Notice",
    "NoticeLevel",
]
