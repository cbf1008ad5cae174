"""Message models."""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Literal
from pydantic import BaseModel, Field


FeedbackRating = Literal[-1, 0, 1]


class Sender(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Attachment(BaseModel):
    """File or document attached to a message."""

    type: str = Field(description="Attachment type (document, video, image, ...)")
    id: str = Field(description="Attachment ID")
    name: str = Field(description="Display name")


class SourceCitation(BaseModel):
    """Grounding document referenced by an assistant message."""

    document_id: str = Field(description="Document ID")
    filename: str = Field(description="Document filename")
    excerpt: Optional[str] = Field(None, description="Relevant excerpt")
    relevance_score: Optional[float] = Field(None, description="Relevance reported by the responder")


class MessageDraft(BaseModel):
    """Message content before it has been persisted."""

    sender: Sender = Field(description="Message sender")
    content: str = Field(description="Message content")
    attachment: Optional[Attachment] = Field(None, description="Optional attachment")
    source_citations: List[SourceCitation] = Field(default_factory=list, description="Source citations")


class Message(BaseModel):
    """Persisted message record."""

    id: str = Field(description="Message ID")
    conversation_id: str = Field(description="Conversation ID")
    sender: Sender = Field(description="Message sender")
    content: str = Field(description="Message content")
    timestamp: datetime = Field(description="Message timestamp")
    is_important: bool = Field(default=False, description="Marked important by the user")
    feedback_rating: Optional[FeedbackRating] = Field(None, description="User feedback (-1, 0, 1)")
    attachment: Optional[Attachment] = Field(None, description="Optional attachment")
    source_citations: List[SourceCitation] = Field(default_factory=list, description="Source citations")


class CreateMessageRequest(BaseModel):
    """Request model for appending a message."""

    sender: Sender = Field(description="Message sender")
    content: str = Field(description="Message content", min_length=1)
    attachment: Optional[Attachment] = Field(None, description="Optional attachment")
    source_citations: List[SourceCitation] = Field(default_factory=list, description="Source citations")


class UpdateMessageRequest(BaseModel):
    """Request model for the permitted message mutations."""

    feedback_rating: Optional[FeedbackRating] = Field(None, description="User feedback (-1, 0, 1)")
    is_important: Optional[bool] = Field(None, description="Important flag")


class ConversationMessagesResponse(BaseModel):
    """Response model for conversation messages."""

    conversation_id: str = Field(description="Conversation ID")
    messages: List[Message] = Field(description="List of messages")
    total: int = Field(description="Total number of messages")
