"""Conversation models."""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field


class Conversation(BaseModel):
    """Persisted conversation record."""

    id: str = Field(description="Conversation ID")
    owner_id: str = Field(description="Owning user")
    organization_id: str = Field(description="Owning organization (school)")
    title: Optional[str] = Field(None, description="Conversation title")
    topic: Optional[str] = Field(None, description="Conversation topic")
    tags: List[str] = Field(default_factory=list, description="Tags")
    category: Optional[str] = Field(None, description="Category")
    summary: Optional[str] = Field(None, description="Summary")
    starred: bool = Field(default=False, description="Starred by the owner")
    created_at: datetime = Field(description="Creation timestamp")
    last_message_at: datetime = Field(description="Timestamp of the latest message")


class CreateConversationRequest(BaseModel):
    """Request model for creating a conversation."""

    owner_id: str = Field(description="Owning user", min_length=1)
    organization_id: str = Field(description="Owning organization", min_length=1)
    topic: Optional[str] = Field(None, description="Conversation topic")
    title: Optional[str] = Field(None, description="Conversation title", max_length=200)


class UpdateConversationRequest(BaseModel):
    """Request model for updating conversation metadata."""

    title: Optional[str] = Field(None, description="New title", min_length=1, max_length=200)
    tags: Optional[List[str]] = Field(None, description="Replacement tag list")
    category: Optional[str] = Field(None, description="Category")
    summary: Optional[str] = Field(None, description="Summary")
    starred: Optional[bool] = Field(None, description="Starred flag")


class ConversationListResponse(BaseModel):
    """Response model for listing conversations."""

    conversations: List[Conversation] = Field(description="List of conversations")
    total: int = Field(description="Total number of conversations")
