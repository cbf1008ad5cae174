"""Tutoring session models."""

from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field


class Session(BaseModel):
    """Persisted tutoring session record."""

    id: str = Field(description="Session ID")
    owner_id: str = Field(description="Owning user")
    organization_id: str = Field(description="Owning organization (school)")
    topic: Optional[str] = Field(None, description="Topic or content used")
    started_at: datetime = Field(description="Start timestamp")
    ended_at: Optional[datetime] = Field(None, description="End timestamp, immutable once set")
    query_count: int = Field(default=0, description="Number of queries asked")
    performance_data: Optional[Dict[str, Any]] = Field(None, description="Summary recorded at end")

    @property
    def is_open(self) -> bool:
        return self.ended_at is None


class CreateSessionRequest(BaseModel):
    """Request model for starting a session."""

    owner_id: str = Field(description="Owning user", min_length=1)
    organization_id: str = Field(description="Owning organization", min_length=1)
    topic: Optional[str] = Field(None, description="Initial topic")


class UpdateTopicRequest(BaseModel):
    """Request model for changing a session topic."""

    topic: str = Field(description="New topic", min_length=1)


class EndSessionRequest(BaseModel):
    """Request model for ending a session."""

    performance_data: Optional[Dict[str, Any]] = Field(None, description="Performance summary")


class QueryCountResponse(BaseModel):
    """Response model for a query count increment."""

    session_id: str = Field(description="Session ID")
    query_count: int = Field(description="Query count after the increment")
