"""Conversation database model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class ConversationDO:
    """Conversation data object - maps to conversations table."""

    id: str
    owner_id: str
    organization_id: str
    title: Optional[str] = None
    topic: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    category: Optional[str] = None
    summary: Optional[str] = None
    starred: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)
    last_message_at: datetime = field(default_factory=datetime.utcnow)
