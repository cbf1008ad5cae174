"""Message database model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class MessageDO:
    """Message data object - maps to messages table."""

    id: str
    conversation_id: str
    sender: str
    content: str
    timestamp: datetime = field(default_factory=datetime.utcnow)
    seq: Optional[int] = None
    is_important: bool = False
    feedback_rating: Optional[int] = None
    attachment: Optional[Dict[str, Any]] = None
    source_citations: List[Dict[str, Any]] = field(default_factory=list)
