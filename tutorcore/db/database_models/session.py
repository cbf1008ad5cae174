"""Session database model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class SessionDO:
    """Session data object - maps to sessions table."""

    id: str
    owner_id: str
    organization_id: str
    topic: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.utcnow)
    ended_at: Optional[datetime] = None
    query_count: int = 0
    performance_data: Optional[Dict[str, Any]] = None
