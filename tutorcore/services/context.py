"""Per-view session context shared by the orchestration components."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    """Lifecycle of the tutoring session tracked by a context."""

    NONE = "none"
    ACTIVE = "active"
    ENDED = "ended"


@dataclass
class SessionContext:
    """
    Explicit handle for one conversation view.

    Created once per view and passed to SessionTracker, ConversationStore and
    ChatOrchestrator. Nothing about the current session lives at module level.
    """

    owner_id: str
    organization_id: str
    topic: Optional[str] = None
    conversation_id: Optional[str] = None
    session_id: Optional[str] = None
    session_state: SessionState = SessionState.NONE
    started_at: Optional[datetime] = None
    error_count: int = 0

    @property
    def has_active_session(self) -> bool:
        return self.session_state == SessionState.ACTIVE and self.session_id is not None
