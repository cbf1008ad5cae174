"""Non-fatal user notices (shown as toasts, never as chat messages)."""

from enum import Enum
from pydantic import BaseModel, Field


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notice(BaseModel):
    """A transient notice for the user."""

    level: NoticeLevel = Field(default=NoticeLevel.INFO, description="Severity")
    message: str = Field(description="Human readable text")
    source: str = Field(default="", description="Component that raised the notice")
