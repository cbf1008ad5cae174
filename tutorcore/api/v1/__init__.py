"""API v1 package."""

from .conversations import router as conversations_router
from .sessions import router as sessions_router

__all__ = ["conversations_router", "sessions_router"]
