"""Best-effort tutoring session lifecycle."""

import asyncio
from datetime import datetime
from typing import Any, Dict, Optional

from .context import SessionContext, SessionState
from ..db.persistence import PersistenceService
from ..utils.logger import get_app_logger


class SessionTracker:
    """
    Sole writer of Session records for one SessionContext.

    Session tracking is telemetry: every persistence failure is logged and
    swallowed so it never blocks the chat path.
    """

    def __init__(
        self,
        persistence: PersistenceService,
        context: SessionContext,
        timeout: float = 10.0,
        single_open_session: bool = False
    ):
        self.persistence = persistence
        self.context = context
        self.timeout = timeout
        self.single_open_session = single_open_session
        self.logger = get_app_logger("session_tracker")
        self.query_count = 0
        self._lock = asyncio.Lock()

    async def _call(self, coro):
        return await asyncio.wait_for(coro, timeout=self.timeout)

    async def start_session(self, topic: Optional[str] = None) -> Optional[str]:
        """
        Start a session unless one is already active in this context.

        Args:
            topic: Optional topic; defaults to the context topic

        Returns:
            The active session id, or None if it could not be started
        """
        async with self._lock:
            if self.context.has_active_session:
                return self.context.session_id

            topic = topic if topic is not None else self.context.topic
            started_at = datetime.utcnow()
            session_id = None
            query_count = 0

            try:
                if self.single_open_session:
                    existing = await self._call(self.persistence.find_open_session(self.context.owner_id))
                    if existing is not None:
                        session_id = existing.id
                        started_at = existing.started_at
                        query_count = existing.query_count
                        self.logger.info(f"Adopted open session {session_id} for {self.context.owner_id}")

                if session_id is None:
                    session_id = await self._call(self.persistence.create_session(
                        self.context.owner_id,
                        self.context.organization_id,
                        topic
                    ))
            except Exception as e:
                self.logger.error(f"Failed to start session for {self.context.owner_id}: {e}")
                return None

            self.context.session_id = session_id
            self.context.session_state = SessionState.ACTIVE
            self.context.started_at = started_at
            self.context.topic = topic
            self.context.error_count = 0
            self.query_count = query_count
            self.logger.info(f"Session {session_id} active")
            return session_id

    async def update_topic(self, topic: str):
        """Change the topic of the active session."""
        if not self.context.has_active_session:
            self.logger.debug("No active session, topic update skipped")
            return

        try:
            await self._call(self.persistence.update_session_topic(self.context.session_id, topic))
            self.context.topic = topic
        except Exception as e:
            self.logger.warning(f"Failed to update topic of session {self.context.session_id}: {e}")

    async def increment_query_count(self) -> Optional[int]:
        """Count one submitted turn against the active session."""
        if not self.context.has_active_session:
            self.logger.debug("No active session, query count skipped")
            return None

        try:
            count = await self._call(self.persistence.increment_query_count(self.context.session_id))
        except Exception as e:
            self.logger.warning(f"Failed to increment query count of session {self.context.session_id}: {e}")
            return None

        self.query_count = count
        return count

    def record_error(self):
        self.context.error_count += 1

    def performance_summary(self) -> Dict[str, Any]:
        started_at = self.context.started_at or datetime.utcnow()
        return {
            "duration_seconds": int((datetime.utcnow() - started_at).total_seconds()),
            "queries": self.query_count,
            "errors": self.context.error_count,
        }

    async def end_session(self, performance_data: Optional[Dict[str, Any]] = None):
        """End the active session; a second call is a no-op."""
        async with self._lock:
            if not self.context.has_active_session:
                self.logger.debug("No active session to end")
                return

            session_id = self.context.session_id
            self.context.session_state = SessionState.ENDED

            summary = self.performance_summary()
            summary.update(performance_data or {})

            try:
                ended = await self._call(self.persistence.end_session(session_id, summary))
            except Exception as e:
                self.logger.error(f"Failed to end session {session_id}: {e}")
                return

            if ended:
                self.logger.info(f"Session {session_id} ended")
            else:
                self.logger.info(f"Session {session_id} was already ended")
