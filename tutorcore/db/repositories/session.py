"""Session repository for database operations."""

from datetime import datetime
from typing import Optional, Dict, Any
from .base import BaseRepository
from ..database_models.session import SessionDO


_COLUMNS = "id, owner_id, organization_id, topic, started_at, ended_at, query_count, performance_data"


class SessionRepository(BaseRepository):
    """
    Repository for tutoring session records.

    Mutating methods only touch open sessions (ended_at IS NULL). They return
    None when the statement itself failed, and False when no open session
    matched.
    """

    def _from_row(self, row) -> SessionDO:
        return SessionDO(
            id=row[0],
            owner_id=row[1],
            organization_id=row[2],
            topic=row[3],
            started_at=row[4],
            ended_at=row[5],
            query_count=row[6],
            performance_data=self._load_json(row[7])
        )

    def create(self, session: SessionDO) -> bool:
        """
        Create a new session record.

        Args:
            session: SessionDO instance

        Returns:
            True if successful, False otherwise
        """
        try:
            self.conn.execute(f"""
                INSERT INTO sessions ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, [
                session.id,
                session.owner_id,
                session.organization_id,
                session.topic,
                session.started_at,
                session.ended_at,
                session.query_count,
                self._dump_json(session.performance_data)
            ])
            self.conn.commit()
            self.logger.info(f"Created session record: {session.id}")
            return True
        except Exception as e:
            self.logger.error(f"Failed to create session: {e}")
            return False

    def get(self, session_id: str) -> Optional[SessionDO]:
        """
        Get session by ID.

        Args:
            session_id: Session ID

        Returns:
            SessionDO instance or None
        """
        try:
            result = self.conn.execute(f"""
                SELECT {_COLUMNS} FROM sessions WHERE id = ?
            """, [session_id]).fetchone()
            return self._from_row(result) if result else None
        except Exception as e:
            self.logger.error(f"Failed to get session {session_id}: {e}")
            return None

    def find_open(self, owner_id: str) -> Optional[SessionDO]:
        """
        Get the most recently started open session for an owner.

        Args:
            owner_id: Owner (user) ID

        Returns:
            SessionDO instance or None
        """
        try:
            result = self.conn.execute(f"""
                SELECT {_COLUMNS}
                FROM sessions
                WHERE owner_id = ? AND ended_at IS NULL
                ORDER BY started_at DESC
                LIMIT 1
            """, [owner_id]).fetchone()
            return self._from_row(result) if result else None
        except Exception as e:
            self.logger.error(f"Failed to find open session for {owner_id}: {e}")
            return None

    def update_topic(self, session_id: str, topic: str) -> Optional[bool]:
        """
        Change the topic of an open session.

        Args:
            session_id: Session ID
            topic: New topic

        Returns:
            True if updated, False if no open session matched, None on failure
        """
        try:
            result = self.conn.execute("""
                UPDATE sessions SET topic = ?
                WHERE id = ? AND ended_at IS NULL
                RETURNING id
            """, [topic, session_id]).fetchone()
            self.conn.commit()
            return result is not None
        except Exception as e:
            self.logger.error(f"Failed to update session topic: {e}")
            return None

    def increment_query_count(self, session_id: str) -> Optional[int]:
        """
        Increment the query count of an open session.

        Args:
            session_id: Session ID

        Returns:
            The new query count, 0 if no open session matched, None on failure
        """
        try:
            result = self.conn.execute("""
                UPDATE sessions SET query_count = query_count + 1
                WHERE id = ? AND ended_at IS NULL
                RETURNING query_count
            """, [session_id]).fetchone()
            self.conn.commit()
            return result[0] if result else 0
        except Exception as e:
            self.logger.error(f"Failed to increment query count: {e}")
            return None

    def end(self, session_id: str, performance_data: Optional[Dict[str, Any]] = None) -> Optional[bool]:
        """
        End an open session. ended_at is written at most once.

        Args:
            session_id: Session ID
            performance_data: Optional performance summary

        Returns:
            True if ended now, False if already ended or missing, None on failure
        """
        try:
            result = self.conn.execute("""
                UPDATE sessions
                SET ended_at = ?, performance_data = coalesce(CAST(? AS JSON), performance_data)
                WHERE id = ? AND ended_at IS NULL
                RETURNING id
            """, [datetime.utcnow(), self._dump_json(performance_data), session_id]).fetchone()
            self.conn.commit()
            return result is not None
        except Exception as e:
            self.logger.error(f"Failed to end session: {e}")
            return None
