"""Message repository for database operations."""

from typing import Optional, List, Dict, Any
from .base import BaseRepository
from ..database_models.message import MessageDO


_COLUMNS = """
    id, seq, conversation_id, sender, content, timestamp,
    is_important, feedback_rating, attachment, source_citations
"""


class MessageRepository(BaseRepository):
    """Repository for Message operations. Messages are append-only."""

    def _from_row(self, row) -> MessageDO:
        return MessageDO(
            id=row[0],
            seq=row[1],
            conversation_id=row[2],
            sender=row[3],
            content=row[4],
            timestamp=row[5],
            is_important=bool(row[6]),
            feedback_rating=row[7],
            attachment=self._load_json(row[8]),
            source_citations=self._load_json(row[9], [])
        )

    def add(self, message: MessageDO) -> Optional[MessageDO]:
        """
        Add a new message in a single transaction.

        The stored timestamp is clamped so it is never earlier than the
        latest message already in the conversation.

        Args:
            message: MessageDO instance

        Returns:
            The persisted MessageDO (with seq and final timestamp), or None on failure
        """
        try:
            self.conn.begin()
        except Exception as e:
            self.logger.error(f"Failed to begin message transaction: {e}")
            return None

        try:
            latest = self.conn.execute("""
                SELECT max(timestamp) FROM messages WHERE conversation_id = ?
            """, [message.conversation_id]).fetchone()[0]

            timestamp = message.timestamp
            if latest is not None and timestamp < latest:
                timestamp = latest

            result = self.conn.execute("""
                INSERT INTO messages (id, seq, conversation_id, sender, content, timestamp,
                                      is_important, feedback_rating, attachment, source_citations)
                VALUES (?, nextval('messages_seq'), ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING seq
            """, [
                message.id,
                message.conversation_id,
                message.sender,
                message.content,
                timestamp,
                message.is_important,
                message.feedback_rating,
                self._dump_json(message.attachment),
                self._dump_json(message.source_citations or [])
            ]).fetchone()

            self.conn.commit()
        except Exception as e:
            self._rollback()
            self.logger.error(f"Failed to add message: {e}")
            return None

        message.seq = result[0]
        message.timestamp = timestamp
        self.logger.debug(f"Added message {message.id} to conversation {message.conversation_id}")
        return message

    def get(self, message_id: str) -> Optional[MessageDO]:
        """
        Get message by ID.

        Args:
            message_id: Message ID

        Returns:
            MessageDO instance or None
        """
        try:
            result = self.conn.execute(f"""
                SELECT {_COLUMNS} FROM messages WHERE id = ?
            """, [message_id]).fetchone()
            return self._from_row(result) if result else None
        except Exception as e:
            self.logger.error(f"Failed to get message {message_id}: {e}")
            return None

    def get_by_conversation(self, conversation_id: str) -> Optional[List[MessageDO]]:
        """
        Get all committed messages for a conversation.

        Args:
            conversation_id: Conversation ID

        Returns:
            List of MessageDO instances (chronological order), or None if the query failed
        """
        try:
            results = self.conn.execute(f"""
                SELECT {_COLUMNS}
                FROM messages
                WHERE conversation_id = ?
                ORDER BY timestamp ASC, seq ASC
            """, [conversation_id]).fetchall()

            return [self._from_row(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to get conversation messages: {e}")
            return None

    def update_flags(self, message_id: str, updates: Dict[str, Any]) -> bool:
        """
        Update the mutable message flags (feedback_rating, is_important).

        Args:
            message_id: Message ID
            updates: Dictionary of flags to update

        Returns:
            True if successful, False otherwise
        """
        try:
            set_clauses = []
            params = []

            if 'feedback_rating' in updates:
                set_clauses.append("feedback_rating = ?")
                params.append(updates['feedback_rating'])

            if 'is_important' in updates:
                set_clauses.append("is_important = ?")
                params.append(updates['is_important'])

            if not set_clauses:
                return True

            params.append(message_id)
            self.conn.execute(f"UPDATE messages SET {', '.join(set_clauses)} WHERE id = ?", params)
            self.conn.commit()
            return True
        except Exception as e:
            self.logger.error(f"Failed to update message flags: {e}")
            return False
