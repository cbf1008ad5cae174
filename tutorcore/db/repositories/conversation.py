"""Conversation repository for database operations."""

from typing import Optional, List, Dict, Any
from .base import BaseRepository
from ..database_models.conversation import ConversationDO


_COLUMNS = """
    id, owner_id, organization_id, title, topic, tags, category, summary,
    starred, created_at, last_message_at
"""


class ConversationRepository(BaseRepository):
    """Repository for Conversation CRUD operations."""

    def _from_row(self, row) -> ConversationDO:
        return ConversationDO(
            id=row[0],
            owner_id=row[1],
            organization_id=row[2],
            title=row[3],
            topic=row[4],
            tags=self._load_json(row[5], []),
            category=row[6],
            summary=row[7],
            starred=bool(row[8]),
            created_at=row[9],
            last_message_at=row[10]
        )

    def create(self, conversation: ConversationDO) -> bool:
        """
        Create a new conversation record.

        Args:
            conversation: ConversationDO instance

        Returns:
            True if successful, False otherwise
        """
        try:
            self.conn.execute(f"""
                INSERT INTO conversations ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, [
                conversation.id,
                conversation.owner_id,
                conversation.organization_id,
                conversation.title,
                conversation.topic,
                self._dump_json(conversation.tags or []),
                conversation.category,
                conversation.summary,
                conversation.starred,
                conversation.created_at,
                conversation.last_message_at
            ])
            self.conn.commit()
            self.logger.info(f"Created conversation record: {conversation.id}")
            return True
        except Exception as e:
            self.logger.error(f"Failed to create conversation: {e}")
            return False

    def get(self, conversation_id: str) -> Optional[ConversationDO]:
        """
        Get conversation by ID.

        Args:
            conversation_id: Conversation ID

        Returns:
            ConversationDO instance or None
        """
        try:
            result = self.conn.execute(f"""
                SELECT {_COLUMNS}
                FROM conversations
                WHERE id = ?
            """, [conversation_id]).fetchone()

            return self._from_row(result) if result else None
        except Exception as e:
            self.logger.error(f"Failed to get conversation {conversation_id}: {e}")
            return None

    def list_by_owner(self, owner_id: str) -> Optional[List[ConversationDO]]:
        """
        List conversations for an owner, most recently active first.

        Args:
            owner_id: Owner (user) ID

        Returns:
            List of ConversationDO instances, or None if the query failed
        """
        try:
            results = self.conn.execute(f"""
                SELECT {_COLUMNS}
                FROM conversations
                WHERE owner_id = ?
                ORDER BY last_message_at DESC
            """, [owner_id]).fetchall()

            return [self._from_row(row) for row in results]
        except Exception as e:
            self.logger.error(f"Failed to list conversations: {e}")
            return None

    def update(self, conversation_id: str, updates: Dict[str, Any]) -> bool:
        """
        Update conversation fields.

        last_message_at never moves backwards.

        Args:
            conversation_id: Conversation ID
            updates: Dictionary of fields to update

        Returns:
            True if successful, False otherwise
        """
        try:
            set_clauses = []
            params = []

            for column in ('title', 'topic', 'category', 'summary', 'starred'):
                if column in updates:
                    set_clauses.append(f"{column} = ?")
                    params.append(updates[column])

            if 'tags' in updates:
                set_clauses.append("tags = ?")
                params.append(self._dump_json(updates['tags'] or []))

            if 'last_message_at' in updates:
                set_clauses.append("last_message_at = greatest(last_message_at, CAST(? AS TIMESTAMP))")
                params.append(updates['last_message_at'])

            if not set_clauses:
                return True

            params.append(conversation_id)
            query = f"UPDATE conversations SET {', '.join(set_clauses)} WHERE id = ?"

            self.conn.execute(query, params)
            self.conn.commit()
            return True
        except Exception as e:
            self.logger.error(f"Failed to update conversation: {e}")
            return False
