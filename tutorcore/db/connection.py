"""Database connection and schema management."""

import duckdb
from typing import Optional
from pathlib import Path
from ..utils.logger import get_app_logger


class DatabaseConnection:
    """DuckDB connection manager."""

    def __init__(self, db_path: str = "./data/tutorcore.db"):
        """
        Initialize database connection.

        Args:
            db_path: Path to DuckDB database file (":memory:" for an in-memory database)
        """
        self.db_path = db_path
        self.logger = get_app_logger("db")
        self.conn: Optional[duckdb.DuckDBPyConnection] = None

        if db_path != ":memory:":
            db_dir = Path(db_path).parent
            db_dir.mkdir(parents=True, exist_ok=True)

        self._connect()
        self._init_schema()

    def _connect(self):
        """Connect to DuckDB database."""
        try:
            self.conn = duckdb.connect(self.db_path)
            self.logger.info(f"Connected to DuckDB at {self.db_path}")
        except Exception as e:
            self.logger.error(f"Failed to connect to DuckDB: {e}")
            raise

    def _init_schema(self):
        """Initialize database schema."""
        try:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id VARCHAR PRIMARY KEY,
                    owner_id VARCHAR NOT NULL,
                    organization_id VARCHAR NOT NULL,
                    title VARCHAR,
                    topic VARCHAR,
                    tags JSON,
                    category VARCHAR,
                    summary VARCHAR,
                    starred BOOLEAN DEFAULT FALSE,
                    created_at TIMESTAMP NOT NULL,
                    last_message_at TIMESTAMP NOT NULL
                )
            """)

            # seq breaks timestamp ties so history order is total
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id VARCHAR PRIMARY KEY,
                    seq BIGINT NOT NULL,
                    conversation_id VARCHAR NOT NULL,
                    sender VARCHAR NOT NULL,
                    content VARCHAR NOT NULL,
                    timestamp TIMESTAMP NOT NULL,
                    is_important BOOLEAN DEFAULT FALSE,
                    feedback_rating INTEGER,
                    attachment JSON,
                    source_citations JSON
                )
            """)

            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id VARCHAR PRIMARY KEY,
                    owner_id VARCHAR NOT NULL,
                    organization_id VARCHAR NOT NULL,
                    topic VARCHAR,
                    started_at TIMESTAMP NOT NULL,
                    ended_at TIMESTAMP,
                    query_count INTEGER NOT NULL DEFAULT 0,
                    performance_data JSON
                )
            """)

            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_conversations_owner ON conversations(owner_id)")
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id)")
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_owner ON sessions(owner_id)")

            self.conn.execute("CREATE SEQUENCE IF NOT EXISTS messages_seq START 1")

            self.logger.info("Database schema initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize database schema: {e}")
            raise

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.logger.info("Database connection closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
