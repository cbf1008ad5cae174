"""Base repository class."""

import json
from typing import Any

import duckdb
from ...utils.logger import get_app_logger


class BaseRepository:
    """Base class for all repositories."""

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        """
        Initialize repository with database connection.

        Args:
            conn: DuckDB connection instance
        """
        self.conn = conn
        self.logger = get_app_logger("db")

    @staticmethod
    def _dump_json(value: Any) -> Any:
        """Serialize a value for a JSON column (None stays NULL)."""
        return json.dumps(value) if value is not None else None

    @staticmethod
    def _load_json(value: Any, default: Any = None) -> Any:
        """Deserialize a JSON column value."""
        if value is None:
            return default
        return json.loads(value) if isinstance(value, str) else value

    def _rollback(self):
        """Roll back the open transaction, logging if there is none."""
        try:
            self.conn.rollback()
        except Exception as e:
            self.logger.debug(f"Rollback skipped: {e}")
