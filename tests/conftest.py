"""Shared pytest fixtures."""

import pytest

from tutorcore.db import DatabaseConnection, DuckDBPersistence
from tutorcore.services import SessionContext


@pytest.fixture
def db_conn(tmp_path):
    """Provide a fresh database connection."""
    db = DatabaseConnection(str(tmp_path / "test.db"))
    yield db
    db.close()


@pytest.fixture
def persistence(db_conn):
    """Provide a DuckDB-backed persistence service."""
    return DuckDBPersistence(db_conn)


@pytest.fixture
def context():
    """Provide a fresh session context for one conversation view."""
    return SessionContext(owner_id="student-1", organization_id="school-1", topic="Biology")
