"""Pytest fixtures for API testing."""

import pytest
from httpx import AsyncClient, ASGITransport
from fastapi import FastAPI

from tutorcore.api.v1 import conversations, sessions


@pytest.fixture(scope="function")
async def client(persistence):
    """Create async HTTP client over a fresh database for each test."""
    # Inject dependencies into routers
    conversations.persistence = persistence
    sessions.persistence = persistence

    # Create a test app without lifespan (to avoid conflicts)
    test_app = FastAPI(title="Tutor Core Test")
    test_app.include_router(conversations.router)
    test_app.include_router(sessions.router)

    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    conversations.persistence = None
    sessions.persistence = None
