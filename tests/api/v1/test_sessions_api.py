"""Session API integration tests."""

import pytest
from httpx import AsyncClient


class TestSessions:
    """Session lifecycle endpoint tests."""

    async def _start(self, client: AsyncClient, topic: str = "Biology") -> dict:
        response = await client.post(
            "/api/v1/sessions",
            json={"owner_id": "student-1", "organization_id": "school-1", "topic": topic}
        )
        assert response.status_code == 201
        return response.json()

    async def test_create_session(self, client: AsyncClient):
        data = await self._start(client)
        assert data["topic"] == "Biology"
        assert data["ended_at"] is None
        assert data["query_count"] == 0

    async def test_get_session_not_found(self, client: AsyncClient):
        response = await client.get("/api/v1/sessions/non-existent-id")
        assert response.status_code == 404

    async def test_update_topic(self, client: AsyncClient):
        session = await self._start(client)
        response = await client.patch(f"/api/v1/sessions/{session['id']}/topic", json={"topic": "Chemistry"})
        assert response.status_code == 200
        assert response.json()["topic"] == "Chemistry"

    async def test_increment_queries(self, client: AsyncClient):
        session = await self._start(client)
        await client.post(f"/api/v1/sessions/{session['id']}/queries")
        response = await client.post(f"/api/v1/sessions/{session['id']}/queries")
        assert response.status_code == 200
        assert response.json() == {"session_id": session["id"], "query_count": 2}

    async def test_end_session(self, client: AsyncClient):
        session = await self._start(client)
        response = await client.post(
            f"/api/v1/sessions/{session['id']}/end",
            json={"performance_data": {"queries": 3, "errors": 0}}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["ended_at"] is not None
        assert data["performance_data"] == {"queries": 3, "errors": 0}

    async def test_end_without_body(self, client: AsyncClient):
        session = await self._start(client)
        response = await client.post(f"/api/v1/sessions/{session['id']}/end")
        assert response.status_code == 200
        assert response.json()["ended_at"] is not None

    async def test_end_twice_conflicts(self, client: AsyncClient):
        """ended_at is written once; later end calls are rejected."""
        session = await self._start(client)
        first = await client.post(f"/api/v1/sessions/{session['id']}/end")
        second = await client.post(f"/api/v1/sessions/{session['id']}/end")
        assert second.status_code == 409

        current = await client.get(f"/api/v1/sessions/{session['id']}")
        assert current.json()["ended_at"] == first.json()["ended_at"]

    async def test_ended_session_is_read_only(self, client: AsyncClient):
        session = await self._start(client)
        await client.post(f"/api/v1/sessions/{session['id']}/end")

        topic = await client.patch(f"/api/v1/sessions/{session['id']}/topic", json={"topic": "Physics"})
        queries = await client.post(f"/api/v1/sessions/{session['id']}/queries")

        assert topic.status_code == 409
        assert queries.status_code == 409
