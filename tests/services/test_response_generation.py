"""Tests for HttpResponseGenerator."""

import json
import logging

import httpx
import pytest

from tutorcore.errors import ExternalServiceError, TransientNetworkError
from tutorcore.services import HttpResponseGenerator

ASK_URL = "https://tutor.example.com/api/ask"


def _generator(handler, api_key="secret"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpResponseGenerator(ASK_URL, api_key=api_key, client=client), client


class TestHttpResponseGenerator:
    """SUT: HttpResponseGenerator.ask"""

    async def test_payload_and_reply(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            seen["json"] = json.loads(request.content)
            return httpx.Response(200, json={
                "response": "Plants convert light into chemical energy.",
                "model": "tutor-1",
                "sourceCitations": [
                    {"document_id": "d1", "filename": "bio101.pdf", "excerpt": "chlorophyll"},
                    {"documentId": "d2", "filename": "notes.pdf", "relevance_score": 0.4},
                ],
            })

        generator, client = _generator(handler)
        async with client:
            reply = await generator.ask("What is photosynthesis?", "c1", "Biology", True)

        assert seen["auth"] == "Bearer secret"
        assert seen["json"] == {
            "question": "What is photosynthesis?",
            "conversationId": "c1",
            "topic": "Biology",
            "useDocuments": True,
        }
        assert reply.response_text == "Plants convert light into chemical energy."
        assert reply.model == "tutor-1"
        assert [c.document_id for c in reply.source_citations] == ["d1", "d2"]
        assert reply.source_citations[0].excerpt == "chlorophyll"
        assert reply.source_citations[1].relevance_score == 0.4

    async def test_no_citations(self):
        generator, client = _generator(lambda request: httpx.Response(200, json={"response": "Yes."}))
        async with client:
            reply = await generator.ask("Is water wet?", "c1", None, False)
        assert reply.source_citations == []

    async def test_malformed_citations_skipped(self, caplog):
        """Bad citation entries are dropped; the answer survives."""
        def handler(request):
            return httpx.Response(200, json={
                "response": "Plants use light.",
                "sourceCitations": [
                    {"document_id": "d1", "filename": None},
                    {"filename": "orphan.pdf"},
                    {"document_id": "d3", "filename": "c.pdf", "relevance_score": "high"},
                    "bio101.pdf",
                ],
            })

        generator, client = _generator(handler)
        with caplog.at_level(logging.WARNING, logger="tutorcore"):
            async with client:
                reply = await generator.ask("What is photosynthesis?", "c1", None, True)

        assert reply.response_text == "Plants use light."
        assert [c.document_id for c in reply.source_citations] == ["d1"]
        assert reply.source_citations[0].filename == ""
        assert len([r for r in caplog.records if "malformed citation" in r.getMessage()]) == 3

    async def test_without_api_key(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"response": "ok"})

        generator, client = _generator(handler, api_key=None)
        async with client:
            await generator.ask("q", "c1", None, True)
        assert seen["auth"] is None

    async def test_empty_answer(self):
        generator, client = _generator(lambda request: httpx.Response(200, json={"response": ""}))
        async with client:
            with pytest.raises(ExternalServiceError):
                await generator.ask("q", "c1", None, True)

    async def test_server_error(self):
        generator, client = _generator(lambda request: httpx.Response(503, text="overloaded"))
        async with client:
            with pytest.raises(ExternalServiceError):
                await generator.ask("q", "c1", None, True)

    async def test_invalid_json(self):
        generator, client = _generator(lambda request: httpx.Response(200, text="<html>"))
        async with client:
            with pytest.raises(ExternalServiceError):
                await generator.ask("q", "c1", None, True)

    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        generator, client = _generator(handler)
        async with client:
            with pytest.raises(TransientNetworkError):
                await generator.ask("q", "c1", None, True)
