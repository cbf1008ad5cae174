"""Client for the external response-generation service."""

from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from ..errors import ExternalServiceError, TransientNetworkError
from ..models import SourceCitation
from ..utils.logger import get_app_logger


class TutorReply(BaseModel):
    """Answer returned by the response-generation service."""

    response_text: str = Field(description="Answer text")
    source_citations: List[SourceCitation] = Field(default_factory=list, description="Grounding documents")
    model: Optional[str] = Field(None, description="Model that produced the answer")


class ResponseGenerator(ABC):
    """Single non-streaming question/answer call."""

    @abstractmethod
    async def ask(
        self,
        question: str,
        conversation_id: str,
        topic: Optional[str],
        use_documents: bool
    ) -> TutorReply:
        pass


class HttpResponseGenerator(ResponseGenerator):
    """Posts questions to an HTTP endpoint."""

    def __init__(self, url: str, api_key: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.api_key = api_key
        self._client = client
        self.logger = get_app_logger("response_generation")

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        return await client.post(self.url, json=payload, headers=headers)

    async def ask(self, question, conversation_id, topic, use_documents) -> TutorReply:
        payload = {
            "question": question,
            "conversationId": conversation_id,
            "topic": topic,
            "useDocuments": use_documents,
        }

        try:
            if self._client is not None:
                response = await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient(timeout=None) as client:
                    response = await self._post(client, payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TransportError as e:
            raise TransientNetworkError(f"Response service unreachable: {e}") from e
        except (httpx.HTTPStatusError, ValueError) as e:
            raise ExternalServiceError(f"Response service failed: {e}") from e

        text = data.get("response")
        if not text:
            raise ExternalServiceError("Response service returned no answer")

        citations = self._parse_citations(data.get("sourceCitations") or [])
        return TutorReply(response_text=text, source_citations=citations, model=data.get("model"))

    def _parse_citations(self, entries) -> List[SourceCitation]:
        """Keep the well-formed citations; a bad one never costs the answer."""
        citations = []
        for entry in entries:
            if not isinstance(entry, dict):
                self.logger.warning(f"Skipping malformed citation: {entry!r}")
                continue
            try:
                citations.append(SourceCitation(
                    document_id=entry.get("document_id") or entry.get("documentId"),
                    filename=entry.get("filename") or "",
                    excerpt=entry.get("excerpt"),
                    relevance_score=entry.get("relevance_score"),
                ))
            except ValidationError as e:
                self.logger.warning(f"Skipping malformed citation {entry!r}: {e}")
        return citations
