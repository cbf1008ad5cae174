"""Tests for Pydantic models."""

import json
import pytest
from datetime import datetime, timedelta
from pydantic import ValidationError

from tutorcore.models import (
    Attachment,
    Conversation,
    ConversationMessagesResponse,
    CreateMessageRequest,
    Message,
    MessageDraft,
    Notice,
    NoticeLevel,
    Sender,
    Session,
    SourceCitation,
    UpdateConversationRequest,
    UpdateMessageRequest,
)


def _message(**overrides):
    defaults = dict(
        id="m1", conversation_id="c1", sender=Sender.USER,
        content="hi", timestamp=datetime(2025, 1, 1, 12, 0, 0)
    )
    defaults.update(overrides)
    return Message(**defaults)


class TestMessageModels:
    """SUT: message models"""

    def test_defaults(self):
        """Flags default to unset and citations to an empty list."""
        msg = _message()
        assert msg.is_important is False
        assert msg.feedback_rating is None
        assert msg.attachment is None
        assert msg.source_citations == []

    @pytest.mark.parametrize("rating", [-1, 0, 1])
    def test_valid_ratings(self, rating):
        assert _message(feedback_rating=rating).feedback_rating == rating

    def test_invalid_rating(self):
        with pytest.raises(ValidationError):
            _message(feedback_rating=2)

    def test_invalid_sender(self):
        with pytest.raises(ValidationError):
            _message(sender="robot")

    def test_serialization(self):
        """model_dump_json() should produce valid JSON."""
        msg = _message(
            attachment=Attachment(type="document", id="d1", name="bio101.pdf"),
            source_citations=[SourceCitation(document_id="d1", filename="bio101.pdf", excerpt="chlorophyll")]
        )
        data = json.loads(msg.model_dump_json())
        assert data["sender"] == "user"
        assert data["attachment"]["name"] == "bio101.pdf"
        assert data["source_citations"][0]["excerpt"] == "chlorophyll"
        assert data["timestamp"] == "2025-01-01T12:00:00"

    def test_draft_from_dicts(self):
        draft = MessageDraft(sender="assistant", content="x", source_citations=[{"document_id": "d1", "filename": "a.pdf"}])
        assert draft.sender == Sender.ASSISTANT
        assert draft.source_citations[0].document_id == "d1"

    def test_create_request_rejects_empty(self):
        with pytest.raises(ValidationError):
            CreateMessageRequest(sender="user", content="")

    def test_update_request_tracks_explicit_none(self):
        """An explicit null rating is distinguishable from an omitted one."""
        assert "feedback_rating" in UpdateMessageRequest(feedback_rating=None).model_fields_set
        assert "feedback_rating" not in UpdateMessageRequest(is_important=True).model_fields_set

    def test_conversation_messages_response(self):
        resp = ConversationMessagesResponse(conversation_id="c1", messages=[_message()], total=1)
        assert resp.messages[0].id == "m1"


class TestConversationModels:
    """SUT: conversation models"""

    def test_defaults(self):
        now = datetime.utcnow()
        conv = Conversation(id="c1", owner_id="u1", organization_id="o1", created_at=now, last_message_at=now)
        assert conv.tags == []
        assert conv.starred is False
        assert conv.title is None

    def test_update_rejects_blank_title(self):
        with pytest.raises(ValidationError):
            UpdateConversationRequest(title="")


class TestSessionModel:
    """SUT: Session"""

    def test_is_open(self):
        now = datetime.utcnow()
        assert Session(id="s1", owner_id="u1", organization_id="o1", started_at=now).is_open is True
        ended = Session(id="s1", owner_id="u1", organization_id="o1", started_at=now, ended_at=now + timedelta(minutes=1))
        assert ended.is_open is False

    def test_json_timestamps(self):
        session = Session(
            id="s1", owner_id="u1", organization_id="o1",
            started_at=datetime(2025, 1, 1, 9, 30), ended_at=None
        )
        data = json.loads(session.model_dump_json())
        assert data["started_at"] == "2025-01-01T09:30:00"
        assert data["ended_at"] is None


class TestNotice:
    """SUT: Notice"""

    def test_defaults(self):
        notice = Notice(message="No speech was recognized.")
        assert notice.level == NoticeLevel.INFO
        assert notice.source == ""
