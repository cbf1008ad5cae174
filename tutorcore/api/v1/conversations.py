"""Conversation REST API routes - V1."""

from fastapi import APIRouter, HTTPException, Depends, Query

from ...models.conversation import (
    Conversation,
    ConversationListResponse,
    CreateConversationRequest,
    UpdateConversationRequest,
)
from ...models.message import (
    Message,
    MessageDraft,
    CreateMessageRequest,
    UpdateMessageRequest,
    ConversationMessagesResponse,
)
from ...db.persistence import PersistenceService, UNSET
from ...errors import PersistenceError
from ...services.context import SessionContext
from ...services.conversation_store import ConversationStore

router = APIRouter(prefix="/api/v1/conversations", tags=["Conversations"])

# Persistence service (set by main.py)
persistence: PersistenceService = None


def get_persistence() -> PersistenceService:
    """Dependency to get the persistence service."""
    if persistence is None:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return persistence


async def _get_or_404(service: PersistenceService, conversation_id: str) -> Conversation:
    conversation = await service.get_conversation(conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail=f"Conversation not found: {conversation_id}")
    return conversation


def _store_for(service: PersistenceService, conversation: Conversation) -> ConversationStore:
    context = SessionContext(
        owner_id=conversation.owner_id,
        organization_id=conversation.organization_id,
        topic=conversation.topic,
        conversation_id=conversation.id
    )
    return ConversationStore(service, context)


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    owner_id: str = Query(..., description="Owner whose conversations to list"),
    service: PersistenceService = Depends(get_persistence)
):
    """List an owner's conversations, most recently active first."""
    try:
        conversations = await service.list_conversations(owner_id)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return ConversationListResponse(conversations=conversations, total=len(conversations))


@router.post("", response_model=Conversation, status_code=201)
async def create_conversation(
    request: CreateConversationRequest,
    service: PersistenceService = Depends(get_persistence)
):
    """Create a new conversation."""
    try:
        conversation_id = await service.create_conversation(
            request.owner_id,
            request.organization_id,
            topic=request.topic,
            title=request.title
        )
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return await _get_or_404(service, conversation_id)


@router.get("/{conversation_id}", response_model=Conversation)
async def get_conversation(
    conversation_id: str,
    service: PersistenceService = Depends(get_persistence)
):
    """Get conversation details."""
    return await _get_or_404(service, conversation_id)


@router.patch("/{conversation_id}", response_model=Conversation)
async def update_conversation(
    conversation_id: str,
    request: UpdateConversationRequest,
    service: PersistenceService = Depends(get_persistence)
):
    """Update conversation title, tags, category, summary or star."""
    await _get_or_404(service, conversation_id)

    try:
        await service.update_conversation(
            conversation_id,
            title=request.title,
            tags=request.tags,
            category=request.category,
            starred=request.starred,
            summary=request.summary
        )
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return await _get_or_404(service, conversation_id)


@router.get("/{conversation_id}/messages", response_model=ConversationMessagesResponse)
async def get_conversation_messages(
    conversation_id: str,
    service: PersistenceService = Depends(get_persistence)
):
    """Get the committed history of a conversation."""
    await _get_or_404(service, conversation_id)

    try:
        messages = await service.list_messages(conversation_id)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return ConversationMessagesResponse(
        conversation_id=conversation_id,
        messages=messages,
        total=len(messages)
    )


@router.post("/{conversation_id}/messages", response_model=Message, status_code=201)
async def append_message(
    conversation_id: str,
    request: CreateMessageRequest,
    service: PersistenceService = Depends(get_persistence)
):
    """Append a message to a conversation."""
    conversation = await _get_or_404(service, conversation_id)

    if not request.content.strip():
        raise HTTPException(status_code=400, detail="Message content cannot be empty")

    draft = MessageDraft(
        sender=request.sender,
        content=request.content,
        attachment=request.attachment,
        source_citations=request.source_citations
    )
    try:
        return await _store_for(service, conversation).append_message(conversation_id, draft)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.patch("/{conversation_id}/messages/{message_id}", response_model=Message)
async def update_message(
    conversation_id: str,
    message_id: str,
    request: UpdateMessageRequest,
    service: PersistenceService = Depends(get_persistence)
):
    """Set feedback rating or the important flag on a message."""
    message = await service.get_message(message_id)
    if not message or message.conversation_id != conversation_id:
        raise HTTPException(status_code=404, detail=f"Message not found: {message_id}")

    fields = request.model_fields_set
    try:
        updated = await service.update_message_flags(
            message_id,
            feedback_rating=request.feedback_rating if "feedback_rating" in fields else UNSET,
            is_important=request.is_important
        )
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return updated
