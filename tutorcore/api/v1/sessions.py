"""Session REST API routes - V1."""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends

from ...models.session import (
    Session,
    CreateSessionRequest,
    UpdateTopicRequest,
    EndSessionRequest,
    QueryCountResponse,
)
from ...db.persistence import PersistenceService
from ...errors import InvalidState, PersistenceError

router = APIRouter(prefix="/api/v1/sessions", tags=["Sessions"])

# Persistence service (set by main.py)
persistence: PersistenceService = None


def get_persistence() -> PersistenceService:
    """Dependency to get the persistence service."""
    if persistence is None:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return persistence


async def _get_or_404(service: PersistenceService, session_id: str) -> Session:
    session = await service.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return session


@router.post("", response_model=Session, status_code=201)
async def create_session(
    request: CreateSessionRequest,
    service: PersistenceService = Depends(get_persistence)
):
    """Start a new tutoring session."""
    try:
        session_id = await service.create_session(
            request.owner_id,
            request.organization_id,
            topic=request.topic
        )
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return await _get_or_404(service, session_id)


@router.get("/{session_id}", response_model=Session)
async def get_session(
    session_id: str,
    service: PersistenceService = Depends(get_persistence)
):
    """Get session details."""
    return await _get_or_404(service, session_id)


@router.patch("/{session_id}/topic", response_model=Session)
async def update_topic(
    session_id: str,
    request: UpdateTopicRequest,
    service: PersistenceService = Depends(get_persistence)
):
    """Change the topic of an open session."""
    await _get_or_404(service, session_id)

    try:
        await service.update_session_topic(session_id, request.topic)
    except InvalidState as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return await _get_or_404(service, session_id)


@router.post("/{session_id}/queries", response_model=QueryCountResponse)
async def increment_query_count(
    session_id: str,
    service: PersistenceService = Depends(get_persistence)
):
    """Count one query against an open session."""
    await _get_or_404(service, session_id)

    try:
        count = await service.increment_query_count(session_id)
    except InvalidState as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return QueryCountResponse(session_id=session_id, query_count=count)


@router.post("/{session_id}/end", response_model=Session)
async def end_session(
    session_id: str,
    request: Optional[EndSessionRequest] = None,
    service: PersistenceService = Depends(get_persistence)
):
    """End a session. Ending an already ended session is a conflict."""
    await _get_or_404(service, session_id)

    try:
        ended = await service.end_session(session_id, request.performance_data if request else None)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if not ended:
        raise HTTPException(status_code=409, detail=f"Session already ended: {session_id}")

    return await _get_or_404(service, session_id)
