from fastapi import APIRouter, status

from issuechat.models.schemas import (
    SessionCreateRequest,
    SessionListResponse,
    SessionSummary,
)
from issuechat.store import registry

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.get("", response_model=SessionListResponse)
async def list_sessions() -> SessionListResponse:
    items = [session.summary() for session in registry.list()]
    return SessionListResponse(items=items, total=len(items))


@router.post("", response_model=SessionSummary, status_code=status.HTTP_201_CREATED)
async def create_session(payload: SessionCreateRequest | None = None) -> SessionSummary:
    session = registry.create(title=payload.title if payload else None)
    return session.summary()
