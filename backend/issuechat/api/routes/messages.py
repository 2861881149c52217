import logging

from fastapi import APIRouter, HTTPException, status

from issuechat.models.schemas import (
    MessageAccepted,
    MessageCreateRequest,
    MessageHistoryRequest,
    MessageListResponse,
    Sender,
)
from issuechat.services.runner import pipeline_runner
from issuechat.store import DuplicateMessageError, registry
from issuechat.store.sessions import ChatSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["messages"])


def _get_session(session_id: str) -> ChatSession:
    try:
        return registry.get(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found") from exc


@router.get("/{sessionId}/messages", response_model=MessageListResponse)
async def list_messages(sessionId: str) -> MessageListResponse:
    session = _get_session(sessionId)
    return MessageListResponse(messages=session.store.messages)


@router.post(
    "/{sessionId}/messages",
    response_model=MessageAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def create_message(sessionId: str, payload: MessageCreateRequest) -> MessageAccepted:
    session = _get_session(sessionId)

    message_id = session.store.insert(payload.content, Sender.user)
    registry.touch(sessionId, user_text=payload.content)

    pipeline_runner.schedule(session, payload.content)
    logger.debug("Pipeline scheduled (session=%s message=%s)", sessionId, message_id)

    return MessageAccepted(sessionId=sessionId, messageId=message_id, pipelineScheduled=True)


@router.put("/{sessionId}/messages", response_model=MessageListResponse)
async def replace_messages(sessionId: str, payload: MessageHistoryRequest) -> MessageListResponse:
    session = _get_session(sessionId)
    try:
        session.store.replace_all(lambda _current: payload.messages)
    except DuplicateMessageError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    registry.touch(sessionId)
    return MessageListResponse(messages=session.store.messages)
