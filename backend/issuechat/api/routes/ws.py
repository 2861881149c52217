from fastapi import APIRouter, Query, WebSocket, status
from fastapi.websockets import WebSocketDisconnect

from issuechat.models.schemas import MessageEvent, MessageEventKind
from issuechat.services.event_bus import event_bus
from issuechat.store import registry
from issuechat.store.message_store import now_ms

router = APIRouter(tags=["ws"])


@router.websocket("/api/ws")
async def session_ws(
    websocket: WebSocket,
    sessionId: str = Query(..., min_length=1),
) -> None:
    try:
        session = registry.get(sessionId)
    except KeyError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Unknown sessionId")
        return

    event_bus.attach(session)
    await event_bus.connect(sessionId, websocket)

    # Current transcript first, then live changes.
    snapshot = MessageEvent(
        kind=MessageEventKind.replaced,
        sessionId=sessionId,
        ts=now_ms(),
        messages=session.store.messages,
    )

    try:
        await event_bus.send_personal(websocket, snapshot)
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await event_bus.disconnect(sessionId, websocket)
