from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable

from fastapi import WebSocket

from issuechat.models.schemas import MessageEvent
from issuechat.store.sessions import ChatSession

logger = logging.getLogger(__name__)


class EventBus:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._connections: dict[str, set[WebSocket]] = defaultdict(set)
        self._attached: dict[str, Callable[[], None]] = {}
        self._queues: dict[str, asyncio.Queue[MessageEvent]] = {}
        self._senders: dict[str, asyncio.Task] = {}

    async def connect(self, session_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections[session_id].add(websocket)

    async def disconnect(self, session_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            sockets = self._connections.get(session_id)
            if not sockets:
                return
            sockets.discard(websocket)
            if not sockets:
                self._connections.pop(session_id, None)

    async def publish(self, session_id: str, event: MessageEvent) -> None:
        payload = event.model_dump(mode="json", exclude_none=True)

        async with self._lock:
            sockets = list(self._connections.get(session_id, set()))

        stale_sockets: list[WebSocket] = []
        for socket in sockets:
            try:
                await socket.send_json(payload)
            except Exception:
                stale_sockets.append(socket)

        for socket in stale_sockets:
            await self.disconnect(session_id, socket)

    async def send_personal(self, websocket: WebSocket, event: MessageEvent) -> None:
        payload = event.model_dump(mode="json", exclude_none=True)
        await websocket.send_json(payload)

    def attach(self, session: ChatSession) -> None:
        """Forward every change of the session's message store to its sockets."""
        if session.session_id in self._attached:
            return
        self._attached[session.session_id] = session.store.subscribe(self._schedule_publish)

    def detach(self, session_id: str) -> None:
        unsubscribe = self._attached.pop(session_id, None)
        if unsubscribe is not None:
            unsubscribe()
        self._queues.pop(session_id, None)
        sender = self._senders.pop(session_id, None)
        if sender is not None:
            sender.cancel()

    async def flush(self, session_id: str) -> None:
        """Wait until every event queued for the session has been sent."""
        queue = self._queues.get(session_id)
        if queue is not None:
            await queue.join()

    def _schedule_publish(self, event: MessageEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(
                "No running loop; dropping %s event (session=%s)",
                event.kind.value,
                event.sessionId,
            )
            return

        # One sender per session keeps frames in store order.
        queue = self._queues.get(event.sessionId)
        sender = self._senders.get(event.sessionId)
        if queue is None or sender is None or sender.done() or sender.get_loop() is not loop:
            queue = asyncio.Queue()
            self._queues[event.sessionId] = queue
            self._senders[event.sessionId] = loop.create_task(self._drain(event.sessionId, queue))
        queue.put_nowait(event)

    async def _drain(self, session_id: str, queue: asyncio.Queue[MessageEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                await self.publish(session_id, event)
            except Exception:
                logger.exception(
                    "Failed to publish %s event (session=%s)",
                    event.kind.value,
                    session_id,
                )
            finally:
                queue.task_done()


event_bus = EventBus()
