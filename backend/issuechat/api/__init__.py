from fastapi import APIRouter

from issuechat.api.routes import messages, sessions, ws

api_router = APIRouter()
api_router.include_router(sessions.router)
api_router.include_router(messages.router)
api_router.include_router(ws.router)
