import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from issuechat.api import api_router
from issuechat.core.config import get_settings
from issuechat.models.schemas import HealthResponse

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="issuechat Backend",
    version="0.1.0",
    description="Chat backend that turns issue keys into a fetch, tool detection and tool run pipeline",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/api/health", response_model=HealthResponse, tags=["health"])
async def health() -> HealthResponse:
    return HealthResponse(status="ok")
