from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

BACKEND_DIR = Path(__file__).resolve().parents[2]
PROJECT_ROOT = BACKEND_DIR.parent

for env_path in (PROJECT_ROOT / ".env", BACKEND_DIR / ".env"):
    if env_path.exists():
        load_dotenv(env_path, override=False)


class Settings(BaseSettings):
    cors_origins: list[str] = ["http://localhost:5173"]
    log_level: str = "INFO"

    issue_api_base_url: str = "http://localhost:8080"
    issue_fetch_path: str = "/api/jira/fetch"
    tool_detection_path: str = "/api/llm/detect-tools"
    tool_run_path: str = "/api/tool/{tool}"
    issue_api_timeout_seconds: float = 60.0

    greeting_message: str = "👋 Hi! How can I help you today?"

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
