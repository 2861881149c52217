from __future__ import annotations

import logging
from typing import TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from issuechat.core.config import Settings, get_settings
from issuechat.models.schemas import (
    IssueFetchResponse,
    ToolDetectionResponse,
    ToolRunResponse,
)

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)


class IssueClientError(RuntimeError):
    """Raised when an issue service request fails or its response is malformed."""


logger = logging.getLogger(__name__)


def _format_exception(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return f"{exc.__class__.__name__}: {message}"
    return exc.__class__.__name__


class IssueApiClient:
    """JSON-over-HTTP client for the issue fetch, tool detection and tool run endpoints.

    Status codes are not interpreted: the body decides whether a call
    succeeded, since declared failures may come back with any status.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport

    def _tool_path(self, tool: str) -> str:
        return self._settings.tool_run_path.format(tool=tool.lower())

    async def fetch_issue(self, key: str) -> IssueFetchResponse:
        return await self._post(
            self._settings.issue_fetch_path,
            {"key": key},
            IssueFetchResponse,
        )

    async def detect_tools(self, description: str) -> list[str]:
        response = await self._post(
            self._settings.tool_detection_path,
            {"description": description},
            ToolDetectionResponse,
        )
        return response.tools

    async def run_tool(self, tool: str, key: str, description: str) -> ToolRunResponse:
        return await self._post(
            self._tool_path(tool),
            {"key": key, "description": description},
            ToolRunResponse,
        )

    async def _post(
        self,
        path: str,
        payload: dict[str, object],
        model: type[ResponseModel],
    ) -> ResponseModel:
        base_url = self._settings.issue_api_base_url.rstrip("/")
        url = f"{base_url}/{path.lstrip('/')}"
        timeout = httpx.Timeout(max(float(self._settings.issue_api_timeout_seconds), 1.0))

        logger.debug("Issue service request: POST %s", url)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("Issue service timeout (url=%s): %s", url, _format_exception(exc))
            raise IssueClientError(f"Request to {path} timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("Issue service transport error (url=%s): %s", url, _format_exception(exc))
            raise IssueClientError(
                f"Request to {path} failed: {_format_exception(exc)}"
            ) from exc

        try:
            data = response.json()
        except ValueError as exc:
            logger.warning(
                "Issue service returned non-JSON body (url=%s, status=%s)",
                url,
                response.status_code,
            )
            raise IssueClientError(f"Response from {path} is not valid JSON") from exc

        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.warning(
                "Issue service returned malformed body (url=%s, status=%s): %s",
                url,
                response.status_code,
                exc.error_count(),
            )
            raise IssueClientError(f"Response from {path} is malformed") from exc


issue_client = IssueApiClient()
