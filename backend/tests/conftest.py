import asyncio

import pytest

from issuechat.models.schemas import (
    IssueFetchResponse,
    ToolRunResponse,
)
from issuechat.store import MessageStore, SessionRegistry


class FakeIssueService:
    """Scripted stand-in for the remote issue service.

    ``tool_results`` maps a tool name to a response dict or to an exception
    instance to raise. Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        *,
        fetch=None,
        tools=None,
        tool_results=None,
        fetch_error=None,
        detect_error=None,
    ):
        self.fetch = fetch if fetch is not None else {"success": True, "data": {"description": "d"}}
        self.tools = tools if tools is not None else []
        self.tool_results = tool_results or {}
        self.fetch_error = fetch_error
        self.detect_error = detect_error
        self.calls = []

    async def fetch_issue(self, key):
        self.calls.append(("fetch", key))
        await asyncio.sleep(0)
        if self.fetch_error is not None:
            raise self.fetch_error
        return IssueFetchResponse.model_validate(self.fetch)

    async def detect_tools(self, description):
        self.calls.append(("detect", description))
        await asyncio.sleep(0)
        if self.detect_error is not None:
            raise self.detect_error
        return list(self.tools)

    async def run_tool(self, tool, key, description):
        self.calls.append(("tool-start", tool))
        await asyncio.sleep(0)
        self.calls.append(("tool-end", tool))
        outcome = self.tool_results.get(tool, {"success": True})
        if isinstance(outcome, Exception):
            raise outcome
        return ToolRunResponse.model_validate(outcome)


@pytest.fixture
def store():
    return MessageStore("chat-test")


@pytest.fixture
def fake_service():
    return FakeIssueService


@pytest.fixture
def registry(monkeypatch):
    """Fresh session registry wired into every route module."""
    fresh = SessionRegistry(greeting="")
    for module in (
        "issuechat.api.routes.sessions",
        "issuechat.api.routes.messages",
        "issuechat.api.routes.ws",
    ):
        monkeypatch.setattr(f"{module}.registry", fresh)
    return fresh
