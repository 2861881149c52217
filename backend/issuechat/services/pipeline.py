from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from issuechat.models.schemas import IssueFetchResponse, ToolRunResponse

logger = logging.getLogger(__name__)

ISSUE_KEY_PATTERN = re.compile(r"\b[A-Z]{2,}-[0-9]+\b")

InsertMessage = Callable[[str], str]
UpdateMessage = Callable[[str, str], object]

GUIDANCE_TEXT = "🔍 Please provide a valid issue key like `PROJ-123`."
FETCH_STARTED_TEXT = "✅ Issue key '{key}' detected. Fetching issue details..."
FETCH_FAILED_TEXT = "❌ Failed to fetch issue: {reason}"
FETCH_DONE_TEXT = "📄 Description retrieved. Analyzing with AI..."
DETECTION_STARTED_TEXT = "🧠 Analyzing with AI..."
NO_TOOLS_TEXT = "🧠 No tools required. No action needed."
TOOLS_DETECTED_TEXT = "🛠️ Detected tools: {tools}. Executing..."
TOOL_RUNNING_TEXT = "⚙️ Running {tool}..."
TOOL_DONE_TEXT = "✅ {tool} completed."
TOOL_FAILED_TEXT = "❌ {tool} failed: {reason}"
COMPLETED_TEXT = "🎉 Issue processing completed!"
SYSTEM_ERROR_TEXT = "⚠️ System error: {error}"

UNKNOWN_REASON = "unknown error"


class IssueService(Protocol):
    async def fetch_issue(self, key: str) -> IssueFetchResponse: ...

    async def detect_tools(self, description: str) -> list[str]: ...

    async def run_tool(self, tool: str, key: str, description: str) -> ToolRunResponse: ...


class PipelineState(str, Enum):
    rejected_input = "rejected_input"
    fetch_failed = "fetch_failed"
    no_tools = "no_tools"
    system_error = "system_error"
    completed = "completed"


@dataclass
class ToolOutcome:
    tool: str
    success: bool
    message: str | None = None


@dataclass
class PipelineResult:
    state: PipelineState
    issue_key: str | None = None
    tools: list[str] = field(default_factory=list)
    tool_results: list[ToolOutcome] = field(default_factory=list)
    error: str | None = None


def extract_issue_key(text: str) -> str | None:
    match = ISSUE_KEY_PATTERN.search(text or "")
    return match.group(0) if match else None


def _reason(message: str | None) -> str:
    if isinstance(message, str) and message.strip():
        return message.strip()
    return UNKNOWN_REASON


def _describe_error(exc: Exception) -> str:
    message = str(exc).strip()
    return message or exc.__class__.__name__


class IssuePipeline:
    """Turns one user message into an issue fetch, tool detection and tool runs.

    Progress is reported only through the injected ``insert`` and ``update``
    callables: every stage inserts a placeholder message and later rewrites
    it with the stage outcome.
    """

    def __init__(self, service: IssueService) -> None:
        self._service = service

    async def run(
        self,
        content: str,
        insert: InsertMessage,
        update: UpdateMessage,
    ) -> PipelineResult:
        issue_key = extract_issue_key(content)
        if issue_key is None:
            insert(GUIDANCE_TEXT)
            logger.info("No issue key found in message; pipeline not started")
            return PipelineResult(state=PipelineState.rejected_input)

        result = PipelineResult(state=PipelineState.completed, issue_key=issue_key)
        logger.info("Issue pipeline started (issue=%s)", issue_key)

        fetch_message_id = insert(FETCH_STARTED_TEXT.format(key=issue_key))
        try:
            issue = await self._service.fetch_issue(issue_key)
            if not issue.success or issue.data is None:
                reason = _reason(issue.message)
                update(fetch_message_id, FETCH_FAILED_TEXT.format(reason=reason))
                logger.warning("Issue fetch declined (issue=%s): %s", issue_key, reason)
                result.state = PipelineState.fetch_failed
                return result

            update(fetch_message_id, FETCH_DONE_TEXT)
            description = issue.data.description

            detection_message_id = insert(DETECTION_STARTED_TEXT)
            tools = await self._service.detect_tools(description)
            if not tools:
                update(detection_message_id, NO_TOOLS_TEXT)
                logger.info("No tools detected (issue=%s)", issue_key)
                result.state = PipelineState.no_tools
                return result

            result.tools = list(tools)
            update(detection_message_id, TOOLS_DETECTED_TEXT.format(tools=", ".join(tools)))

            # One tool at a time; the next call is issued only after the previous one returned.
            for tool in tools:
                result.tool_results.append(
                    await self._run_tool(tool, issue_key, description, insert, update)
                )

            insert(COMPLETED_TEXT)
        except Exception as exc:
            logger.exception("Issue pipeline crashed (issue=%s)", issue_key)
            error = _describe_error(exc)
            update(fetch_message_id, SYSTEM_ERROR_TEXT.format(error=error))
            result.state = PipelineState.system_error
            result.error = error
            return result

        failed = sum(1 for outcome in result.tool_results if not outcome.success)
        logger.info(
            "Issue pipeline completed (issue=%s tools=%s failed=%s)",
            issue_key,
            len(result.tool_results),
            failed,
        )
        return result

    async def _run_tool(
        self,
        tool: str,
        issue_key: str,
        description: str,
        insert: InsertMessage,
        update: UpdateMessage,
    ) -> ToolOutcome:
        tool_message_id = insert(TOOL_RUNNING_TEXT.format(tool=tool))
        response = await self._service.run_tool(tool, issue_key, description)

        if response.success:
            update(tool_message_id, TOOL_DONE_TEXT.format(tool=tool))
            return ToolOutcome(tool=tool, success=True, message=response.message)

        reason = _reason(response.message)
        update(tool_message_id, TOOL_FAILED_TEXT.format(tool=tool, reason=reason))
        logger.warning("Tool run declined (issue=%s tool=%s): %s", issue_key, tool, reason)
        return ToolOutcome(tool=tool, success=False, message=reason)
