from __future__ import annotations

import asyncio
import logging

from issuechat.services.issue_client import issue_client
from issuechat.services.pipeline import IssuePipeline, IssueService, PipelineResult
from issuechat.store.sessions import ChatSession

logger = logging.getLogger(__name__)


class SessionPipelineRunner:
    """Runs the issue pipeline against a chat session's message store.

    Runs of one session are serialized so their placeholders never interleave.
    """

    def __init__(self, service: IssueService | None = None) -> None:
        self._pipeline = IssuePipeline(service or issue_client)
        self._tasks: set[asyncio.Task] = set()

    async def run(self, session: ChatSession, content: str) -> PipelineResult:
        async with session.pipeline_lock:
            result = await self._pipeline.run(
                content,
                session.store.insert,
                session.store.update,
            )
        logger.info(
            "Pipeline finished (session=%s state=%s)",
            session.session_id,
            result.state.value,
        )
        return result

    def schedule(self, session: ChatSession, content: str) -> asyncio.Task:
        task = asyncio.create_task(self.run(session, content))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


pipeline_runner = SessionPipelineRunner()
