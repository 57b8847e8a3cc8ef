"""Thread lifecycle: starting threads and per-workspace selection.

No thread id is minted locally. A thread exists only once the external
agent has answered the start call, or once an event references it, and
both paths go through the idempotent ``EnsureThread`` so they converge
to the same state whichever arrives first.
"""
from __future__ import annotations

import logging

from agentsync.adapters.agent_client import AgentClient, extract_thread_id
from agentsync.adapters.debug_trace import Tracer
from .conversation_store import (
    AddUserMessage,
    ConversationStore,
    EnsureThread,
    SetActiveThread,
)
from .models import Message, MessageRole, now_ms

logger = logging.getLogger(__name__)


class ThreadLifecycleManager:
    """Creates threads through the agent client and tracks the active one."""

    def __init__(
        self,
        store: ConversationStore,
        client: AgentClient,
        tracer: Tracer | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._tracer = tracer or Tracer()

    async def start_thread(self, workspace_id: str) -> str | None:
        """Start a thread in *workspace_id* and make it active.

        Returns the new thread id, or None when the response carries no
        id. Errors from the client propagate and leave state untouched.
        """
        self._tracer.client(
            "thread/start", {"workspaceId": workspace_id}, "client-thread-start"
        )
        try:
            response = await self._client.start_thread(workspace_id)
        except Exception as exc:
            self._tracer.error("thread/start", exc, "client-thread-start-error")
            raise
        self._tracer.server("thread/start", response, "server-thread-start")

        thread_id = extract_thread_id(response)
        if not thread_id:
            logger.warning(
                "thread/start for %s returned no thread id", workspace_id
            )
            return None
        self._store.dispatch(EnsureThread(workspace_id, thread_id))
        self._store.dispatch(SetActiveThread(workspace_id, thread_id))
        logger.info("Started thread %s in workspace %s", thread_id, workspace_id)
        return thread_id

    async def send_user_message(self, workspace_id: str, text: str) -> str | None:
        """Send *text* on the workspace's active thread.

        Starts a thread first when none is active. The user message is
        recorded only after the client accepts it. Returns the thread id
        used, or None when nothing was sent.
        """
        text = text.strip()
        if not text:
            return None

        thread_id = self._store.active_thread_id(workspace_id)
        if not thread_id:
            thread_id = await self.start_thread(workspace_id)
            if not thread_id:
                return None

        payload = {"workspaceId": workspace_id, "threadId": thread_id, "text": text}
        self._tracer.client("turn/start", payload, "client-turn-start")
        try:
            response = await self._client.send_user_message(workspace_id, thread_id, text)
        except Exception as exc:
            self._tracer.error("turn/start", exc, "client-turn-start-error")
            raise
        self._tracer.server("turn/start", response, "server-turn-start")

        message = Message(id=f"{now_ms()}-user", role=MessageRole.USER, text=text)
        self._store.dispatch(AddUserMessage(thread_id, message))
        return thread_id

    def set_active_thread(self, workspace_id: str, thread_id: str | None) -> None:
        self._store.dispatch(SetActiveThread(workspace_id, thread_id))

    def active_thread_id(self, workspace_id: str) -> str | None:
        return self._store.active_thread_id(workspace_id)
