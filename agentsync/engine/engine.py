"""SyncEngine: wires the event feed into conversation state.

Owns the conversation store, approval queue and lifecycle manager, and
holds a single long-lived subscription on the feed adapter. Changing
the workspace-connected delegate swaps the handler target in place;
the subscription itself is never recreated.
"""
from __future__ import annotations

import logging
from collections.abc import Callable

from agentsync.adapters.agent_client import AgentClient
from agentsync.adapters.debug_trace import DebugSink, Tracer
from agentsync.adapters.event_feed import EventFeedAdapter, EventHandlers, Subscription
from agentsync.adapters.events import AgentMessageCompleted, AgentMessageDelta, AppServerEvent
from .approvals import ApprovalQueue
from .config import SyncConfig
from .conversation_store import (
    AppendAssistantDelta,
    CompleteAssistantMessage,
    ConversationStore,
    EnsureThread,
)
from .lifecycle import ThreadLifecycleManager
from .models import ApprovalDecision, ApprovalRequest, Message, Workspace

logger = logging.getLogger(__name__)


class SyncEngine:
    """Conversation & approval synchronization for all workspaces."""

    def __init__(
        self,
        client: AgentClient,
        config: SyncConfig | None = None,
        sink: DebugSink | None = None,
        on_workspace_connected: Callable[[str], None] | None = None,
    ) -> None:
        self.config = config or SyncConfig()
        self.store = ConversationStore()
        self.tracer = Tracer(sink)
        self.lifecycle = ThreadLifecycleManager(self.store, client, self.tracer)
        self.approvals = ApprovalQueue(self.store, client, self.tracer)
        self._workspaces: dict[str, Workspace] = {}
        self._on_workspace_connected = on_workspace_connected
        self._subscription: Subscription | None = None

    # ── feed wiring ──────────────────────────────────────────────

    def handlers(self) -> EventHandlers:
        return EventHandlers(
            on_workspace_connected=self._handle_workspace_connected,
            on_approval_request=self.approvals.add,
            on_agent_message_delta=self._handle_delta,
            on_agent_message_completed=self._handle_completed,
            on_raw_event=self._handle_raw_event,
        )

    def attach(self, adapter: EventFeedAdapter) -> Subscription:
        """Subscribe to *adapter* once; later calls return the same handle."""
        if self._subscription is None or not self._subscription.active:
            self._subscription = adapter.subscribe(self.handlers())
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def set_on_workspace_connected(self, callback: Callable[[str], None] | None) -> None:
        self._on_workspace_connected = callback

    def _handle_workspace_connected(self, workspace_id: str) -> None:
        workspace = self._workspaces.setdefault(workspace_id, Workspace(id=workspace_id))
        workspace.connected = True
        logger.info("Workspace %s connected", workspace_id)
        if self._on_workspace_connected is not None:
            self._on_workspace_connected(workspace_id)

    def _handle_delta(self, event: AgentMessageDelta) -> None:
        self.store.dispatch(EnsureThread(event.workspace_id, event.thread_id))
        self.store.dispatch(
            AppendAssistantDelta(event.thread_id, event.item_id, event.delta)
        )

    def _handle_completed(self, event: AgentMessageCompleted) -> None:
        self.store.dispatch(EnsureThread(event.workspace_id, event.thread_id))
        self.store.dispatch(
            CompleteAssistantMessage(event.thread_id, event.item_id, event.text)
        )

    def _handle_raw_event(self, event: AppServerEvent) -> None:
        self.tracer.raw_event(event, self.config.stderr_method)

    # ── user actions ─────────────────────────────────────────────

    async def start_thread(self, workspace_id: str) -> str | None:
        return await self.lifecycle.start_thread(workspace_id)

    async def send_user_message(self, workspace_id: str, text: str) -> str | None:
        return await self.lifecycle.send_user_message(workspace_id, text)

    async def decide_approval(
        self, request: ApprovalRequest, decision: ApprovalDecision | str
    ) -> None:
        await self.approvals.decide(request, decision)

    def set_active_thread(self, workspace_id: str, thread_id: str | None) -> None:
        self.lifecycle.set_active_thread(workspace_id, thread_id)

    # ── queries ──────────────────────────────────────────────────

    def active_thread_id(self, workspace_id: str) -> str | None:
        return self.store.active_thread_id(workspace_id)

    def active_messages(self, workspace_id: str) -> list[Message]:
        thread_id = self.store.active_thread_id(workspace_id)
        return self.store.messages(thread_id) if thread_id else []

    @property
    def workspaces(self) -> dict[str, Workspace]:
        return dict(self._workspaces)
