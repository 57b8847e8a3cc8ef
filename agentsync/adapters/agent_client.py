"""Contract for the collaborator that talks to the external agent process.

The engine never spawns or speaks to the process itself. It awaits
these calls and only mutates state after they return. Whatever an
implementation raises reaches the caller unchanged.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol


class AgentClient(Protocol):
    """Outbound calls required by the synchronization engine."""

    async def start_thread(self, workspace_id: str) -> Mapping[str, Any]:
        """Start a thread. Returns ``{"thread": {"id": ...}}`` or a
        JSON-RPC envelope ``{"result": {"thread": {"id": ...}}}``."""
        ...

    async def send_user_message(
        self, workspace_id: str, thread_id: str, text: str
    ) -> Any: ...

    async def respond_to_request(
        self, workspace_id: str, request_id: int, decision: str
    ) -> None: ...


def extract_thread_id(response: Any) -> str:
    """Pull the thread id out of a start-thread response, or ``""``."""
    if not isinstance(response, Mapping):
        return ""
    result = response.get("result")
    thread = result.get("thread") if isinstance(result, Mapping) else None
    if thread is None:
        thread = response.get("thread")
    if not isinstance(thread, Mapping):
        return ""
    thread_id = thread.get("id")
    return "" if thread_id is None else str(thread_id)
