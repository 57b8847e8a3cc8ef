"""Pending approval requests and their resolution."""
from __future__ import annotations

import logging

from agentsync.adapters.agent_client import AgentClient
from agentsync.adapters.debug_trace import Tracer
from .conversation_store import AddApproval, ConversationStore, RemoveApproval
from .errors import InvalidDecisionError
from .models import ApprovalDecision, ApprovalRequest

logger = logging.getLogger(__name__)


def _coerce_decision(decision: ApprovalDecision | str) -> ApprovalDecision:
    try:
        return ApprovalDecision(decision)
    except ValueError:
        raise InvalidDecisionError(decision) from None


class ApprovalQueue:
    """Arrival-ordered approvals, removed only after a successful response.

    Duplicate request ids are kept as separate entries; a successful
    decision removes every entry carrying that id.
    """

    def __init__(
        self,
        store: ConversationStore,
        client: AgentClient,
        tracer: Tracer | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._tracer = tracer or Tracer()

    def add(self, request: ApprovalRequest) -> None:
        logger.info(
            "Approval %s requested by %s (%s)",
            request.request_id, request.workspace_id, request.method,
        )
        self._store.dispatch(AddApproval(request))

    def pending(self, workspace_id: str | None = None) -> list[ApprovalRequest]:
        return self._store.approvals(workspace_id)

    async def decide(
        self, request: ApprovalRequest, decision: ApprovalDecision | str
    ) -> None:
        """Send *decision* for *request*; on failure the entry stays queued."""
        choice = _coerce_decision(decision)
        payload = {
            "workspaceId": request.workspace_id,
            "requestId": request.request_id,
            "decision": choice.value,
        }
        self._tracer.client("approval/respond", payload, "client-approval")
        try:
            await self._client.respond_to_request(
                request.workspace_id, request.request_id, choice.value
            )
        except Exception as exc:
            self._tracer.error("approval/respond", exc, "client-approval-error")
            raise
        self._tracer.server("approval/respond", payload, "server-approval")
        self._store.dispatch(RemoveApproval(request.request_id))
