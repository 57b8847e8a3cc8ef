"""Exception hierarchy for the synchronization engine.

Outbound call failures are propagated verbatim to the caller of the
triggering operation. Malformed inbound events never escape the
event feed adapter.
"""
from __future__ import annotations


class SyncError(Exception):
    """Base exception for all synchronization errors."""


class AgentCallError(SyncError):
    """An outbound call to the external agent process failed."""
    def __init__(self, operation: str, workspace_id: str, reason: str):
        self.operation = operation
        self.workspace_id = workspace_id
        self.reason = reason
        super().__init__(
            f"{operation} failed for workspace {workspace_id}: {reason}"
        )


class InvalidDecisionError(SyncError):
    """Approval decision is neither accept nor decline."""
    def __init__(self, decision: object):
        self.decision = decision
        super().__init__(
            f"Invalid approval decision {decision!r}; "
            f"expected 'accept' or 'decline'"
        )


class MalformedEventError(SyncError):
    """Inbound event does not have the expected shape.

    Raised by the event parser and always caught by the feed adapter,
    which degrades the event to raw tracing only.
    """
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Malformed event: {reason}")
