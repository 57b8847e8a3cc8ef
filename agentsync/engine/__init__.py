"""Conversation & approval synchronization engine for external agent processes."""
from .models import (
    ApprovalDecision,
    ApprovalRequest,
    DebugRecord,
    DebugSource,
    Message,
    MessageRole,
    Thread,
    Workspace,
)
from .config import SyncConfig
from .conversation_store import (
    AddApproval,
    AddUserMessage,
    AppendAssistantDelta,
    CompleteAssistantMessage,
    ConversationStore,
    EnsureThread,
    RemoveApproval,
    SetActiveThread,
    ThreadState,
    reduce,
)
from .errors import (
    AgentCallError,
    InvalidDecisionError,
    MalformedEventError,
    SyncError,
)

__all__ = [
    # Core engine (lazy import to avoid circular deps)
    "SyncEngine",
    "ThreadLifecycleManager",
    "ApprovalQueue",
    # Models
    "ApprovalDecision",
    "ApprovalRequest",
    "DebugRecord",
    "DebugSource",
    "Message",
    "MessageRole",
    "Thread",
    "Workspace",
    # State
    "ThreadState",
    "ConversationStore",
    "reduce",
    "SetActiveThread",
    "EnsureThread",
    "AddUserMessage",
    "AppendAssistantDelta",
    "CompleteAssistantMessage",
    "AddApproval",
    "RemoveApproval",
    # Config
    "SyncConfig",
    "load_yaml_config",
    # Errors
    "AgentCallError",
    "InvalidDecisionError",
    "MalformedEventError",
    "SyncError",
]


def __getattr__(name: str):
    if name == "SyncEngine":
        from .engine import SyncEngine
        return SyncEngine
    if name == "ThreadLifecycleManager":
        from .lifecycle import ThreadLifecycleManager
        return ThreadLifecycleManager
    if name == "ApprovalQueue":
        from .approvals import ApprovalQueue
        return ApprovalQueue
    if name == "load_yaml_config":
        from .yaml_config import load_yaml_config
        return load_yaml_config
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
