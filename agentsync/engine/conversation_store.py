"""Per-workspace, per-thread conversation state.

``reduce`` is a pure transition function: it takes a ThreadState
snapshot and an action and returns a new snapshot, never mutating its
input. ``ConversationStore`` owns the current snapshot and is the only
writer; every transition runs under one lock so observers only ever see
fully-applied state.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Union

from .models import ApprovalRequest, Message, MessageRole, Thread

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThreadState:
    active_thread_by_workspace: dict[str, str | None] = field(default_factory=dict)
    threads_by_workspace: dict[str, tuple[Thread, ...]] = field(default_factory=dict)
    messages_by_thread: dict[str, tuple[Message, ...]] = field(default_factory=dict)
    approvals: tuple[ApprovalRequest, ...] = ()


# ── actions ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class SetActiveThread:
    workspace_id: str
    thread_id: str | None


@dataclass(frozen=True)
class EnsureThread:
    workspace_id: str
    thread_id: str


@dataclass(frozen=True)
class AddUserMessage:
    thread_id: str
    message: Message


@dataclass(frozen=True)
class AppendAssistantDelta:
    thread_id: str
    item_id: str
    delta: str


@dataclass(frozen=True)
class CompleteAssistantMessage:
    thread_id: str
    item_id: str
    text: str


@dataclass(frozen=True)
class AddApproval:
    request: ApprovalRequest


@dataclass(frozen=True)
class RemoveApproval:
    request_id: int


Action = Union[
    SetActiveThread,
    EnsureThread,
    AddUserMessage,
    AppendAssistantDelta,
    CompleteAssistantMessage,
    AddApproval,
    RemoveApproval,
]


# ── transition function ──────────────────────────────────────────


def _with_messages(
    state: ThreadState, thread_id: str, messages: tuple[Message, ...]
) -> ThreadState:
    return replace(
        state,
        messages_by_thread={**state.messages_by_thread, thread_id: messages},
    )


def _find_message(messages: tuple[Message, ...], item_id: str) -> int:
    for index, message in enumerate(messages):
        if message.id == item_id:
            return index
    return -1


def reduce(state: ThreadState, action: Action) -> ThreadState:
    """Apply *action* to *state* and return the resulting snapshot."""
    if isinstance(action, SetActiveThread):
        return replace(
            state,
            active_thread_by_workspace={
                **state.active_thread_by_workspace,
                action.workspace_id: action.thread_id,
            },
        )

    if isinstance(action, EnsureThread):
        threads = state.threads_by_workspace.get(action.workspace_id, ())
        if any(t.id == action.thread_id for t in threads):
            return state
        thread = Thread(
            id=action.thread_id,
            workspace_id=action.workspace_id,
            name=f"Agent {len(threads) + 1}",
        )
        # Never override an existing selection
        active = state.active_thread_by_workspace.get(action.workspace_id)
        return replace(
            state,
            threads_by_workspace={
                **state.threads_by_workspace,
                action.workspace_id: threads + (thread,),
            },
            active_thread_by_workspace={
                **state.active_thread_by_workspace,
                action.workspace_id: active if active is not None else action.thread_id,
            },
        )

    if isinstance(action, AddUserMessage):
        messages = state.messages_by_thread.get(action.thread_id, ())
        return _with_messages(state, action.thread_id, messages + (action.message,))

    if isinstance(action, AppendAssistantDelta):
        messages = state.messages_by_thread.get(action.thread_id, ())
        index = _find_message(messages, action.item_id)
        if index >= 0:
            # Deltas are not idempotent; a replayed delta is appended again.
            existing = messages[index]
            updated = replace(existing, text=existing.text + action.delta)
            messages = messages[:index] + (updated,) + messages[index + 1:]
        else:
            messages = messages + (
                Message(id=action.item_id, role=MessageRole.ASSISTANT, text=action.delta),
            )
        return _with_messages(state, action.thread_id, messages)

    if isinstance(action, CompleteAssistantMessage):
        messages = state.messages_by_thread.get(action.thread_id, ())
        index = _find_message(messages, action.item_id)
        if index >= 0:
            if not action.text:
                return state
            updated = replace(messages[index], text=action.text)
            messages = messages[:index] + (updated,) + messages[index + 1:]
        else:
            messages = messages + (
                Message(id=action.item_id, role=MessageRole.ASSISTANT, text=action.text),
            )
        return _with_messages(state, action.thread_id, messages)

    if isinstance(action, AddApproval):
        return replace(state, approvals=state.approvals + (action.request,))

    if isinstance(action, RemoveApproval):
        return replace(
            state,
            approvals=tuple(
                a for a in state.approvals if a.request_id != action.request_id
            ),
        )

    logger.warning("reduce: ignoring unknown action %r", action)
    return state


# ── store ────────────────────────────────────────────────────────

StateListener = Callable[[ThreadState], None]


class ConversationStore:
    """Single-writer owner of the current ThreadState snapshot.

    ``dispatch`` applies one action atomically. Listeners are notified
    with the new snapshot after the lock is released, so a listener may
    dispatch again without deadlocking.
    """

    def __init__(self, initial: ThreadState | None = None) -> None:
        self._state = initial or ThreadState()
        self._lock = threading.Lock()
        self._listeners: list[StateListener] = []

    @property
    def snapshot(self) -> ThreadState:
        return self._state

    def dispatch(self, action: Action) -> ThreadState:
        with self._lock:
            previous = self._state
            self._state = reduce(previous, action)
            current = self._state
        if current is not previous:
            for listener in list(self._listeners):
                try:
                    listener(current)
                except Exception:
                    logger.warning(
                        "ConversationStore listener failed for %s",
                        type(action).__name__, exc_info=True,
                    )
        return current

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a snapshot listener. Returns an idempotent unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── queries ──

    def active_thread_id(self, workspace_id: str) -> str | None:
        return self._state.active_thread_by_workspace.get(workspace_id)

    def threads(self, workspace_id: str) -> list[Thread]:
        return list(self._state.threads_by_workspace.get(workspace_id, ()))

    def messages(self, thread_id: str) -> list[Message]:
        return list(self._state.messages_by_thread.get(thread_id, ()))

    def approvals(self, workspace_id: str | None = None) -> list[ApprovalRequest]:
        """Pending approvals in arrival order, optionally for one workspace."""
        return [
            a for a in self._state.approvals
            if workspace_id is None or a.workspace_id == workspace_id
        ]
