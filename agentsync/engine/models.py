"""Core data models for the synchronization engine.

All dataclasses, enums, and type aliases. Single source of truth
to avoid circular imports.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ApprovalDecision(str, Enum):
    """Answers the user can give to an approval request."""
    ACCEPT = "accept"
    DECLINE = "decline"


class DebugSource(str, Enum):
    """Origin of a debug trace record."""
    CLIENT = "client"
    SERVER = "server"
    EVENT = "event"
    STDERR = "stderr"
    ERROR = "error"


@dataclass
class Workspace:
    """A connected project context. Identity is owned externally."""
    id: str
    connected: bool = False


@dataclass(frozen=True)
class Thread:
    id: str
    workspace_id: str
    name: str


@dataclass(frozen=True)
class Message:
    id: str
    role: MessageRole
    text: str = ""


@dataclass(frozen=True)
class ApprovalRequest:
    """An agent's pause point awaiting an accept/decline decision."""
    workspace_id: str
    request_id: int
    method: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DebugRecord:
    id: str
    timestamp: int
    source: DebugSource
    label: str
    payload: Any = None


def now_ms() -> int:
    """Wall clock in milliseconds, used for record ids and timestamps."""
    return int(time.time() * 1000)
