"""Event types read from the external agent processes.

Inbound events arrive already deserialized as
``{workspace_id, message: {method, id?, params?}}``. They are parsed
into typed dataclasses here so the feed adapter can classify them
without touching raw dicts.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from agentsync.engine.errors import MalformedEventError


@dataclass(frozen=True)
class AppServerEvent:
    """One inbound event as delivered by the feed."""
    workspace_id: str
    message: dict[str, Any] = field(default_factory=dict)

    @property
    def method(self) -> str:
        method = self.message.get("method") if isinstance(self.message, Mapping) else None
        return method if isinstance(method, str) else ""

    @property
    def request_id(self) -> int | None:
        """Numeric request id, or None. Booleans are not request ids."""
        if not isinstance(self.message, Mapping):
            return None
        value = self.message.get("id")
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return None

    @property
    def params(self) -> dict[str, Any]:
        if not isinstance(self.message, Mapping):
            return {}
        params = self.message.get("params")
        return dict(params) if isinstance(params, Mapping) else {}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AppServerEvent:
        """Build an event from a feed payload, accepting either key spelling."""
        if not isinstance(data, Mapping):
            raise MalformedEventError(f"expected a mapping, got {type(data).__name__}")
        workspace_id = data.get("workspace_id", data.get("workspaceId"))
        if not isinstance(workspace_id, str) or not workspace_id:
            raise MalformedEventError("missing workspace id")
        message = data.get("message")
        if not isinstance(message, Mapping):
            raise MalformedEventError("missing message object")
        return cls(workspace_id=workspace_id, message=dict(message))


@dataclass(frozen=True)
class AgentMessageDelta:
    workspace_id: str
    thread_id: str
    item_id: str
    delta: str


@dataclass(frozen=True)
class AgentMessageCompleted:
    workspace_id: str
    thread_id: str
    item_id: str
    text: str


def read_field(params: Mapping[str, Any], camel: str, snake: str) -> str:
    """Read a string field under its compact or underscore spelling.

    Missing or null values read as ``""``; other scalars are stringified.
    """
    value = params.get(camel)
    if value is None:
        value = params.get(snake)
    if value is None:
        return ""
    if isinstance(value, (dict, list, tuple, set)):
        raise MalformedEventError(f"field {camel!r} is not a scalar")
    return str(value)
