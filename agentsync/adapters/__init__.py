"""Adapters package - Bridge between the agent processes and the engine.

This package contains the inbound event feed and its classifier, the
debug trace sink, and the contract for the outbound agent client.
"""
from __future__ import annotations

__all__ = [
    "AgentClient",
    "AppServerEvent",
    "DebugLog",
    "EventFeed",
    "EventFeedAdapter",
    "EventHandlers",
    "Subscription",
    "Tracer",
    "extract_thread_id",
]

from agentsync.adapters.agent_client import AgentClient, extract_thread_id
from agentsync.adapters.debug_trace import DebugLog, Tracer
from agentsync.adapters.event_feed import (
    EventFeed,
    EventFeedAdapter,
    EventHandlers,
    Subscription,
)
from agentsync.adapters.events import AppServerEvent
