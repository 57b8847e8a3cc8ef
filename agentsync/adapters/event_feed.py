"""Inbound event feed and the adapter that classifies it.

``EventFeed`` is the process-wide inbound channel: producers emit raw
event payloads into an async queue and a single consumer loop drains
it. ``EventFeedAdapter`` drains the feed, classifies each event by
method name and forwards it to every active ``Subscription``.

A subscription is long-lived. Consumers swap the handler set it
forwards to with ``set_handlers`` instead of unsubscribing and
resubscribing, so no event can fall into a gap between the two.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from agentsync.adapters.events import (
    AgentMessageCompleted,
    AgentMessageDelta,
    AppServerEvent,
    read_field,
)
from agentsync.engine.config import SyncConfig
from agentsync.engine.errors import MalformedEventError
from agentsync.engine.models import ApprovalRequest

logger = logging.getLogger(__name__)


class EventFeed:
    """Async queue carrying raw inbound events to the adapter."""

    def __init__(self, maxsize: int = 5000, put_timeout: float = 30.0) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._put_timeout = put_timeout
        self._closed = False

    @classmethod
    def from_config(cls, config: SyncConfig) -> EventFeed:
        return cls(
            maxsize=config.event_queue_size,
            put_timeout=config.event_put_timeout_seconds,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, payload: AppServerEvent | Mapping[str, Any]) -> None:
        """Queue one inbound event. Blocks while the queue is full."""
        if self._closed:
            return
        try:
            await asyncio.wait_for(self._queue.put(payload), timeout=self._put_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "EventFeed queue blocked for %.0fs, dropping event (queue size: %d)",
                self._put_timeout,
                self._queue.qsize(),
            )

    def make_callback(self) -> Callable[[Any], Any]:
        """Return the async callback producers should call per event."""
        return self.emit

    async def consume(self) -> AsyncIterator[Any]:
        """Yield events as they arrive. Stops on close()."""
        while not self._closed:
            try:
                payload = await asyncio.wait_for(self._queue.get(), timeout=0.5)
            except asyncio.TimeoutError:
                continue
            yield payload

    def close(self) -> None:
        """Stop the consumer loop permanently."""
        self._closed = True

    def reset(self) -> None:
        """Drain leftover events and re-open the feed."""
        while not self._queue.empty():
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
        self._closed = False


@dataclass
class EventHandlers:
    """Callbacks a subscriber wants invoked. Every entry is optional."""
    on_workspace_connected: Callable[[str], None] | None = None
    on_approval_request: Callable[[ApprovalRequest], None] | None = None
    on_agent_message_delta: Callable[[AgentMessageDelta], None] | None = None
    on_agent_message_completed: Callable[[AgentMessageCompleted], None] | None = None
    on_raw_event: Callable[[AppServerEvent], None] | None = None


class Subscription:
    """Handle returned by ``EventFeedAdapter.subscribe``."""

    def __init__(self, adapter: EventFeedAdapter, handlers: EventHandlers) -> None:
        self._adapter = adapter
        self._handlers = handlers
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def handlers(self) -> EventHandlers:
        return self._handlers

    def set_handlers(self, handlers: EventHandlers) -> None:
        """Forward subsequent events to *handlers*. Delivery never pauses."""
        self._handlers = handlers

    def unsubscribe(self) -> None:
        """Stop delivery to this subscription. Safe to call repeatedly."""
        if not self._active:
            return
        self._active = False
        self._adapter._remove(self)


# (kind, payload) produced by classification
_Classified = tuple[str, Any]


class EventFeedAdapter:
    """Classifies inbound events and fans them out to subscribers."""

    def __init__(self, config: SyncConfig | None = None) -> None:
        self._config = config or SyncConfig()
        self._subscriptions: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, handlers: EventHandlers) -> Subscription:
        subscription = Subscription(self, handlers)
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        # Rebind instead of mutating so in-progress dispatch loops keep
        # their own snapshot of the list.
        self._subscriptions = [s for s in self._subscriptions if s is not subscription]

    async def run(self, feed: EventFeed) -> None:
        """Dispatch every event from *feed* until it is closed."""
        async for payload in feed.consume():
            self.dispatch(payload)

    def dispatch(self, payload: AppServerEvent | Mapping[str, Any]) -> None:
        """Trace, classify and deliver one inbound event. Never raises."""
        event, malformed = _coerce(payload)
        classified: _Classified | None = None
        if not malformed:
            try:
                classified = self._classify(event)
            except MalformedEventError as exc:
                logger.debug(
                    "Dropping malformed %r event from %s: %s",
                    event.method, event.workspace_id, exc.reason,
                )

        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            handlers = subscription.handlers
            _invoke(handlers.on_raw_event, event, "on_raw_event")
            if classified is None or not subscription.active:
                continue
            kind, value = classified
            _invoke(getattr(handlers, kind), value, kind)

    def _classify(self, event: AppServerEvent) -> _Classified | None:
        config = self._config
        method = event.method

        if method == config.connected_method:
            return "on_workspace_connected", event.workspace_id

        request_id = event.request_id
        if config.approval_marker in method and request_id is not None:
            return "on_approval_request", ApprovalRequest(
                workspace_id=event.workspace_id,
                request_id=request_id,
                method=method,
                params=event.params,
            )

        if method == config.delta_method:
            params = event.params
            thread_id = read_field(params, "threadId", "thread_id")
            item_id = read_field(params, "itemId", "item_id")
            delta = params.get("delta")
            if thread_id and item_id and isinstance(delta, str) and delta:
                return "on_agent_message_delta", AgentMessageDelta(
                    workspace_id=event.workspace_id,
                    thread_id=thread_id,
                    item_id=item_id,
                    delta=delta,
                )
            return None

        if method == config.completed_method:
            params = event.params
            thread_id = read_field(params, "threadId", "thread_id")
            item = params.get("item")
            if not thread_id or not isinstance(item, Mapping):
                return None
            if item.get("type") != config.agent_message_type:
                return None
            item_id = read_field(item, "id", "id")
            if not item_id:
                return None
            text = item.get("text")
            return "on_agent_message_completed", AgentMessageCompleted(
                workspace_id=event.workspace_id,
                thread_id=thread_id,
                item_id=item_id,
                text=text if isinstance(text, str) else "",
            )

        return None


def _coerce(payload: Any) -> tuple[AppServerEvent, bool]:
    """Return ``(event, malformed)``. Malformed payloads get a best-effort event."""
    if isinstance(payload, AppServerEvent):
        return payload, False
    try:
        return AppServerEvent.from_dict(payload), False
    except MalformedEventError as exc:
        logger.debug("Malformed inbound event: %s", exc.reason)
    workspace_id = ""
    message: dict[str, Any] = {}
    if isinstance(payload, Mapping):
        raw_ws = payload.get("workspace_id", payload.get("workspaceId"))
        workspace_id = raw_ws if isinstance(raw_ws, str) else ""
        raw_message = payload.get("message")
        if isinstance(raw_message, Mapping):
            message = dict(raw_message)
    return AppServerEvent(workspace_id=workspace_id, message=message), True


def _invoke(handler: Callable[[Any], None] | None, value: Any, name: str) -> None:
    if handler is None:
        return
    try:
        handler(value)
    except Exception:
        # A failing subscriber must not break delivery to the others.
        logger.warning("Event handler %s raised", name, exc_info=True)
