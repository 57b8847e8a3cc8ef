"""Tests for inbound event classification and subscription handling."""

from __future__ import annotations

import asyncio

import pytest

from agentsync.adapters.event_feed import EventFeed, EventFeedAdapter, EventHandlers
from agentsync.adapters.events import (
    AgentMessageCompleted,
    AgentMessageDelta,
    AppServerEvent,
)
from agentsync.engine.config import SyncConfig
from agentsync.engine.models import ApprovalRequest


class _Recorder:
    """Collects every callback invocation in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []

    def handlers(self) -> EventHandlers:
        return EventHandlers(
            on_workspace_connected=lambda ws: self.calls.append(("connected", ws)),
            on_approval_request=lambda req: self.calls.append(("approval", req)),
            on_agent_message_delta=lambda ev: self.calls.append(("delta", ev)),
            on_agent_message_completed=lambda ev: self.calls.append(("completed", ev)),
            on_raw_event=lambda ev: self.calls.append(("raw", ev)),
        )

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.calls]


def _event(method, workspace_id="w1", **message):
    return {"workspace_id": workspace_id, "message": {"method": method, **message}}


def _subscribed() -> tuple[EventFeedAdapter, _Recorder]:
    adapter = EventFeedAdapter()
    recorder = _Recorder()
    adapter.subscribe(recorder.handlers())
    return adapter, recorder


class TestClassification:
    def test_connected(self):
        adapter, rec = _subscribed()
        adapter.dispatch(_event("codex/connected"))
        assert rec.calls[1] == ("connected", "w1")
        assert rec.kinds() == ["raw", "connected"]

    def test_approval_request(self):
        adapter, rec = _subscribed()
        adapter.dispatch(_event(
            "item/commandExecution/requestApproval",
            id=42,
            params={"command": "rm -rf build"},
        ))
        assert rec.kinds() == ["raw", "approval"]
        assert rec.calls[1][1] == ApprovalRequest(
            workspace_id="w1",
            request_id=42,
            method="item/commandExecution/requestApproval",
            params={"command": "rm -rf build"},
        )

    def test_approval_without_params_gets_empty_mapping(self):
        adapter, rec = _subscribed()
        adapter.dispatch(_event("execCommandrequestApproval", id=3))
        assert rec.calls[1][1].params == {}

    @pytest.mark.parametrize("request_id", ["42", None, True, 4.5])
    def test_approval_needs_integer_id(self, request_id):
        adapter, rec = _subscribed()
        message = {} if request_id is None else {"id": request_id}
        adapter.dispatch(_event("item/fileChange/requestApproval", **message))
        assert rec.kinds() == ["raw"]

    def test_delta_with_compact_names(self):
        adapter, rec = _subscribed()
        adapter.dispatch(_event(
            "item/agentMessage/delta",
            params={"threadId": "t1", "itemId": "m1", "delta": "Hi"},
        ))
        assert rec.calls[1] == ("delta", AgentMessageDelta("w1", "t1", "m1", "Hi"))

    def test_delta_with_underscore_names(self):
        adapter, rec = _subscribed()
        adapter.dispatch(_event(
            "item/agentMessage/delta",
            params={"thread_id": "t1", "item_id": "m1", "delta": "Hi"},
        ))
        assert rec.calls[1] == ("delta", AgentMessageDelta("w1", "t1", "m1", "Hi"))

    @pytest.mark.parametrize(
        "params",
        [
            {"itemId": "m1", "delta": "x"},
            {"threadId": "t1", "delta": "x"},
            {"threadId": "t1", "itemId": "m1", "delta": ""},
            {"threadId": "t1", "itemId": "m1"},
        ],
    )
    def test_incomplete_delta_is_dropped(self, params):
        adapter, rec = _subscribed()
        adapter.dispatch(_event("item/agentMessage/delta", params=params))
        assert rec.kinds() == ["raw"]

    def test_completed_agent_message(self):
        adapter, rec = _subscribed()
        adapter.dispatch(_event(
            "item/completed",
            params={"thread_id": "t1", "item": {"type": "agentMessage", "id": "m1", "text": "done"}},
        ))
        assert rec.calls[1] == ("completed", AgentMessageCompleted("w1", "t1", "m1", "done"))

    def test_completed_without_text_reads_empty(self):
        adapter, rec = _subscribed()
        adapter.dispatch(_event(
            "item/completed",
            params={"threadId": "t1", "item": {"type": "agentMessage", "id": "m1"}},
        ))
        assert rec.calls[1][1].text == ""

    @pytest.mark.parametrize(
        "params",
        [
            {"threadId": "t1", "item": {"type": "commandExecution", "id": "c1"}},
            {"threadId": "t1", "item": {"type": "agentMessage", "id": ""}},
            {"threadId": "t1", "item": "agentMessage"},
            {"item": {"type": "agentMessage", "id": "m1"}},
        ],
    )
    def test_other_completions_are_trace_only(self, params):
        adapter, rec = _subscribed()
        adapter.dispatch(_event("item/completed", params=params))
        assert rec.kinds() == ["raw"]

    def test_unknown_method_is_trace_only(self):
        adapter, rec = _subscribed()
        adapter.dispatch(_event("turn/started", params={"threadId": "t1"}))
        assert rec.kinds() == ["raw"]

    def test_connected_takes_precedence_over_approval_marker(self):
        config = SyncConfig(connected_method="requestApproval/connected")
        adapter = EventFeedAdapter(config)
        rec = _Recorder()
        adapter.subscribe(rec.handlers())
        adapter.dispatch(_event("requestApproval/connected", id=1))
        assert rec.kinds() == ["raw", "connected"]

    def test_typed_event_is_accepted(self):
        adapter, rec = _subscribed()
        adapter.dispatch(AppServerEvent("w2", {"method": "codex/connected"}))
        assert rec.calls[1] == ("connected", "w2")

    def test_camel_case_workspace_key(self):
        adapter, rec = _subscribed()
        adapter.dispatch({"workspaceId": "w3", "message": {"method": "codex/connected"}})
        assert rec.calls[1] == ("connected", "w3")


class TestMalformedEvents:
    @pytest.mark.parametrize(
        "payload",
        [
            None,
            "codex/connected",
            {},
            {"workspace_id": "w1"},
            {"workspace_id": "w1", "message": "oops"},
            {"message": {"method": "codex/connected"}},
            {"workspace_id": "w1", "message": {"method": 17}},
            {"workspace_id": "w1", "message": {"method": "item/agentMessage/delta", "params": "x"}},
            {"workspace_id": "w1", "message": {"method": "item/agentMessage/delta",
                                               "params": {"threadId": {"nested": 1}, "itemId": "m", "delta": "d"}}},
        ],
    )
    def test_never_raises_and_still_traces(self, payload):
        adapter, rec = _subscribed()
        adapter.dispatch(payload)
        assert rec.kinds() == ["raw"]

    def test_raising_handler_does_not_stop_other_subscribers(self):
        adapter = EventFeedAdapter()

        def broken(_event):
            raise RuntimeError("boom")

        adapter.subscribe(EventHandlers(on_raw_event=broken, on_workspace_connected=broken))
        rec = _Recorder()
        adapter.subscribe(rec.handlers())
        adapter.dispatch(_event("codex/connected"))
        assert rec.kinds() == ["raw", "connected"]

    def test_missing_handlers_are_skipped(self):
        adapter = EventFeedAdapter()
        adapter.subscribe(EventHandlers())
        adapter.dispatch(_event("codex/connected"))


class TestSubscriptions:
    def test_raw_handler_runs_before_classified_handler(self):
        adapter, rec = _subscribed()
        adapter.dispatch(_event("codex/connected"))
        adapter.dispatch(_event("x/requestApproval", id=1))
        assert rec.kinds() == ["raw", "connected", "raw", "approval"]

    def test_unsubscribe_is_idempotent(self):
        adapter = EventFeedAdapter()
        rec = _Recorder()
        sub = adapter.subscribe(rec.handlers())
        sub.unsubscribe()
        sub.unsubscribe()
        assert not sub.active
        assert adapter.subscriber_count == 0
        adapter.dispatch(_event("codex/connected"))
        assert rec.calls == []

    def test_unsubscribing_mid_dispatch_keeps_other_subscribers(self):
        adapter = EventFeedAdapter()
        second = _Recorder()
        subs = []

        def unsubscribe_self(_event):
            subs[0].unsubscribe()

        subs.append(adapter.subscribe(EventHandlers(on_raw_event=unsubscribe_self)))
        adapter.subscribe(second.handlers())
        adapter.dispatch(_event("codex/connected"))
        assert second.kinds() == ["raw", "connected"]
        assert adapter.subscriber_count == 1

    def test_unsubscribe_stops_delivery_of_pending_classified_handler(self):
        adapter = EventFeedAdapter()
        calls = []
        subs = []

        def on_raw(_event):
            subs[0].unsubscribe()

        subs.append(adapter.subscribe(EventHandlers(
            on_raw_event=on_raw,
            on_workspace_connected=calls.append,
        )))
        adapter.dispatch(_event("codex/connected"))
        assert calls == []

    def test_set_handlers_swaps_targets_without_resubscribing(self):
        adapter = EventFeedAdapter()
        first, second = _Recorder(), _Recorder()
        sub = adapter.subscribe(first.handlers())
        adapter.dispatch(_event("codex/connected", workspace_id="w1"))
        sub.set_handlers(second.handlers())
        adapter.dispatch(_event("codex/connected", workspace_id="w2"))
        assert adapter.subscriber_count == 1
        assert first.calls[1] == ("connected", "w1")
        assert second.calls[1] == ("connected", "w2")
        assert len(first.calls) == 2


class TestEventFeed:
    @pytest.mark.asyncio
    async def test_run_dispatches_until_closed(self):
        feed = EventFeed(maxsize=10)
        adapter, rec = _subscribed()
        runner = asyncio.create_task(adapter.run(feed))

        await feed.emit(_event("codex/connected"))
        await feed.make_callback()(_event("codex/connected", workspace_id="w2"))
        for _ in range(50):
            if len(rec.calls) == 4:
                break
            await asyncio.sleep(0.01)
        feed.close()
        await asyncio.wait_for(runner, timeout=2.0)

        assert [c for c in rec.calls if c[0] == "connected"] == [
            ("connected", "w1"),
            ("connected", "w2"),
        ]

    @pytest.mark.asyncio
    async def test_emit_after_close_is_ignored_and_reset_reopens(self):
        feed = EventFeed(maxsize=1)
        feed.close()
        await feed.emit(_event("codex/connected"))
        assert feed.closed
        feed.reset()
        assert not feed.closed

    @pytest.mark.asyncio
    async def test_full_queue_drops_after_timeout(self):
        feed = EventFeed(maxsize=1, put_timeout=0.01)
        await feed.emit(_event("a"))
        await feed.emit(_event("b"))
        feed.reset()

    def test_from_config(self):
        feed = EventFeed.from_config(SyncConfig(event_queue_size=3, event_put_timeout_seconds=1.5))
        assert feed._queue.maxsize == 3
        assert feed._put_timeout == 1.5
