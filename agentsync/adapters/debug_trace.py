"""Debug trace sink for inbound and outbound traffic.

The sink is a read-only observer. Nothing it does, including raising,
can change conversation state. Retention is the owner's business:
``DebugLog`` keeps everything unless given ``max_entries``.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol

from agentsync.adapters.events import AppServerEvent
from agentsync.engine.models import DebugRecord, DebugSource, now_ms

logger = logging.getLogger(__name__)


class DebugSink(Protocol):
    def record(self, entry: DebugRecord) -> None: ...


def make_record(
    source: DebugSource,
    label: str,
    payload: Any = None,
    suffix: str | None = None,
) -> DebugRecord:
    """Build a record stamped with the current time."""
    ts = now_ms()
    return DebugRecord(
        id=f"{ts}-{suffix or source.value}",
        timestamp=ts,
        source=source,
        label=label,
        payload=payload,
    )


class DebugLog:
    """List-backed sink, optionally capped to the most recent entries."""

    def __init__(self, max_entries: int | None = None) -> None:
        self._entries: list[DebugRecord] = []
        self._max_entries = max_entries

    def record(self, entry: DebugRecord) -> None:
        self._entries.append(entry)
        if self._max_entries is not None and len(self._entries) > self._max_entries:
            del self._entries[: len(self._entries) - self._max_entries]

    @property
    def entries(self) -> list[DebugRecord]:
        return list(self._entries)

    def tail(self, n: int) -> list[DebugRecord]:
        return self._entries[-n:] if n > 0 else []

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class Tracer:
    """Emits debug records to an optional sink."""

    def __init__(self, sink: DebugSink | None = None) -> None:
        self._sink = sink

    @property
    def sink(self) -> DebugSink | None:
        return self._sink

    def emit(self, entry: DebugRecord) -> None:
        if self._sink is None:
            return
        try:
            self._sink.record(entry)
        except Exception:
            logger.warning("Debug sink rejected record %s", entry.id, exc_info=True)

    def client(self, label: str, payload: Any = None, suffix: str | None = None) -> None:
        self.emit(make_record(DebugSource.CLIENT, label, payload, suffix))

    def server(self, label: str, payload: Any = None, suffix: str | None = None) -> None:
        self.emit(make_record(DebugSource.SERVER, f"{label} response", payload, suffix))

    def error(self, label: str, exc: BaseException, suffix: str | None = None) -> None:
        self.emit(make_record(DebugSource.ERROR, f"{label} error", str(exc), suffix))

    def raw_event(self, event: AppServerEvent, stderr_method: str) -> None:
        method = event.method
        source = DebugSource.STDERR if method == stderr_method else DebugSource.EVENT
        self.emit(make_record(source, method or "event", event, "server-event"))
