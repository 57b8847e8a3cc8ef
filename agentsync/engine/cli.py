"""CLI entry point for replaying a captured event feed.

Usage:
    agentsync-replay events.jsonl
    agentsync-replay --config sync.yaml --debug 20 events.jsonl

Each line of the input is one inbound event as JSON:
    {"workspace_id": "w1", "message": {"method": "...", "params": {...}}}
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table
from rich.text import Text

from agentsync.adapters.debug_trace import DebugLog
from agentsync.adapters.event_feed import EventFeedAdapter
from .config import SyncConfig
from .engine import SyncEngine
from .errors import AgentCallError
from .models import MessageRole

logger = logging.getLogger(__name__)


class OfflineClient:
    """Agent client for replays: there is no process to talk to."""

    async def start_thread(self, workspace_id: str):
        raise AgentCallError("thread/start", workspace_id, "offline replay")

    async def send_user_message(self, workspace_id: str, thread_id: str, text: str):
        raise AgentCallError("turn/start", workspace_id, "offline replay")

    async def respond_to_request(self, workspace_id: str, request_id: int, decision: str):
        raise AgentCallError("approval/respond", workspace_id, "offline replay")


def replay(path: Path, engine: SyncEngine, adapter: EventFeedAdapter) -> int:
    """Feed every JSON line of *path* through *adapter*. Returns events read."""
    engine.attach(adapter)
    count = 0
    with path.open(encoding="utf-8") as handle:
        for lineno, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError as exc:
                logger.warning("%s:%d: skipping invalid JSON (%s)", path, lineno, exc)
                continue
            adapter.dispatch(payload)
            count += 1
    return count


def render(console: Console, engine: SyncEngine, debug_log: DebugLog, debug_tail: int) -> None:
    state = engine.store.snapshot
    for workspace_id, threads in sorted(state.threads_by_workspace.items()):
        active = state.active_thread_by_workspace.get(workspace_id)
        console.print(Text(f"Workspace {workspace_id}", style="bold"))
        for thread in threads:
            marker = "*" if thread.id == active else " "
            console.print(f" {marker} {thread.name} ({thread.id})")
            for message in state.messages_by_thread.get(thread.id, ()):
                style = "cyan" if message.role == MessageRole.USER else "green"
                console.print(Text(f"     {message.role.value}: ", style=style) + Text(message.text))

    if state.approvals:
        table = Table(title="Pending approvals")
        table.add_column("Workspace")
        table.add_column("Request")
        table.add_column("Method")
        for request in state.approvals:
            table.add_row(request.workspace_id, str(request.request_id), request.method)
        console.print(table)

    if debug_tail > 0:
        table = Table(title="Debug trace")
        table.add_column("Source")
        table.add_column("Label")
        for entry in debug_log.tail(debug_tail):
            table.add_row(entry.source.value, entry.label)
        console.print(table)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="agentsync-replay",
        description="Replay a captured agent event feed and print the resulting state",
    )
    parser.add_argument("events", help="JSON-lines file of inbound events")
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="YAML config file (default: AGENTSYNC_* environment)",
    )
    parser.add_argument(
        "--debug",
        type=int,
        default=0,
        metavar="N",
        help="Show the last N debug trace records",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args(argv)

    if args.config:
        from .yaml_config import load_yaml_config
        config = load_yaml_config(args.config)
    else:
        config = SyncConfig.from_env()

    level = logging.DEBUG if args.verbose else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )

    path = Path(args.events)
    if not path.is_file():
        print(f"Error: Event file not found: {args.events}")
        sys.exit(1)

    debug_log = DebugLog(max_entries=config.debug_retention)
    engine = SyncEngine(OfflineClient(), config=config, sink=debug_log)
    adapter = EventFeedAdapter(config)
    count = replay(path, engine, adapter)

    console = Console()
    console.print(f"Replayed {count} events from {path}")
    render(console, engine, debug_log, args.debug)


if __name__ == "__main__":
    main()
