"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via AGENTSYNC_* env vars.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class SyncConfig:
    """Synchronization engine configuration."""

    # Method tags of the inbound event feed
    connected_method: str = "codex/connected"
    approval_marker: str = "requestApproval"
    delta_method: str = "item/agentMessage/delta"
    completed_method: str = "item/completed"
    stderr_method: str = "codex/stderr"
    # item.type of completed items that carry assistant text
    agent_message_type: str = "agentMessage"

    # Inbound event queue size (backpressure beyond this)
    event_queue_size: int = 5000
    # Seconds an emit may block on a full queue before the event is dropped
    event_put_timeout_seconds: float = 30.0

    # Retention for debug logs owned by subscribers. None keeps everything.
    debug_retention: int | None = 300

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> SyncConfig:
        """Load configuration from AGENTSYNC_* environment variables."""
        sync_vars = {
            k: v for k, v in os.environ.items() if k.startswith("AGENTSYNC_")
        }
        if sync_vars:
            logger.info(
                "SyncConfig.from_env: AGENTSYNC_* env overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(sync_vars.items())),
            )
        else:
            logger.debug("SyncConfig.from_env: no AGENTSYNC_* env vars set, using defaults")

        retention_raw = os.getenv("AGENTSYNC_DEBUG_RETENTION")
        if retention_raw is None:
            retention = cls.debug_retention
        else:
            retention = int(retention_raw) if retention_raw.strip() else None
            if retention is not None and retention <= 0:
                retention = None

        config = cls(
            connected_method=os.getenv(
                "AGENTSYNC_CONNECTED_METHOD", cls.connected_method
            ),
            approval_marker=os.getenv(
                "AGENTSYNC_APPROVAL_MARKER", cls.approval_marker
            ),
            delta_method=os.getenv(
                "AGENTSYNC_DELTA_METHOD", cls.delta_method
            ),
            completed_method=os.getenv(
                "AGENTSYNC_COMPLETED_METHOD", cls.completed_method
            ),
            stderr_method=os.getenv(
                "AGENTSYNC_STDERR_METHOD", cls.stderr_method
            ),
            event_queue_size=int(os.getenv(
                "AGENTSYNC_QUEUE_SIZE", str(cls.event_queue_size)
            )),
            event_put_timeout_seconds=float(os.getenv(
                "AGENTSYNC_PUT_TIMEOUT", str(cls.event_put_timeout_seconds)
            )),
            debug_retention=retention,
            log_level=os.getenv("AGENTSYNC_LOG_LEVEL", cls.log_level),
        )
        logger.info(
            "SyncConfig.from_env: queue_size=%d debug_retention=%s log_level=%s",
            config.event_queue_size, config.debug_retention, config.log_level,
        )
        return config
