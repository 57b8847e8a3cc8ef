"""YAML configuration loader.

Loads a YAML file whose ``sync`` section overrides SyncConfig defaults.
Unknown keys are ignored with a warning.

Example YAML:
    sync:
      connected_method: codex/connected
      approval_marker: requestApproval
      event_queue_size: 2000
      debug_retention: 500
      log_level: DEBUG
"""
from __future__ import annotations

import logging
from dataclasses import fields
from pathlib import Path

import yaml

from .config import SyncConfig

logger = logging.getLogger(__name__)


def load_yaml_config(path: str | Path) -> SyncConfig:
    """Load and parse a YAML config file into a SyncConfig."""
    path = Path(path)
    logger.info(
        "load_yaml_config: attempting to load config from %s (exists=%s)",
        path, path.exists()
    )
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error(
            "load_yaml_config: config file not found at %s (absolute path: %s)",
            path, path.absolute()
        )
        raise
    except yaml.YAMLError as exc:
        logger.error(
            "load_yaml_config: YAML parse error in %s: %s",
            path, exc
        )
        raise

    sync_raw = (raw.get("sync") or {}) if isinstance(raw, dict) else {}
    if not isinstance(sync_raw, dict):
        logger.warning(
            "load_yaml_config: 'sync' section in %s is not a mapping, ignoring",
            path,
        )
        sync_raw = {}

    known = {f.name for f in fields(SyncConfig)}
    unknown = sorted(k for k in sync_raw if k not in known)
    if unknown:
        logger.warning(
            "load_yaml_config: ignoring unknown sync keys in %s: %s",
            path.name, ", ".join(unknown),
        )

    config = SyncConfig(**{k: v for k, v in sync_raw.items() if k in known})
    logger.info(
        "Parsed YAML config %s: sync keys %s",
        path.name, ", ".join(sorted(k for k in sync_raw if k in known)) or "(defaults)",
    )
    return config
