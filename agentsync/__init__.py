"""agentsync - conversation & approval synchronization for agent workspaces."""

__version__ = "0.1.0"
