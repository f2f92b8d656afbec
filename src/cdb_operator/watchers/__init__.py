"""Watcher implementations triggering allowlist reconciliation."""

from .kube import DeclarationWatcher, NodeWatcher  # noqa: F401
from .resync import ResyncWatcher  # noqa: F401

__all__ = ["DeclarationWatcher", "NodeWatcher", "ResyncWatcher"]
