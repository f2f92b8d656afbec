"""Kubernetes watch streams for nodes and ``Database`` objects."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from threading import Event, Thread
from typing import Any, Callable, Dict, Hashable, Mapping, Optional

from kubernetes import watch

from cdb_operator.controller import Controller
from cdb_operator.kube import KubernetesClient

LOG = logging.getLogger(__name__)

HANDLED_EVENTS = ("ADDED", "MODIFIED", "DELETED")


class _StreamWatcher(Thread, ABC):
    """Consume a watch stream, restarting it whenever it ends or fails."""

    def __init__(
        self,
        controller: Controller,
        stop_event: Event,
        *,
        timeout_seconds: int = 300,
        retry_interval: float = 5.0,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(daemon=True, name=name)
        self._controller = controller
        self._stop_event = stop_event
        self._timeout_seconds = timeout_seconds
        self._retry_interval = retry_interval
        self._watch: Optional[watch.Watch] = None

    @abstractmethod
    def _list_call(self) -> Callable[..., Any]:
        """Return the API list function the stream watches."""

    def _list_args(self) -> tuple:
        return ()

    @abstractmethod
    def handle(self, event: Mapping[str, Any]) -> None:
        """React to one ``ADDED``, ``MODIFIED`` or ``DELETED`` event."""

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._stream_once()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("%s stream failed, restarting", self.name)
                self._stop_event.wait(self._retry_interval)

    def _stream_once(self) -> None:
        self._watch = watch.Watch()
        stream = self._watch.stream(
            self._list_call(),
            *self._list_args(),
            timeout_seconds=self._timeout_seconds,
        )
        for event in stream:
            if self._stop_event.is_set():
                break
            if event.get("type") == "ERROR":
                raise RuntimeError(f"watch returned an error: {event.get('raw_object')}")
            if event.get("type") in HANDLED_EVENTS:
                self.handle(event)
        self._watch.stop()

    def stop(self) -> None:
        if self._watch is not None:
            self._watch.stop()


def _node_fingerprint(node: Any) -> Hashable:
    labels = tuple(sorted((node.metadata.labels or {}).items()))
    addresses: tuple = ()
    if node.status is not None and node.status.addresses:
        addresses = tuple(sorted((a.type, a.address) for a in node.status.addresses))
    return node.metadata.uid, labels, addresses


class NodeWatcher(_StreamWatcher):
    """Queue every declaration when node membership, labels or addresses change.

    Node objects are updated often (conditions, heartbeats); only changes that
    can alter a selection or an address trigger a reconciliation.
    """

    def __init__(self, controller: Controller, client: KubernetesClient, stop_event: Event, **kwargs) -> None:
        kwargs.setdefault("name", "node-watcher")
        super().__init__(controller, stop_event, **kwargs)
        self._client = client
        self._seen: Dict[str, Hashable] = {}

    def _list_call(self) -> Callable[..., Any]:
        return self._client.core_api.list_node

    def handle(self, event: Mapping[str, Any]) -> None:
        node = event["object"]
        name = node.metadata.name
        if event["type"] == "DELETED":
            self._seen.pop(name, None)
        else:
            fingerprint = _node_fingerprint(node)
            if self._seen.get(name) == fingerprint:
                return
            self._seen[name] = fingerprint
        LOG.debug("node %s %s", name, event["type"].lower())
        self._controller.enqueue_all()


class DeclarationWatcher(_StreamWatcher):
    """Queue a declaration whenever its ``Database`` object changes."""

    def __init__(self, controller: Controller, client: KubernetesClient, stop_event: Event, **kwargs) -> None:
        kwargs.setdefault("name", "declaration-watcher")
        super().__init__(controller, stop_event, **kwargs)
        self._client = client

    def _list_call(self) -> Callable[..., Any]:
        return self._client.custom_api.list_cluster_custom_object

    def _list_args(self) -> tuple:
        return (self._client.group, self._client.version, self._client.plural)

    def handle(self, event: Mapping[str, Any]) -> None:
        metadata = event["object"].get("metadata") or {}
        namespace = metadata.get("namespace") or ""
        name = metadata.get("name", "")
        key = f"{namespace}/{name}" if namespace else name
        if event["type"] == "DELETED":
            LOG.info("declaration %s deleted", key)
            return
        LOG.debug("declaration %s %s", key, event["type"].lower())
        self._controller.enqueue(key)
