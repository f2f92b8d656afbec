"""Periodic resync of every declaration."""

from __future__ import annotations

import logging
from threading import Event, Thread

from cdb_operator.controller import Controller

LOG = logging.getLogger(__name__)


class ResyncWatcher(Thread):
    """Queue every declaration at a fixed interval.

    Watch streams can miss events while reconnecting; the resync makes sure
    drift on the OVH side is corrected even when the cluster is quiet.
    """

    def __init__(
        self,
        controller: Controller,
        interval: float,
        stop_event: Event,
    ) -> None:
        super().__init__(daemon=True, name="resync-watcher")
        self._controller = controller
        self._interval = interval
        self._stop_event = stop_event

    def run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self.poll()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("resync watcher encountered an error")

    def poll(self) -> int:
        count = self._controller.enqueue_all()
        LOG.debug("resync queued %d declarations", count)
        return count
