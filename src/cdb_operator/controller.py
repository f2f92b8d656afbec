"""Glue between the Kubernetes events, the work queue and the driver."""

from __future__ import annotations

import logging
from threading import Thread
from typing import Dict, List, Optional

from cdb_allowlist.base import ClusterSource
from cdb_allowlist.driver import ConvergenceDriver
from cdb_allowlist.models import ConvergenceResult, Declaration

from .workqueue import WorkQueue

LOG = logging.getLogger(__name__)


class Controller:
    """Reconcile ``Database`` declarations keyed by ``namespace/name``."""

    def __init__(
        self,
        source: ClusterSource,
        driver: ConvergenceDriver,
        queue: Optional[WorkQueue] = None,
    ) -> None:
        self._source = source
        self._driver = driver
        # An empty WorkQueue is falsy (it defines __len__).
        self.queue = queue if queue is not None else WorkQueue()
        self._workers: List[Thread] = []

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def enqueue(self, key: str) -> None:
        self.queue.add(key)

    def enqueue_all(self) -> int:
        """Queue every declaration; any node change may affect all of them."""

        declarations = self._source.list_declarations()
        for declaration in declarations:
            self.queue.add(declaration.key)
        return len(declarations)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------
    def reconcile(self, declaration: Declaration) -> List[ConvergenceResult]:
        nodes = self._source.list_nodes(declaration.selector)
        LOG.info(
            "reconciling %s (project %s, service %s) with %d nodes",
            declaration.key,
            declaration.project_id,
            declaration.service_id or "*",
            len(nodes),
        )
        return self._driver.reconcile(declaration, nodes)

    def reconcile_key(self, key: str) -> List[ConvergenceResult]:
        declarations: Dict[str, Declaration] = {
            d.key: d for d in self._source.list_declarations()
        }
        declaration = declarations.get(key)
        if declaration is None:
            LOG.debug("declaration %s no longer exists", key)
            return []
        return self.reconcile(declaration)

    def reconcile_all(self) -> List[ConvergenceResult]:
        """Reconcile every declaration once and raise the first failure."""

        results: List[ConvergenceResult] = []
        first_error: Optional[Exception] = None
        for declaration in self._source.list_declarations():
            try:
                results.extend(self.reconcile(declaration))
            except Exception as exc:
                LOG.error("failed to reconcile %s: %s", declaration.key, exc)
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
        return results

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------
    def process_next(self, timeout: Optional[float] = None) -> bool:
        """Handle one queued key; return ``False`` when nothing was processed."""

        key = self.queue.get(timeout=timeout)
        if key is None:
            return False
        try:
            self.reconcile_key(key)
        except Exception:
            delay = self.queue.add_rate_limited(key)
            LOG.exception("reconciliation of %s failed, retrying in %.1fs", key, delay)
        else:
            self.queue.forget(key)
        finally:
            self.queue.done(key)
        return True

    def _run_worker(self) -> None:
        while not self.queue.shutting_down:
            self.process_next(timeout=1.0)

    def start(self, workers: int = 1) -> None:
        for index in range(workers):
            worker = Thread(
                target=self._run_worker, name=f"reconciler-{index}", daemon=True
            )
            worker.start()
            self._workers.append(worker)
        LOG.info("started %d reconciliation workers", workers)

    def stop(self, timeout: Optional[float] = None) -> None:
        self.queue.shutdown()
        for worker in self._workers:
            worker.join(timeout)
        self._workers.clear()
