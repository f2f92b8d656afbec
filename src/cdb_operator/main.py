"""Entry point for the managed database allowlist operator."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

from cdb_allowlist.driver import ConvergenceDriver
from cdb_allowlist.gateway import EgressProbe
from cdb_allowlist.ovh_api import OvhDatabaseBackend, build_client

from .config import OperatorConfig, load_config
from .controller import Controller
from .kube import KubernetesClient, load_kube_config
from .watchers import DeclarationWatcher, NodeWatcher, ResyncWatcher
from .workqueue import WorkQueue

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def build_controller(config: OperatorConfig) -> tuple[Controller, KubernetesClient]:
    load_kube_config(config.kubernetes.kubeconfig)
    kube = KubernetesClient(
        group=config.kubernetes.group,
        version=config.kubernetes.version,
        plural=config.kubernetes.plural,
        timeout=config.kubernetes.timeout,
    )
    backend = OvhDatabaseBackend(
        build_client(
            config.ovh.endpoint,
            application_key=config.ovh.application_key,
            application_secret=config.ovh.application_secret,
            consumer_key=config.ovh.consumer_key,
            timeout=config.ovh.timeout,
        )
    )
    probe = EgressProbe(config.egress.probe_url, timeout=config.egress.timeout)
    queue = WorkQueue(
        base_backoff=config.reconciler.base_backoff,
        max_backoff=config.reconciler.max_backoff,
    )
    controller = Controller(kube, ConvergenceDriver(backend, probe), queue)
    return controller, kube


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Keep OVHcloud managed database allowlists in sync with Kubernetes nodes"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the operator configuration file",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Reconcile every declaration once and exit",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = load_config(args.config)
    controller, kube = build_controller(config)

    if args.once:
        try:
            results = controller.reconcile_all()
        except Exception:
            LOG.exception("reconciliation failed")
            return 1
        changed = sum(1 for r in results if r.changed)
        LOG.info("reconciled %d services, %d updated", len(results), changed)
        return 0

    stop_event = Event()
    streams = [
        NodeWatcher(controller, kube, stop_event),
        DeclarationWatcher(controller, kube, stop_event),
    ]
    resync = ResyncWatcher(controller, config.reconciler.resync_interval, stop_event)

    controller.start(config.reconciler.workers)
    # Queue everything right away instead of waiting for the first resync
    try:
        resync.poll()
    except Exception:  # pragma: no cover - retried by the resync watcher
        LOG.exception("initial resync failed")
    for watcher in (*streams, resync):
        watcher.start()

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        stop_event.set()

    for stream in streams:
        stream.stop()
    for watcher in (*streams, resync):
        watcher.join(timeout=5.0)
    controller.stop(timeout=5.0)

    LOG.info("allowlist operator stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
