"""Convergence driver for managed database allowlists.

One pass targets one database service and runs these steps in order,
stopping at the first error:

1. fetch the remote state (engine, network mode, current entries);
2. resolve the node addresses relevant to the network mode;
3. on public networks, replace them with the egress gateway when needed;
4. merge them with the entries we do not own;
5. replace the remote allowlist, only if the result differs.

The single replace call of step 5 is the only mutation, so a failing pass
never leaves a half-applied allowlist behind.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from .addresses import resolve_addresses
from .base import DatabaseBackend
from .exceptions import WildcardExpansionFailed
from .gateway import detect_gateway
from .merger import merge
from .models import ConvergenceResult, Declaration, NetworkMode, Node

LOG = logging.getLogger(__name__)


class ConvergenceDriver:
    """Converge database allowlists towards the nodes selected by a declaration."""

    def __init__(
        self,
        backend: DatabaseBackend,
        probe: Callable[[], str],
    ) -> None:
        self._backend = backend
        self._probe = probe

    # ------------------------------------------------------------------
    # Target expansion
    # ------------------------------------------------------------------
    def services_for(self, declaration: Declaration) -> List[str]:
        """Return the service ids targeted by ``declaration``."""

        if not declaration.is_wildcard:
            return [declaration.service_id]

        try:
            services = list(self._backend.list_services(declaration.project_id))
        except WildcardExpansionFailed:
            raise
        except Exception as exc:
            raise WildcardExpansionFailed(declaration.project_id, exc) from exc
        LOG.info(
            "declaration %s targets every service of project %s: %s",
            declaration.key,
            declaration.project_id,
            services,
        )
        return services

    # ------------------------------------------------------------------
    # Convergence
    # ------------------------------------------------------------------
    def converge(
        self, declaration: Declaration, nodes: Sequence[Node], service_id: str
    ) -> ConvergenceResult:
        """Run one convergence pass for ``service_id``."""

        project_id = declaration.project_id
        state = self._backend.get_cluster_state(project_id, service_id)
        LOG.debug("service %s current entries: %s", service_id, state.entries)

        owned = resolve_addresses(nodes, state.network_mode, service_id)
        if state.network_mode is NetworkMode.PUBLIC:
            owned = detect_gateway(owned, self._probe())

        desired = tuple(merge(owned, state.entries, declaration.resource_id))
        if set(desired) == set(state.entries):
            LOG.debug("service %s allowlist already converged", service_id)
            return ConvergenceResult(project_id, service_id, desired, changed=False)

        LOG.info(
            "updating allowlist of service %s (%s): %d -> %d entries",
            service_id,
            state.engine,
            len(state.entries),
            len(desired),
        )
        self._backend.replace_allowlist(project_id, service_id, state.engine, desired)
        return ConvergenceResult(project_id, service_id, desired, changed=True)

    def reconcile(
        self, declaration: Declaration, nodes: Sequence[Node]
    ) -> List[ConvergenceResult]:
        """Converge every service targeted by ``declaration``.

        A failing service does not prevent the others from being processed;
        the first error is raised once all of them have been attempted.
        """

        LOG.debug("declaration %s selects %d nodes", declaration.key, len(nodes))
        results: List[ConvergenceResult] = []
        first_error: Optional[Exception] = None
        for service_id in self.services_for(declaration):
            try:
                results.append(self.converge(declaration, nodes, service_id))
            except Exception as exc:
                LOG.error(
                    "failed to converge allowlist of service %s for %s: %s",
                    service_id,
                    declaration.key,
                    exc,
                )
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
        return results
