"""Abstract interfaces the convergence driver talks through."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence

from .models import ClusterState, Declaration, LabelSelector, Node, RestrictionEntry


class DatabaseBackend(ABC):
    """Remote side holding the database services and their allowlists."""

    @abstractmethod
    def list_services(self, project_id: str) -> List[str]:
        """Return every database service id of ``project_id``."""

    @abstractmethod
    def get_cluster_state(self, project_id: str, service_id: str) -> ClusterState:
        """Return engine, network mode and current entries of a service."""

    @abstractmethod
    def replace_allowlist(
        self,
        project_id: str,
        service_id: str,
        engine: str,
        entries: Sequence[RestrictionEntry],
    ) -> None:
        """Replace the whole allowlist of a service with ``entries``."""


class ClusterSource(ABC):
    """Kubernetes side providing declarations and nodes."""

    @abstractmethod
    def list_declarations(self) -> List[Declaration]:
        """Return every declaration currently defined in the cluster."""

    @abstractmethod
    def list_nodes(self, selector: LabelSelector) -> List[Node]:
        """Return the nodes matching ``selector``."""
