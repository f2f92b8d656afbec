"""Error kinds raised by a convergence pass."""

from __future__ import annotations


class AllowlistError(Exception):
    """Base class for failures that abort a single service pass."""

    retryable = False


class ClusterMisconfigured(AllowlistError):
    """A private database is targeted by a node without an internal address.

    The database and the cluster live in incompatible network topologies, so
    the whole pass for the service stops before anything is sent.
    """

    def __init__(self, service_id: str, node_name: str) -> None:
        super().__init__(
            f"node '{node_name}' has no internal address but managed database "
            f"'{service_id}' is private; the Kubernetes cluster seems to be public"
        )
        self.service_id = service_id
        self.node_name = node_name


class RemoteUnavailable(AllowlistError):
    """The OVH API or the egress probe could not be reached or answered badly."""

    retryable = True


class WildcardExpansionFailed(RemoteUnavailable):
    """Listing the services of a project failed."""

    def __init__(self, project_id: str, reason: object = None) -> None:
        message = f"failed to list database services of project '{project_id}'"
        if reason is not None:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.project_id = project_id
