"""Allowlist convergence for OVHcloud managed databases.

This package holds the decision logic that keeps the ``ipRestrictions`` list
of a Public Cloud Database in line with a set of Kubernetes nodes:

* resolving which node addresses the database should accept, depending on
  whether the service sits on a private or a public network;
* detecting clusters whose public egress goes through a shared gateway;
* tagging the entries we own so that manually added ones survive; and
* merging everything into a single full-state replace request.

Everything here is pure Python and talks to the outside world through the
small interfaces in :mod:`cdb_allowlist.base`, so unit tests can run without a
cluster or OVH credentials.
"""

from .driver import ConvergenceDriver  # noqa: F401
from .exceptions import (  # noqa: F401
    AllowlistError,
    ClusterMisconfigured,
    RemoteUnavailable,
    WildcardExpansionFailed,
)

__all__ = [
    "AllowlistError",
    "ClusterMisconfigured",
    "ConvergenceDriver",
    "RemoteUnavailable",
    "WildcardExpansionFailed",
]
