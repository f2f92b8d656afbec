"""Data structures shared by the allowlist convergence modules.

All of these are rebuilt from scratch on every reconciliation pass; the remote
``ipRestrictions`` list is the only durable state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .ownership import encode

INTERNAL_IP = "InternalIP"
EXTERNAL_IP = "ExternalIP"


class NetworkMode(Enum):
    """Network attachment of a managed database service."""

    PRIVATE = "private"
    PUBLIC = "public"

    @classmethod
    def from_remote(cls, value: Optional[str]) -> "NetworkMode":
        # Anything the API does not report as private is reachable publicly.
        if value == cls.PRIVATE.value:
            return cls.PRIVATE
        return cls.PUBLIC


@dataclass(frozen=True)
class NodeAddress:
    """A typed Kubernetes node address (``InternalIP``, ``ExternalIP``, ...)."""

    kind: str
    address: str


@dataclass(frozen=True)
class Node:
    """The subset of a Kubernetes node the resolver needs."""

    name: str
    uid: str
    addresses: Sequence[NodeAddress] = ()

    def addresses_of(self, kind: str) -> List[str]:
        return [a.address for a in self.addresses if a.kind == kind]


@dataclass(frozen=True)
class Owner:
    """Node (or gateway pseudo-node) an allowlisted address belongs to."""

    name: str
    uid: str

    @classmethod
    def for_node(cls, node: Node) -> "Owner":
        return cls(name=node.name, uid=node.uid)


@dataclass(frozen=True)
class RestrictionEntry:
    """One ``ipRestrictions`` item as stored by the OVH API.

    ``description`` is kept exactly as the API returned it, ``None`` included,
    so foreign entries are written back unchanged.
    """

    ip: str
    description: Optional[str] = ""

    def to_payload(self) -> Dict[str, Optional[str]]:
        return {"ip": self.ip, "description": self.description}


@dataclass(frozen=True)
class OwnedAddress:
    """An address this operator manages on behalf of a node and a resource."""

    address: str
    owner: Owner
    resource_id: str

    @property
    def description(self) -> str:
        return encode(self.owner.name, self.resource_id, self.owner.uid)

    def to_entry(self) -> RestrictionEntry:
        return RestrictionEntry(ip=self.address, description=self.description)


@dataclass(frozen=True)
class ClusterState:
    """Remote view of a database service as returned by the OVH API."""

    service_id: str
    engine: str
    network_mode: NetworkMode
    entries: Tuple[RestrictionEntry, ...] = ()


@dataclass(frozen=True)
class LabelRequirement:
    """A ``matchExpressions`` item of a Kubernetes label selector."""

    key: str
    operator: str
    values: Tuple[str, ...] = ()


@dataclass(frozen=True)
class LabelSelector:
    match_labels: Dict[str, str] = field(default_factory=dict)
    match_expressions: Tuple[LabelRequirement, ...] = ()

    def __hash__(self) -> int:
        return hash((tuple(sorted(self.match_labels.items())), self.match_expressions))

    def is_empty(self) -> bool:
        return not self.match_labels and not self.match_expressions


@dataclass(frozen=True)
class Declaration:
    """A ``Database`` custom resource, reduced to what a pass consumes.

    Attributes
    ----------
    resource_id:
        The custom resource UID. It is embedded in every entry description so
        that two resources never produce the same tag.
    service_id:
        The OVH database service id, or an empty string to target every
        service of the project.
    """

    resource_id: str
    name: str
    namespace: str
    project_id: str
    service_id: str = ""
    selector: LabelSelector = field(default_factory=LabelSelector)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name

    @property
    def is_wildcard(self) -> bool:
        return not self.service_id


@dataclass(frozen=True)
class ConvergenceResult:
    """Outcome of one convergence pass for one database service."""

    project_id: str
    service_id: str
    entries: Tuple[RestrictionEntry, ...]
    changed: bool
