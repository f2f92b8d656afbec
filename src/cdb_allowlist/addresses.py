"""Resolve the node addresses a managed database has to accept."""

from __future__ import annotations

import ipaddress
import logging
from typing import Dict, Iterable

from .exceptions import ClusterMisconfigured
from .models import EXTERNAL_IP, INTERNAL_IP, NetworkMode, Node, Owner

LOG = logging.getLogger(__name__)


def normalize_address(value: str) -> str:
    """Return ``value`` with an exact-host mask appended.

    Values that already carry a mask are returned unchanged so that a bare
    node address and a remote ``a.b.c.d/32`` entry compare equal.
    """

    value = value.strip() if value else ""
    if not value:
        raise ValueError("Address value cannot be empty")
    if "/" in value:
        return str(ipaddress.ip_network(value, strict=False))
    ip = ipaddress.ip_address(value)
    if ip.version == 4:
        return f"{ip}/32"
    return f"{ip}/128"


def _private_addresses(
    nodes: Iterable[Node], service_id: str
) -> Dict[str, Owner]:
    owned: Dict[str, Owner] = {}
    for node in nodes:
        internal = node.addresses_of(INTERNAL_IP)
        if not internal:
            raise ClusterMisconfigured(service_id, node.name)
        try:
            address = normalize_address(internal[0])
        except ValueError as exc:
            raise ClusterMisconfigured(service_id, node.name) from exc
        owned.setdefault(address, Owner.for_node(node))
    return owned


def _public_addresses(nodes: Iterable[Node]) -> Dict[str, Owner]:
    owned: Dict[str, Owner] = {}
    for node in nodes:
        for value in node.addresses_of(EXTERNAL_IP):
            try:
                address = normalize_address(value)
            except ValueError:
                LOG.warning(
                    "ignoring invalid external address %r of node %s", value, node.name
                )
                continue
            owned.setdefault(address, Owner.for_node(node))
    return owned


def resolve_addresses(
    nodes: Iterable[Node], mode: NetworkMode, service_id: str = ""
) -> Dict[str, Owner]:
    """Map every normalized address to allowlist onto the node owning it.

    In private mode every node must expose an internal address, otherwise
    :class:`ClusterMisconfigured` is raised for the whole service. In public
    mode nodes without an external address are invisible to the database and
    simply skipped. An address shared by several nodes is owned by the first.
    """

    if mode is NetworkMode.PRIVATE:
        owned = _private_addresses(nodes, service_id)
    else:
        owned = _public_addresses(nodes)
    LOG.debug("resolved %s addresses: %s", mode.value, sorted(owned))
    return owned
