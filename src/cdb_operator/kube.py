"""Kubernetes adapter: ``Database`` custom resources and nodes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from cdb_allowlist.base import ClusterSource
from cdb_allowlist.exceptions import RemoteUnavailable
from cdb_allowlist.models import (
    Declaration,
    LabelRequirement,
    LabelSelector,
    Node,
    NodeAddress,
)

LOG = logging.getLogger(__name__)


def load_kube_config(kubeconfig: Optional[Path] = None) -> None:
    """Load an explicit kubeconfig, else in-cluster config, else the default one."""

    if kubeconfig is not None:
        config.load_kube_config(config_file=str(kubeconfig))
        return
    try:
        config.load_incluster_config()
    except config.ConfigException:
        LOG.warning("Failed to load in-cluster config, trying local kubeconfig")
        config.load_kube_config()


# ----------------------------------------------------------------------
# Conversions
# ----------------------------------------------------------------------
def _format_requirement(req: LabelRequirement) -> str:
    operator = req.operator
    if operator == "In":
        return f"{req.key} in ({','.join(req.values)})"
    if operator == "NotIn":
        return f"{req.key} notin ({','.join(req.values)})"
    if operator == "Exists":
        return req.key
    if operator == "DoesNotExist":
        return f"!{req.key}"
    raise ValueError(f"Unsupported label selector operator '{operator}'")


def selector_to_string(selector: LabelSelector) -> str:
    """Render ``selector`` in the ``label_selector`` query syntax."""

    parts = [f"{key}={value}" for key, value in sorted(selector.match_labels.items())]
    parts.extend(_format_requirement(req) for req in selector.match_expressions)
    return ",".join(parts)


def parse_selector(raw: Optional[Mapping[str, Any]]) -> LabelSelector:
    if not raw:
        return LabelSelector()
    match_labels = {
        str(k): str(v) for k, v in (raw.get("matchLabels") or {}).items()
    }
    expressions = []
    for item in raw.get("matchExpressions") or ():
        expressions.append(
            LabelRequirement(
                key=str(item["key"]),
                operator=str(item["operator"]),
                values=tuple(str(v) for v in item.get("values") or ()),
            )
        )
    return LabelSelector(match_labels=match_labels, match_expressions=tuple(expressions))


def declaration_from_object(obj: Mapping[str, Any]) -> Declaration:
    """Convert a ``Database`` custom object (as returned by the API) to a declaration."""

    metadata = obj.get("metadata") or {}
    spec = obj.get("spec") or {}
    project_id = spec.get("projectId")
    if not project_id:
        raise ValueError(f"Database '{metadata.get('name')}' is missing spec.projectId")
    return Declaration(
        resource_id=str(metadata.get("uid", "")),
        name=str(metadata.get("name", "")),
        namespace=str(metadata.get("namespace") or ""),
        project_id=str(project_id),
        service_id=str(spec.get("serviceId") or ""),
        selector=parse_selector(spec.get("labelSelector")),
    )


def node_from_object(obj: client.V1Node) -> Node:
    addresses = ()
    if obj.status is not None and obj.status.addresses:
        addresses = tuple(
            NodeAddress(kind=a.type, address=a.address) for a in obj.status.addresses
        )
    return Node(name=obj.metadata.name, uid=obj.metadata.uid, addresses=addresses)


# ----------------------------------------------------------------------
# Client
# ----------------------------------------------------------------------
class KubernetesClient(ClusterSource):
    """List ``Database`` objects and nodes through the official client."""

    def __init__(
        self,
        core_api: Optional[client.CoreV1Api] = None,
        custom_api: Optional[client.CustomObjectsApi] = None,
        *,
        group: str = "cloud.ovh.net",
        version: str = "v1alpha1",
        plural: str = "databases",
        timeout: float = 30.0,
    ) -> None:
        self.core_api = core_api or client.CoreV1Api()
        self.custom_api = custom_api or client.CustomObjectsApi()
        self.group = group
        self.version = version
        self.plural = plural
        self._timeout = timeout

    def list_declaration_objects(self) -> List[Dict[str, Any]]:
        try:
            response = self.custom_api.list_cluster_custom_object(
                self.group,
                self.version,
                self.plural,
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            raise RemoteUnavailable(f"failed to list {self.plural}: {exc.reason}") from exc
        return list(response.get("items", []))

    def list_declarations(self) -> List[Declaration]:
        return self._convert_declarations(self.list_declaration_objects())

    def list_nodes(self, selector: LabelSelector) -> List[Node]:
        label_selector = selector_to_string(selector)
        LOG.debug("listing nodes with selector %r", label_selector)
        try:
            response = self.core_api.list_node(
                label_selector=label_selector,
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            raise RemoteUnavailable(f"failed to list nodes: {exc.reason}") from exc
        return [node_from_object(item) for item in response.items]

    @staticmethod
    def _convert_declarations(objects: Iterable[Mapping[str, Any]]) -> List[Declaration]:
        declarations: List[Declaration] = []
        for obj in objects:
            try:
                declarations.append(declaration_from_object(obj))
            except (KeyError, ValueError) as exc:
                LOG.warning("ignoring invalid Database object: %s", exc)
        return declarations
