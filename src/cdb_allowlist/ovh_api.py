"""OVHcloud Public Cloud Databases backend."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote

import ovh
from ovh.exceptions import APIError

from .base import DatabaseBackend
from .exceptions import RemoteUnavailable, WildcardExpansionFailed
from .models import ClusterState, NetworkMode, RestrictionEntry

LOG = logging.getLogger(__name__)

PREFIX_ENDPOINT = "/cloud/project"
SERVICE_ENDPOINT = "database/service"


def _segment(value: str) -> str:
    return quote(value, safe="")


def service_list_path(project_id: str) -> str:
    return f"{PREFIX_ENDPOINT}/{_segment(project_id)}/{SERVICE_ENDPOINT}"


def service_path(project_id: str, service_id: str) -> str:
    return f"{service_list_path(project_id)}/{_segment(service_id)}"


def engine_service_path(project_id: str, engine: str, service_id: str) -> str:
    return (
        f"{PREFIX_ENDPOINT}/{_segment(project_id)}/database/"
        f"{_segment(engine)}/{_segment(service_id)}"
    )


def _parse_entries(
    service_id: str, raw: Optional[Iterable[Any]]
) -> Tuple[RestrictionEntry, ...]:
    """Read ``ipRestrictions`` items, keeping descriptions untouched.

    The allowlist is replaced as a whole, so an item we cannot represent
    would be deleted on the next update. Such a response aborts the pass.
    """

    entries: List[RestrictionEntry] = []
    for item in raw or ():
        if not isinstance(item, dict) or not item.get("ip"):
            raise RemoteUnavailable(
                f"service '{service_id}' returned an unreadable ipRestrictions item {item!r}"
            )
        entries.append(RestrictionEntry(ip=str(item["ip"]), description=item.get("description")))
    return tuple(entries)


def parse_cluster_state(service_id: str, payload: Any) -> ClusterState:
    """Build a :class:`ClusterState` out of a ``database/service`` response."""

    if not isinstance(payload, dict):
        raise RemoteUnavailable(f"unexpected response for service '{service_id}': {payload!r}")
    engine = payload.get("engine")
    if not engine:
        raise RemoteUnavailable(f"service '{service_id}' has no engine")
    return ClusterState(
        service_id=str(payload.get("id") or service_id),
        engine=str(engine),
        network_mode=NetworkMode.from_remote(payload.get("networkType")),
        entries=_parse_entries(service_id, payload.get("ipRestrictions")),
    )


class OvhDatabaseBackend(DatabaseBackend):
    """Read and replace ``ipRestrictions`` through an :class:`ovh.Client`."""

    def __init__(self, client: ovh.Client) -> None:
        self._client = client

    def list_services(self, project_id: str) -> List[str]:
        try:
            services = self._client.get(service_list_path(project_id))
        except APIError as exc:
            raise WildcardExpansionFailed(project_id, exc) from exc
        return [str(service) for service in services or ()]

    def get_cluster_state(self, project_id: str, service_id: str) -> ClusterState:
        try:
            payload = self._client.get(service_path(project_id, service_id))
        except APIError as exc:
            raise RemoteUnavailable(
                f"failed to get database service '{service_id}': {exc}"
            ) from exc
        return parse_cluster_state(service_id, payload)

    def replace_allowlist(
        self,
        project_id: str,
        service_id: str,
        engine: str,
        entries: Sequence[RestrictionEntry],
    ) -> None:
        payload = [entry.to_payload() for entry in entries]
        try:
            self._client.put(
                engine_service_path(project_id, engine, service_id),
                ipRestrictions=payload,
            )
        except APIError as exc:
            raise RemoteUnavailable(
                f"failed to update ipRestrictions of service '{service_id}': {exc}"
            ) from exc


def build_client(
    endpoint: str,
    *,
    application_key: Optional[str] = None,
    application_secret: Optional[str] = None,
    consumer_key: Optional[str] = None,
    timeout: float = 30.0,
) -> ovh.Client:
    """Create an :class:`ovh.Client`; unset credentials fall back to env/ovh.conf."""

    return ovh.Client(
        endpoint=endpoint,
        application_key=application_key,
        application_secret=application_secret,
        consumer_key=consumer_key,
        timeout=timeout,
    )
