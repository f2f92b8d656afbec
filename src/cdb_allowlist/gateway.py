"""Egress gateway detection for databases reached over the public network.

When the cluster NATs its outbound traffic through a shared gateway, the
database sees the gateway address instead of the node external addresses.
The operator runs inside the cluster, so asking an address echo service which
source address it observed tells us which of the two situations we are in.
"""

from __future__ import annotations

import logging
from threading import local
from typing import Callable, Dict, Mapping

import requests

from .addresses import normalize_address
from .exceptions import RemoteUnavailable
from .models import Owner

LOG = logging.getLogger(__name__)

DEFAULT_PROBE_URL = "https://ifconfig.io"
GATEWAY_NODE_NAME = "kubeGW"


class EgressProbe:
    """Query an address echo service and return the observed source address.

    Reconciliation workers share one probe, and ``requests.Session`` is not
    thread-safe, so every thread gets its own session from
    ``session_factory``.
    """

    def __init__(
        self,
        url: str = DEFAULT_PROBE_URL,
        timeout: float = 10.0,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._session_factory = session_factory
        self._local = local()

    @property
    def session(self) -> requests.Session:
        """Session bound to the calling thread."""

        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            self._local.session = session
        return session

    @property
    def url(self) -> str:
        return self._url

    def __call__(self) -> str:
        try:
            response = self.session.get(
                self._url,
                timeout=self._timeout,
                headers={"Accept": "text/plain", "User-Agent": "curl/8"},
            )
            response.raise_for_status()
            body = response.text
        except requests.RequestException as exc:
            raise RemoteUnavailable(
                f"egress probe {self._url} failed: {exc}"
            ) from exc

        try:
            address = normalize_address(body)
        except ValueError as exc:
            raise RemoteUnavailable(
                f"egress probe {self._url} returned an unreadable address {body!r}"
            ) from exc
        LOG.debug("egress probe observed source address %s", address)
        return address


def gateway_owner(address: str) -> Owner:
    """Pseudo-node owning a gateway address; its id is the address itself."""

    return Owner(name=GATEWAY_NODE_NAME, uid=address.split("/", 1)[0])


def detect_gateway(owned: Mapping[str, Owner], probed_address: str) -> Dict[str, Owner]:
    """Return the addresses to allowlist once the egress address is known.

    If ``probed_address`` belongs to one of the nodes, they egress directly
    and ``owned`` is returned unchanged. Otherwise the traffic leaves through
    a shared gateway and only that gateway address is returned.
    """

    address = normalize_address(probed_address)
    if address in owned:
        return dict(owned)

    LOG.info(
        "egress address %s is not a node address, allowlisting the gateway only",
        address,
    )
    return {address: gateway_owner(address)}
