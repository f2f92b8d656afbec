from threading import Thread

import pytest
import requests

from cdb_allowlist.exceptions import RemoteUnavailable
from cdb_allowlist.gateway import (
    GATEWAY_NODE_NAME,
    EgressProbe,
    detect_gateway,
)
from cdb_allowlist.models import Owner


class FakeResponse:
    def __init__(self, text, status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, response=None, error=None):
        self._response = response
        self._error = error
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self._error is not None:
            raise self._error
        return self._response


def test_egress_query_returns_normalized_address():
    session = FakeSession(FakeResponse("198.51.100.10\n"))
    egress = EgressProbe(
        "https://echo.example", timeout=3, session_factory=lambda: session
    )

    assert egress() == "198.51.100.10/32"
    url, kwargs = session.calls[0]
    assert url == "https://echo.example"
    assert kwargs["timeout"] == 3


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(error=requests.ConnectionError("unreachable")),
        FakeSession(error=requests.Timeout("slow")),
        FakeSession(FakeResponse("oops", status_code=503)),
        FakeSession(FakeResponse("<html>nope</html>")),
        FakeSession(FakeResponse("")),
    ],
)
def test_egress_query_failures_raise_remote_unavailable(session):
    egress = EgressProbe(session_factory=lambda: session)

    with pytest.raises(RemoteUnavailable) as excinfo:
        egress()

    assert excinfo.value.retryable


def test_each_thread_gets_its_own_session():
    created = []

    def factory():
        session = FakeSession(FakeResponse("198.51.100.10"))
        created.append(session)
        return session

    egress = EgressProbe(session_factory=factory)
    egress()
    egress()

    worker = Thread(target=egress)
    worker.start()
    worker.join()

    assert len(created) == 2
    assert [len(s.calls) for s in created] == [2, 1]


def test_no_gateway_when_egress_address_matches_a_node():
    owned = {
        "203.0.113.1/32": Owner("node1", "uid-1"),
        "203.0.113.2/32": Owner("node2", "uid-2"),
    }

    assert detect_gateway(owned, "203.0.113.1") == owned


def test_gateway_replaces_node_addresses():
    owned = {
        "203.0.113.1/32": Owner("node1", "uid-1"),
        "203.0.113.2/32": Owner("node2", "uid-2"),
    }

    result = detect_gateway(owned, "198.51.100.10/32")

    assert result == {"198.51.100.10/32": Owner(GATEWAY_NODE_NAME, "198.51.100.10")}


def test_gateway_with_no_external_nodes():
    result = detect_gateway({}, "198.51.100.10")

    assert list(result) == ["198.51.100.10/32"]
