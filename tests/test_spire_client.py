"""Tests for the SPIRE registration API client."""

import json

import httpx
import pytest

from models import ProtocolError, RegistrationRequest, TransportError
from spire_client import SpireClient

REQUEST = RegistrationRequest(
    trust_domain="example.org",
    service_account="billing",
    namespace="team-a",
    cluster="demo",
    kube_config="a3ViZWNvbmZpZw==",
)


def make_client(handler) -> tuple[SpireClient, list[httpx.Request]]:
    """Build a client whose requests are answered by `handler`."""
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = SpireClient("http://spire-api:8080", transport=httpx.MockTransport(record))
    return client, seen


class TestCreateEntry:
    """Tests for SpireClient.create_entry."""

    def test_returns_entry_id(self):
        client, seen = make_client(
            lambda r: httpx.Response(200, json={"entryID": "abc123", "message": "created"})
        )

        assert client.create_entry(REQUEST) == "abc123"
        assert len(seen) == 1
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/v1/entries/add"
        assert json.loads(seen[0].content) == {
            "trustDomain": "example.org",
            "serviceAccount": "billing",
            "namespace": "team-a",
            "cluster": "demo",
            "kubeConfig": "a3ViZWNvbmZpZw==",
        }

    def test_empty_kubeconfig_is_sent(self):
        client, seen = make_client(lambda r: httpx.Response(200, json={"entryID": "abc123"}))
        request = RegistrationRequest("example.org", "billing", "team-a", "demo")

        client.create_entry(request)

        assert json.loads(seen[0].content)["kubeConfig"] == ""

    def test_non_200_is_protocol_error(self):
        client, _ = make_client(lambda r: httpx.Response(500, text="spire down"))

        with pytest.raises(ProtocolError) as exc_info:
            client.create_entry(REQUEST)

        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "spire down"

    def test_unparsable_body_is_protocol_error(self):
        client, _ = make_client(lambda r: httpx.Response(200, text="<html>ok</html>"))

        with pytest.raises(ProtocolError, match="not JSON"):
            client.create_entry(REQUEST)

    def test_non_object_body_is_protocol_error(self):
        client, _ = make_client(lambda r: httpx.Response(200, json=["abc123"]))

        with pytest.raises(ProtocolError):
            client.create_entry(REQUEST)

    def test_undecodable_body_is_protocol_error(self):
        client, _ = make_client(
            lambda r: httpx.Response(
                200, headers={"content-encoding": "gzip"}, content=b"notgzip"
            )
        )

        with pytest.raises(ProtocolError, match="unusable response"):
            client.create_entry(REQUEST)

    def test_missing_entry_id_is_protocol_error(self):
        client, _ = make_client(lambda r: httpx.Response(200, json={"message": "ok"}))

        with pytest.raises(ProtocolError, match="no entryID"):
            client.create_entry(REQUEST)

    def test_connection_failure_is_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = make_client(refuse)

        with pytest.raises(TransportError):
            client.create_entry(REQUEST)

    def test_timeout_is_transport_error(self):
        def stall(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = make_client(stall)

        with pytest.raises(TransportError):
            client.create_entry(REQUEST, timeout=0.5)


class TestRevokeEntry:
    """Tests for SpireClient.revoke_entry."""

    def test_success(self):
        client, seen = make_client(lambda r: httpx.Response(200, json={"message": "deleted"}))

        client.revoke_entry(REQUEST)

        assert seen[0].url.path == "/v1/entries/delete"

    def test_kubeconfig_is_not_sent(self):
        client, seen = make_client(lambda r: httpx.Response(200))

        client.revoke_entry(REQUEST)

        body = json.loads(seen[0].content)
        assert body["kubeConfig"] == ""
        assert body["serviceAccount"] == "billing"

    def test_not_found_is_success(self):
        client, _ = make_client(lambda r: httpx.Response(404, text="entry not found"))

        client.revoke_entry(REQUEST)

    def test_non_200_carries_body(self):
        client, _ = make_client(lambda r: httpx.Response(500, text="datastore locked"))

        with pytest.raises(ProtocolError) as exc_info:
            client.revoke_entry(REQUEST)

        assert exc_info.value.body == "datastore locked"

    def test_undecodable_body_is_protocol_error(self):
        client, _ = make_client(
            lambda r: httpx.Response(
                200, headers={"content-encoding": "gzip"}, content=b"notgzip"
            )
        )

        with pytest.raises(ProtocolError):
            client.revoke_entry(REQUEST)

    def test_connection_failure_is_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = make_client(refuse)

        with pytest.raises(TransportError):
            client.revoke_entry(REQUEST)


class TestSpireClient:
    """Tests for client lifecycle."""

    def test_close_is_idempotent(self):
        client, _ = make_client(lambda r: httpx.Response(200, json={"entryID": "x"}))
        client.create_entry(REQUEST)

        client.close()
        client.close()

    def test_repr(self):
        client = SpireClient("http://spire-api:8080", timeout=5)

        assert "http://spire-api:8080" in repr(client)
