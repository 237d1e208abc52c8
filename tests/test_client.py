"""
Tests for the client configuration and the HL7v2 store client.
"""

import base64
import dataclasses
import json

import httpx
import pytest

from hl7_ingest.client.auth import StaticTokenSource
from hl7_ingest.client.config import ClientConfig, load_client_config, store_address
from hl7_ingest.client.ratelimit import RateLimiter
from hl7_ingest.client.store import (
    API_FORMAT_HEADER,
    ListResult,
    Message,
    MessageStoreClient,
    SendResult,
)
from hl7_ingest.errors import (
    ConfigValidationError,
    DecodeError,
    MissingDatasetID,
    MissingHL7StoreID,
    MissingLocationID,
    MissingProjectID,
    NotFoundError,
    TransportError,
)


STORE = "projects/p/locations/l/datasets/d/hl7V2Stores/s"
ACK = b"MSH|^~\\&|HCAPI|GCP|SENDER|FAC|20240101120000||ACK|123|P|2.5\rMSA|AA|123\r"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _config(**kwargs) -> ClientConfig:
    defaults = dict(project="p", location="l", dataset="d", store="s")
    defaults.update(kwargs)
    return ClientConfig(**defaults)


class CountingLimiter(RateLimiter):
    def __init__(self):
        self.calls = 0

    def acquire(self, timeout=None):
        self.calls += 1


def _client(handler, limiter=None, **config) -> MessageStoreClient:
    return MessageStoreClient(
        _config(**config),
        token_source=StaticTokenSource("test-token"),
        limiter=limiter,
        transport=httpx.MockTransport(handler),
    )


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


# ---------------------------------------------------------------------------
# ClientConfig
# ---------------------------------------------------------------------------

class TestClientConfig:
    def test_valid_config(self):
        _config().validate()

    @pytest.mark.parametrize("rate_limit", [-5, 0, 1, 100])
    def test_rate_limit_does_not_affect_validation(self, rate_limit):
        _config(rate_limit=rate_limit).validate()

    @pytest.mark.parametrize("field_name, error", [
        ("project", MissingProjectID),
        ("location", MissingLocationID),
        ("dataset", MissingDatasetID),
        ("store", MissingHL7StoreID),
    ])
    def test_missing_identifier(self, field_name, error):
        with pytest.raises(error):
            _config(**{field_name: ""}).validate()

    def test_missing_identifiers_are_config_errors(self):
        with pytest.raises(ConfigValidationError, match="missing project id"):
            _config(project="", store="").validate()

    def test_store_address(self):
        assert store_address(_config()) == "projects/p/locations/l/datasets/d/hl7V2Stores/s"
        assert _config().store_address == STORE

    def test_config_is_immutable(self):
        config = _config()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.project = "other"


class TestLoadClientConfig:
    def test_load_from_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "credential": "/secrets/sa.json",
            "project": "proj",
            "location": "us-central1",
            "dataset": "ds",
            "store": "st",
            "rate_limit": 5,
        }))
        config = load_client_config(path)
        assert config.credential == "/secrets/sa.json"
        assert config.store_address == "projects/proj/locations/us-central1/datasets/ds/hl7V2Stores/st"
        assert config.rate_limit == 5
        assert config.timeout == 30.0

    def test_credential_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HL7_CRED", "/from/env.json")
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "credential_env": "HL7_CRED",
            "project": "p", "location": "l", "dataset": "d", "store": "s",
        }))
        assert load_client_config(path).credential == "/from/env.json"

    def test_overrides_replace_file_values(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"project": "p", "location": "l", "dataset": "d", "store": "s"}))
        config = load_client_config(path, project="other", store=None, rate_limit=3)
        assert config.project == "other"
        assert config.store == "s"
        assert config.rate_limit == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_client_config(tmp_path / "nope.json")

    def test_top_level_must_be_object(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(["p", "l", "d", "s"]))
        with pytest.raises(ValueError, match="JSON object"):
            load_client_config(path)


# ---------------------------------------------------------------------------
# MessageStoreClient
# ---------------------------------------------------------------------------

class TestMessageStoreClientSend:
    def test_send_round_trip(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={
                "hl7Ack": _b64(ACK),
                "message": {"name": f"{STORE}/messages/abc123"},
            })

        with _client(handler) as client:
            result = client.send(b"MSH|^~\\&|A|B\rPID|1\r")

        assert isinstance(result, SendResult)
        assert result.ack == ACK
        assert result.name == f"{STORE}/messages/abc123"

        request = requests[0]
        assert request.method == "POST"
        assert request.url.path == f"/v1/{STORE}/messages:ingest"
        body = json.loads(request.content)
        assert body == {"message": {"labels": {}, "data": _b64(b"MSH|^~\\&|A|B\rPID|1\r")}}

    def test_every_request_carries_headers(self):
        requests = []

        def handler(request):
            requests.append(request)
            if request.method == "POST":
                return httpx.Response(200, json={"hl7Ack": _b64(ACK), "message": {"name": "n"}})
            if request.url.path.endswith("/messages"):
                return httpx.Response(200, json={})
            return httpx.Response(200, json={"name": "n"})

        with _client(handler) as client:
            client.send(b"MSH|")
            client.get_by_id("abc")
            client.list()

        assert len(requests) == 3
        for request in requests:
            assert request.headers[API_FORMAT_HEADER] == "2"
            assert request.headers["Authorization"] == "Bearer test-token"

    def test_invalid_ack_base64(self):
        def handler(request):
            return httpx.Response(200, json={"hl7Ack": "%%% not base64 %%%", "message": {"name": "n"}})

        with _client(handler) as client:
            with pytest.raises(DecodeError, match="hl7Ack"):
                client.send(b"MSH|")

    def test_missing_ack_decodes_empty(self):
        def handler(request):
            return httpx.Response(200, json={"message": {"name": "n"}})

        with _client(handler) as client:
            assert client.send(b"MSH|").ack == b""

    def test_http_error_is_transport_error(self):
        def handler(request):
            return httpx.Response(403, json={"error": {"code": 403, "message": "permission denied"}})

        with _client(handler) as client:
            with pytest.raises(TransportError, match="permission denied") as exc_info:
                client.send(b"MSH|")
        assert exc_info.value.status_code == 403

    def test_network_error_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with _client(handler) as client:
            with pytest.raises(TransportError):
                client.send(b"MSH|")

    def test_non_json_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        with _client(handler) as client:
            with pytest.raises(DecodeError):
                client.send(b"MSH|")

    def test_json_array_body(self):
        with _client(lambda request: httpx.Response(200, json=[1, 2])) as client:
            with pytest.raises(DecodeError, match="expected an object"):
                client.send(b"MSH|")

    def test_null_ack_decodes_empty(self):
        def handler(request):
            return httpx.Response(200, json={"hl7Ack": None, "message": {"name": "n"}})

        with _client(handler) as client:
            assert client.send(b"MSH|").ack == b""


class TestMessageStoreClientRead:
    def test_get_by_id_builds_path(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json={
                "name": f"{STORE}/messages/xyz",
                "data": _b64(b"MSH|^~\\&|A\r"),
                "messageType": "ADT",
                "sendFacility": "FAC",
                "labels": {"k": "v"},
            })

        with _client(handler) as client:
            message = client.get_by_id("xyz")

        assert paths == [f"/v1/{STORE}/messages/xyz"]
        assert isinstance(message, Message)
        assert message.name == f"{STORE}/messages/xyz"
        assert message.payload == b"MSH|^~\\&|A\r"
        assert message.message_type == "ADT"
        assert message.labels == {"k": "v"}

    def test_get_not_found(self):
        def handler(request):
            return httpx.Response(404, json={"error": {"code": 404, "message": "no such message"}})

        with _client(handler) as client:
            with pytest.raises(NotFoundError) as exc_info:
                client.get(f"{STORE}/messages/missing")
        assert exc_info.value.status_code == 404
        assert isinstance(exc_info.value, TransportError)

    def test_list(self):
        def handler(request):
            assert request.method == "GET"
            assert request.url.path == f"/v1/{STORE}/messages"
            return httpx.Response(200, json={
                "hl7V2Messages": [{"name": f"{STORE}/messages/1"}, {"name": f"{STORE}/messages/2"}],
                "nextPageToken": "page-2",
            })

        with _client(handler) as client:
            result = client.list()

        assert isinstance(result, ListResult)
        assert [m.name for m in result.messages] == [f"{STORE}/messages/1", f"{STORE}/messages/2"]
        assert result.next_page_token == "page-2"

    def test_list_empty_store(self):
        with _client(lambda request: httpx.Response(200, json={})) as client:
            result = client.list()
        assert result.messages == []
        assert result.next_page_token == ""

    def test_list_null_fields(self):
        def handler(request):
            return httpx.Response(200, json={"hl7V2Messages": None, "nextPageToken": None})

        with _client(handler) as client:
            result = client.list()
        assert result.messages == []
        assert result.next_page_token == ""


class TestMessageStoreClientLimits:
    def test_each_operation_takes_one_permit(self):
        limiter = CountingLimiter()

        def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json={"hl7Ack": "", "message": {"name": "n"}})
            return httpx.Response(200, json={"name": "n"})

        with _client(handler, limiter=limiter) as client:
            client.send(b"MSH|")
            assert limiter.calls == 1
            client.get_by_id("abc")
            assert limiter.calls == 2
            client.get(f"{STORE}/messages/abc")
            assert limiter.calls == 3
            client.list()
            assert limiter.calls == 4

    def test_invalid_config_fails_before_auth(self):
        with pytest.raises(MissingProjectID):
            MessageStoreClient(_config(project=""))
