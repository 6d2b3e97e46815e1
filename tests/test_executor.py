"""
Request executor tests against a local HTTP server.
"""

import socket
import time

from api_stress.config import EndpointConfig, JsonBody, RawBody
from api_stress.errors import TransportError
from api_stress.executor import execute_request


def test_returns_status_and_body(stub_server):
    stub_server.status = 201
    stub_server.body = b'{"errno": 0}'
    endpoint = EndpointConfig(name="api", host=stub_server.host, path="/users?page=2",
                              headers={"X-Trace": "abc"}, timeout=5)

    outcome = execute_request(endpoint)

    assert outcome.ok
    assert outcome.status_code == 201
    assert outcome.body == b'{"errno": 0}'
    seen = stub_server.requests[0]
    assert seen["method"] == "GET"
    assert seen["path"] == "/users?page=2"
    assert seen["headers"]["X-Trace"] == "abc"


def test_sends_string_body_verbatim(stub_server):
    endpoint = EndpointConfig(name="api", host=stub_server.host, method="POST", body=RawBody("a=1&b=2"))
    execute_request(endpoint)
    assert stub_server.requests[0]["body"] == b"a=1&b=2"


def test_serializes_structured_body_as_json(stub_server):
    endpoint = EndpointConfig(name="api", host=stub_server.host, method="PUT", body=JsonBody({"k": [1, 2]}))
    execute_request(endpoint)
    assert stub_server.requests[0]["body"] == b'{"k":[1,2]}'


def test_pre_resolved_body_wins(stub_server):
    endpoint = EndpointConfig(name="api", host=stub_server.host, method="POST", body=RawBody("config"))
    execute_request(endpoint, body=b"resolved")
    assert stub_server.requests[0]["body"] == b"resolved"


def test_connection_refused_is_transport_error():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    endpoint = EndpointConfig(name="api", host=f"127.0.0.1:{port}", timeout=2)

    outcome = execute_request(endpoint)

    assert not outcome.ok
    assert isinstance(outcome.error, TransportError)
    assert outcome.status_code == -1
    assert outcome.body == b""


def test_timeout_is_transport_error(stub_server):
    stub_server.delay = 2.0
    endpoint = EndpointConfig(name="api", host=stub_server.host, timeout=1)
    outcome = execute_request(endpoint)
    assert isinstance(outcome.error, TransportError)


def test_timeout_covers_slow_body(stub_server):
    """A body trickling in byte by byte must still hit the round-trip timeout."""
    stub_server.body = b"12345678"
    stub_server.drip = 0.4
    endpoint = EndpointConfig(name="api", host=stub_server.host, timeout=1)

    start = time.perf_counter()
    outcome = execute_request(endpoint)
    took = time.perf_counter() - start

    assert isinstance(outcome.error, TransportError)
    assert "timed out" in str(outcome.error)
    assert took < 2.5


def test_slow_body_within_timeout_is_read_fully(stub_server):
    stub_server.body = b"abc"
    stub_server.drip = 0.05
    endpoint = EndpointConfig(name="api", host=stub_server.host, timeout=5)

    outcome = execute_request(endpoint)

    assert outcome.ok
    assert outcome.body == b"abc"


def test_unencodable_header_is_transport_error(stub_server):
    endpoint = EndpointConfig(name="api", host=stub_server.host, headers={"X-Cur": "€"})

    outcome = execute_request(endpoint)

    assert isinstance(outcome.error, TransportError)
    assert stub_server.count() == 0
