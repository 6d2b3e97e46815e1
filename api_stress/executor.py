"""Issues one HTTP request for an endpoint and captures the outcome."""

import socket
import threading
import time
from dataclasses import dataclass
from typing import Optional

import requests

from api_stress.config import EndpointConfig
from api_stress.errors import TransportError

READ_CHUNK_SIZE = 4096


@dataclass
class Outcome:
    """Result of one round trip: either status + body, or a transport error."""

    status_code: int = -1
    body: bytes = b""
    error: Optional[TransportError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _response_socket(response: requests.Response) -> Optional[socket.socket]:
    connection = getattr(response.raw, "connection", None)
    return getattr(connection, "sock", None)


def _cut_off(sock: Optional[socket.socket], expired: threading.Event) -> None:
    expired.set()
    if sock is None:
        return
    # shutdown wakes a recv() blocked in the reading thread, close() would not
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass


def execute_request(
    endpoint: EndpointConfig,
    body: Optional[bytes] = None,
) -> Outcome:
    """
    Send the endpoint's request and read the whole response.

    The endpoint's timeout bounds the whole round trip: connecting, sending,
    waiting for the headers and reading the body.

    Args:
        endpoint: Endpoint to call
        body: Pre-resolved request body (None = resolve from the endpoint)

    Returns:
        Outcome with status code and body, or with a TransportError
    """
    if body is None and endpoint.body is not None:
        body = endpoint.request_body()

    timeout = endpoint.timeout if endpoint.timeout > 0 else None
    deadline = time.perf_counter() + timeout if timeout else None
    target = f"{endpoint.method} {endpoint.url}"

    try:
        response = requests.request(
            endpoint.method,
            endpoint.url,
            headers=endpoint.headers,
            data=body,
            timeout=timeout,
            stream=True,
        )
    # ValueError covers header values http.client cannot encode
    except (requests.exceptions.RequestException, ValueError) as e:
        return Outcome(error=TransportError(f"{target} failed: {e}"))

    expired = threading.Event()
    timer = None
    # closing hands the connection back to the pool even if reading fails
    with response:
        try:
            if deadline is not None:
                remaining = deadline - time.perf_counter()
                if remaining <= 0:
                    return Outcome(error=TransportError(f"{target} timed out after {timeout}s"))
                timer = threading.Timer(remaining, _cut_off, args=(_response_socket(response), expired))
                timer.daemon = True
                timer.start()

            chunks = []
            for chunk in response.iter_content(chunk_size=READ_CHUNK_SIZE):
                if expired.is_set():
                    break
                chunks.append(chunk)
        except (requests.exceptions.RequestException, ValueError, OSError) as e:
            if expired.is_set():
                return Outcome(error=TransportError(f"{target} timed out after {timeout}s"))
            return Outcome(error=TransportError(f"Reading body of {endpoint.url} failed: {e}"))
        finally:
            if timer is not None:
                timer.cancel()

    if expired.is_set():
        return Outcome(error=TransportError(f"{target} timed out after {timeout}s"))
    return Outcome(status_code=response.status_code, body=b"".join(chunks))
