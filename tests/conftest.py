"""Shared fixtures: a local HTTP server the stress runs can hit."""

import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from api_stress import report


class StubServer:
    """Serves a fixed response and remembers every request it saw."""

    def __init__(self):
        self.status = 200
        self.body = b"ok"
        self.delay = 0.0
        self.drip = 0.0  # seconds between body bytes, 0 = send at once
        self.requests = []
        self.lock = threading.Lock()
        self.httpd = None

    @property
    def host(self) -> str:
        return f"127.0.0.1:{self.httpd.server_address[1]}"

    def count(self) -> int:
        with self.lock:
            return len(self.requests)


def _make_handler(stub: StubServer):
    class Handler(BaseHTTPRequestHandler):
        protocol_version = "HTTP/1.1"

        def _respond(self):
            length = int(self.headers.get("Content-Length") or 0)
            payload = self.rfile.read(length) if length else b""
            with stub.lock:
                stub.requests.append({
                    "method": self.command,
                    "path": self.path,
                    "headers": dict(self.headers),
                    "body": payload,
                })
            if stub.delay:
                time.sleep(stub.delay)
            self.send_response(stub.status)
            self.send_header("Content-Length", str(len(stub.body)))
            self.end_headers()
            if not stub.drip:
                self.wfile.write(stub.body)
                return
            try:
                for i in range(len(stub.body)):
                    self.wfile.write(stub.body[i:i + 1])
                    self.wfile.flush()
                    time.sleep(stub.drip)
            except (BrokenPipeError, ConnectionResetError):
                self.close_connection = True

        do_GET = _respond
        do_POST = _respond
        do_PUT = _respond
        do_DELETE = _respond

        def log_message(self, format, *args):
            pass

    return Handler


@pytest.fixture
def stub_server():
    stub = StubServer()
    stub.httpd = ThreadingHTTPServer(("127.0.0.1", 0), _make_handler(stub))
    stub.httpd.daemon_threads = True
    thread = threading.Thread(target=stub.httpd.serve_forever, name="stub-server", daemon=True)
    thread.start()
    yield stub
    stub.httpd.shutdown()
    stub.httpd.server_close()


@pytest.fixture(autouse=True)
def no_color():
    report.set_color(False)
    yield
