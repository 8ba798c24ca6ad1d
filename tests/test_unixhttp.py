import http.client
import json
import os
import shutil
import socketserver
import tempfile
import threading
from http.server import BaseHTTPRequestHandler

import pytest

from limakit.unixhttp import UnixHTTPConnection, get_json


class _Server(socketserver.ThreadingMixIn, socketserver.UnixStreamServer):
    daemon_threads = True


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path == "/v1/info":
            status, body = 200, json.dumps({"path": self.path, "host": self.headers["Host"]}).encode()
        else:
            status, body = 404, b'{"message": "not found"}'
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@pytest.fixture
def socket_path():
    directory = tempfile.mkdtemp(prefix="lk-", dir="/tmp")
    path = os.path.join(directory, "s.sock")
    server = _Server(path, _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield path
    server.shutdown()
    server.server_close()
    shutil.rmtree(directory, ignore_errors=True)


def test_connection_request(socket_path):
    conn = UnixHTTPConnection(socket_path, timeout=5)
    try:
        conn.request("GET", "/v1/info")
        resp = conn.getresponse()
        assert resp.status == 200
        assert json.loads(resp.read())["path"] == "/v1/info"
    finally:
        conn.close()


def test_get_json(socket_path):
    assert get_json(socket_path, "/v1/info") == {"path": "/v1/info", "host": "localhost"}


def test_get_json_error_status(socket_path):
    with pytest.raises(http.client.HTTPException, match="404"):
        get_json(socket_path, "/v1/missing")


def test_missing_socket(tmp_path):
    with pytest.raises(FileNotFoundError):
        get_json(str(tmp_path / "nope.sock"), "/v1/info")