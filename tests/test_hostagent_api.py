import json
import os
import shutil
import socketserver
import tempfile
import threading
from http.server import BaseHTTPRequestHandler

import pytest

from limakit.hostagent_api import HostAgentClient, Info


class _Server(socketserver.ThreadingMixIn, socketserver.UnixStreamServer):
    daemon_threads = True


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path == "/v1/info":
            status, body = 200, json.dumps(Info(ssh_local_port=60022).to_dict()).encode()
        else:
            status, body = 404, b'{"message": "not found"}'
        self.send_response(status)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@pytest.fixture
def socket_path():
    directory = tempfile.mkdtemp(prefix="lk-", dir="/tmp")
    path = os.path.join(directory, "ha.sock")
    server = _Server(path, _Handler)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    yield path
    server.shutdown()
    server.server_close()
    shutil.rmtree(directory, ignore_errors=True)


def test_info_dict_shape():
    assert Info(ssh_local_port=60022).to_dict() == {"sshLocalPort": 60022}
    assert Info().to_dict() == {}


def test_info_round_trip():
    info = Info(ssh_local_port=2222)
    assert Info.from_dict(info.to_dict()) == info
    assert Info.from_dict({}) == Info()


def test_client_info(socket_path):
    assert HostAgentClient(socket_path).info() == Info(ssh_local_port=60022)


def test_client_missing_socket(tmp_path):
    with pytest.raises(FileNotFoundError):
        HostAgentClient(str(tmp_path / "missing.sock")).info()