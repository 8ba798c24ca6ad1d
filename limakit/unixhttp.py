"""HTTP over a UNIX domain socket."""

import http.client
import json
import socket
from contextlib import closing


class UnixHTTPConnection(http.client.HTTPConnection):
    """An HTTP connection whose transport is a UNIX socket."""

    def __init__(self, socket_path, timeout=None):
        super().__init__("localhost", timeout=timeout)
        self.socket_path = socket_path

    def connect(self):
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        if isinstance(self.timeout, (int, float)):
            sock.settimeout(self.timeout)
        try:
            sock.connect(self.socket_path)
        except OSError:
            sock.close()
            raise
        self.sock = sock


def get_json(socket_path, path):
    """GET *path* from the server on *socket_path* and decode the JSON body.

    Raises ``http.client.HTTPException`` on a non-200 response.
    """
    with closing(UnixHTTPConnection(socket_path)) as conn:
        conn.request("GET", path)
        resp = conn.getresponse()
        body = resp.read()
        if resp.status != 200:
            raise http.client.HTTPException(
                f"expected HTTP status 200, got {resp.status} {resp.reason}: {body.decode(errors='replace')}"
            )
        return json.loads(body)