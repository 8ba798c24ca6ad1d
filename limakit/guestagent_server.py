"""HTTP API of the guest agent, served on a UNIX socket, and its client."""

from __future__ import annotations

import contextlib
import http.client
import json
import logging
import os
import shutil
import socketserver
import threading
from http.server import BaseHTTPRequestHandler

from limakit.guestagent_api import Event, Info
from limakit.unixhttp import UnixHTTPConnection, get_json

logger = logging.getLogger(__name__)

API_VERSION = "v1"
_ROUTES = {f"/{API_VERSION}/info": "info", f"/{API_VERSION}/events": "events"}


class _Handler(BaseHTTPRequestHandler):
    def log_message(self, format, *args):
        logger.debug(format, *args)

    def _send_json(self, status, obj):
        body = json.dumps(obj).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _on_error(self, status, message):
        self._send_json(status, {"message": message})

    def _route(self):
        return _ROUTES.get(self.path.split("?", 1)[0])

    def do_GET(self):
        route = self._route()
        if route == "info":
            self._get_info()
        elif route == "events":
            self._get_events()
        else:
            self._on_error(404, "404 page not found")

    def _not_allowed(self):
        if self._route() is None:
            self._on_error(404, "404 page not found")
        else:
            self._on_error(405, "method not allowed")

    do_POST = do_PUT = do_DELETE = do_PATCH = _not_allowed

    def _get_info(self):
        try:
            info = self.server.agent.info()
        except Exception as exc:
            self._on_error(500, str(exc))
            return
        self._send_json(200, info.to_dict())

    def _get_events(self):
        self.send_response(200)
        self.send_header("Content-Type", "application/x-ndjson")
        self.end_headers()
        self.wfile.flush()
        events = self.server.agent.events(self.server.stop_event)
        try:
            for ev in events:
                self.wfile.write((json.dumps(ev.to_dict()) + "\n").encode())
                self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError) as exc:
            logger.warning("%s", exc)
        finally:
            close = getattr(events, "close", None)
            if close is not None:
                close()


class _UnixServer(socketserver.ThreadingUnixStreamServer):
    daemon_threads = True
    block_on_close = False

    def __init__(self, socket_path, agent, stop_event):
        self.agent = agent
        self.stop_event = stop_event
        super().__init__(socket_path, _Handler)


def _remove_all(path):
    with contextlib.suppress(FileNotFoundError):
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.unlink(path)


class GuestAgentServer:
    """Serves ``GET /v1/info`` and ``GET /v1/events`` for an agent.

    Any existing file at *socket_path* is replaced; the socket is made
    accessible to everyone.
    """

    def __init__(self, socket_path, agent):
        self.socket_path = socket_path
        self.agent = agent
        self._stop = threading.Event()
        self._serving = False
        _remove_all(socket_path)
        self._server = _UnixServer(socket_path, agent, self._stop)
        try:
            os.chmod(socket_path, 0o777)
        except OSError:
            self._server.server_close()
            raise

    def serve_forever(self):
        self._serving = True
        self._server.serve_forever()

    def shutdown(self):
        """Stop serving, end event streams and close the listening socket."""
        self._stop.set()
        if self._serving:
            self._server.shutdown()
            self._serving = False
        self._server.server_close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.shutdown()


class GuestAgentClient:
    """Client for the guest agent API on a UNIX socket."""

    def __init__(self, socket_path):
        self.socket_path = socket_path

    def info(self):
        return Info.from_dict(get_json(self.socket_path, f"/{API_VERSION}/info"))

    def events(self, on_event):
        """Call *on_event* with each event of the stream.

        Raises ``EOFError`` when the server closes the stream.
        """
        with contextlib.closing(UnixHTTPConnection(self.socket_path)) as conn:
            conn.request("GET", f"/{API_VERSION}/events")
            resp = conn.getresponse()
            if resp.status != 200:
                body = resp.read().decode(errors="replace")
                raise http.client.HTTPException(
                    f"expected HTTP status 200, got {resp.status} {resp.reason}: {body}"
                )
            for raw in resp:
                line = raw.strip()
                if line:
                    on_event(Event.from_dict(json.loads(line)))
        raise EOFError("event stream closed")