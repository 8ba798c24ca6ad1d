"""Forwarding of sockets and ports over the instance's SSH master connection."""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import socket
import subprocess
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_INSTANCE_SSH_PORT = 60022


class Verb(str, Enum):
    FORWARD = "forward"
    CANCEL = "cancel"


@dataclass
class SSHConfig:
    """The ssh binary and the arguments passed to every invocation."""

    binary: str = "ssh"
    additional_args: list[str] = field(default_factory=list)

    def args(self):
        return list(self.additional_args)


def _remove_all(path):
    with contextlib.suppress(FileNotFoundError):
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.unlink(path)


def forward_ssh(ssh_config, port, local, remote, verb):
    """Ask the SSH master on *port* to start or stop forwarding *local* to *remote*.

    A *local* starting with ``/`` is a UNIX socket on the host: it is
    replaced before forwarding and removed after cancelling. Raises
    ``RuntimeError`` if ssh fails.
    """
    try:
        verb = Verb(verb)
    except ValueError:
        raise ValueError(f"invalid verb {verb!r}") from None
    args = [
        *ssh_config.args(),
        "-T",
        "-O", verb.value,
        "-L", f"{local}:{remote}",
        "-N",
        "-f",
        "-p", str(port),
        "127.0.0.1",
        "--",
    ]
    is_socket = local.startswith("/")
    if is_socket:
        if verb is Verb.FORWARD:
            logger.info("Forwarding %r (guest) to %r (host)", remote, local)
            try:
                _remove_all(local)
            except OSError as exc:
                logger.warning("Failed to clean up %r (host) before setting up forwarding: %s", local, exc)
            try:
                os.makedirs(os.path.dirname(local), mode=0o750, exist_ok=True)
            except OSError as exc:
                raise OSError(f"can't create directory for local socket {local!r}: {exc}") from exc
        else:
            logger.info("Stopping forwarding %r (guest) to %r (host)", remote, local)

    cmd = [ssh_config.binary, *args]
    try:
        try:
            result = subprocess.run(cmd, stdout=subprocess.PIPE, check=False)
        except OSError as exc:
            raise RuntimeError(f"failed to run {cmd}: {exc}") from exc
        if result.returncode != 0:
            if verb is Verb.FORWARD and is_socket:
                logger.warning("Failed to set up forward from %r (guest) to %r (host)", remote, local)
                try:
                    _remove_all(local)
                except OSError as exc:
                    logger.warning("Failed to clean up %r (host) after forwarding failed: %s", local, exc)
            out = result.stdout.decode(errors="replace")
            raise RuntimeError(f"failed to run {cmd}: {out!r}: exit status {result.returncode}")
    finally:
        if is_socket and verb is Verb.CANCEL:
            try:
                _remove_all(local)
            except OSError as exc:
                logger.warning("Failed to clean up %r (host) after stopping forwarding: %s", local, exc)


def _free_port(kind):
    with socket.socket(socket.AF_INET, kind) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    if port <= 0:
        raise OSError(f"unexpected port {port}")
    return port


def find_free_tcp_local_port():
    """Return a TCP port on 127.0.0.1 that is currently free."""
    return _free_port(socket.SOCK_STREAM)


def find_free_udp_local_port():
    """Return a UDP port on 127.0.0.1 that is currently free."""
    return _free_port(socket.SOCK_DGRAM)


def determine_ssh_local_port(local_port, inst_name):
    """Choose the host port for the instance's SSH.

    A configured positive port is used as is; the "default" instance gets a
    fixed port and other instances a free one.
    """
    if local_port > 0:
        return local_port
    if local_port < 0:
        raise ValueError(f"invalid ssh local port {local_port}")
    if inst_name == "default":
        return DEFAULT_INSTANCE_SSH_PORT
    try:
        return find_free_tcp_local_port()
    except OSError as exc:
        raise OSError(
            f"failed to find a free port, try setting `ssh.localPort` manually: {exc}"
        ) from exc