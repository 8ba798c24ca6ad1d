"""Host agent API types and client."""

from __future__ import annotations

from dataclasses import dataclass

from limakit.unixhttp import get_json


@dataclass
class Info:
    ssh_local_port: int = 0

    def to_dict(self):
        return {"sshLocalPort": self.ssh_local_port} if self.ssh_local_port else {}

    @classmethod
    def from_dict(cls, data):
        return cls(ssh_local_port=int(data.get("sshLocalPort", 0)))


class HostAgentClient:
    """Client for the host agent API served on a UNIX socket."""

    version = "v1"

    def __init__(self, socket_path):
        self.socket_path = socket_path

    def info(self):
        return Info.from_dict(get_json(self.socket_path, f"/{self.version}/info"))