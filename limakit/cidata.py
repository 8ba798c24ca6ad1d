"""Arguments for the cloud-init data of an instance."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from limakit import identifiers


@dataclass
class Containerd:
    system: bool = False
    user: bool = False


@dataclass
class Network:
    mac_address: str
    interface: str


@dataclass
class TemplateArgs:
    name: str
    user: str
    uid: int
    iid: str = ""
    ssh_pub_keys: list[str] = field(default_factory=list)
    mounts: list[str] = field(default_factory=list)
    containerd: Containerd = field(default_factory=Containerd)
    networks: list[Network] = field(default_factory=list)
    slirp_nic_name: str = ""
    slirp_gateway: str = ""
    slirp_dns: str = ""
    slirp_ip_address: str = ""
    udp_dns_local_port: int = 0
    tcp_dns_local_port: int = 0
    env: dict[str, str] = field(default_factory=dict)
    dns_addresses: list[str] = field(default_factory=list)


def validate_template_args(args):
    """Check the template arguments and return them; raise ``ValueError`` if invalid."""
    identifiers.validate(args.name)
    identifiers.validate(args.user)
    if args.user == "root":
        raise ValueError('field User must not be "root"')
    if args.uid == 0:
        raise ValueError("field UID must not be 0")
    if not args.ssh_pub_keys:
        raise ValueError("field SSHPubKeys must be set")
    for i, mount in enumerate(args.mounts):
        if not os.path.isabs(mount):
            raise ValueError(f"field mounts[{i}] must be absolute, got {mount!r}")
    return args