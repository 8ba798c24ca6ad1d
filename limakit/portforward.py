"""Rules for forwarding guest TCP ports to the host, and the forwarder applying them."""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass

from limakit.guestagent_api import IPV4_LOOPBACK1, IPPort
from limakit.sshforward import Verb, forward_ssh

logger = logging.getLogger(__name__)

SSH_GUEST_PORT = 22
_IPV6_LOOPBACK = ipaddress.IPv6Address("::1")
_ALL_PORTS = (1, 65535)


def _to_ip(value):
    ip = ipaddress.ip_address(value)
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


@dataclass
class PortForwardRule:
    """One port forwarding rule.

    Without an explicit range, the guest range is the single ``guest_port``
    or every port when none is given; the host port and range default to
    the guest ones.
    """

    guest_ip: ipaddress.IPv4Address | ipaddress.IPv6Address = IPV4_LOOPBACK1
    guest_port: int = 0
    guest_port_range: tuple[int, int] | None = None
    guest_socket: str = ""
    guest_ip_must_be_zero: bool = False
    host_ip: ipaddress.IPv4Address | ipaddress.IPv6Address = IPV4_LOOPBACK1
    host_port: int = 0
    host_port_range: tuple[int, int] | None = None
    host_socket: str = ""
    ignore: bool = False

    def __post_init__(self):
        self.guest_ip = _to_ip(self.guest_ip)
        self.host_ip = _to_ip(self.host_ip)
        if self.guest_port_range is None:
            self.guest_port_range = (
                (self.guest_port, self.guest_port) if self.guest_port else _ALL_PORTS
            )
        self.guest_port_range = tuple(self.guest_port_range)
        if not self.host_port:
            self.host_port = self.guest_port
        if self.host_port_range is None:
            self.host_port_range = self.guest_port_range
        self.host_port_range = tuple(self.host_port_range)


def host_address(rule, guest):
    """Return the host side address for *guest* under *rule*.

    *guest* may be ``None`` (or have port 0) when the guest side is a socket.
    """
    if rule.host_socket:
        return rule.host_socket
    if guest is None or guest.port == 0:
        port = rule.host_port
    else:
        port = guest.port + rule.host_port_range[0] - rule.guest_port_range[0]
    return str(IPPort(ip=rule.host_ip, port=port))


def forward_tcp(ssh_config, port, local, remote, verb):
    """Start or stop forwarding the host address *local* to the guest *remote*."""
    forward_ssh(ssh_config, port, local, remote, verb)


def _ip_matches(rule, guest_ip):
    if guest_ip.is_unspecified:
        return True
    if guest_ip == rule.guest_ip:
        return True
    if guest_ip == _IPV6_LOOPBACK and rule.guest_ip == IPV4_LOOPBACK1:
        return True
    # With guest_ip_must_be_zero, 0.0.0.0 must match exactly, handled above.
    return rule.guest_ip.is_unspecified and not rule.guest_ip_must_be_zero


class PortForwarder:
    """Applies forwarding rules to the port events reported by the guest agent."""

    def __init__(self, ssh_config, ssh_host_port, rules):
        self.ssh_config = ssh_config
        self.ssh_host_port = ssh_host_port
        self.rules = list(rules)

    def forwarding_addresses(self, guest):
        """Return ``(local, remote)``; *local* is empty when *guest* is not forwarded."""
        remote = str(guest)
        for rule in self.rules:
            if rule.guest_socket:
                continue
            low, high = rule.guest_port_range
            if guest.port < low or guest.port > high:
                continue
            if not _ip_matches(rule, guest.ip):
                continue
            if rule.ignore:
                if guest.ip.is_unspecified and not rule.guest_ip.is_unspecified:
                    continue
                break
            return host_address(rule, guest), remote
        return "", remote

    def on_event(self, ev):
        """Stop forwarding removed ports, then forward added ones."""
        for port in ev.local_ports_removed:
            local, remote = self.forwarding_addresses(port)
            if not local:
                continue
            logger.info("Stopping forwarding TCP from %s to %s", remote, local)
            try:
                forward_tcp(self.ssh_config, self.ssh_host_port, local, remote, Verb.CANCEL)
            except (OSError, RuntimeError) as exc:
                logger.warning("failed to stop forwarding tcp port %d: %s", port.port, exc)
        for port in ev.local_ports_added:
            local, remote = self.forwarding_addresses(port)
            if not local:
                logger.info("Not forwarding TCP %s", remote)
                continue
            logger.info("Forwarding TCP from %s to %s", remote, local)
            try:
                forward_tcp(self.ssh_config, self.ssh_host_port, local, remote, Verb.FORWARD)
            except (OSError, RuntimeError) as exc:
                logger.warning(
                    "failed to set up forwarding tcp port %d (negligible if already forwarded): %s",
                    port.port,
                    exc,
                )