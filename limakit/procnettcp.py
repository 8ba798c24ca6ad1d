"""Parsing of /proc/net/tcp and /proc/net/tcp6."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from enum import Enum


class Kind(str, Enum):
    TCP = "tcp"
    TCP6 = "tcp6"


TCP_ESTABLISHED = 0x1
TCP_LISTEN = 0xA

DEFAULT_FILES = {
    "/proc/net/tcp": Kind.TCP,
    "/proc/net/tcp6": Kind.TCP6,
}

_HEX_RE = re.compile(r"[0-9A-Fa-f]+")


@dataclass(frozen=True)
class Entry:
    kind: Kind
    ip: ipaddress.IPv4Address | ipaddress.IPv6Address
    port: int
    state: int


def _parse_hex(text, bits, what):
    if not _HEX_RE.fullmatch(text):
        raise ValueError(f"unparsable {what} {text!r}")
    value = int(text, 16)
    if value >= 1 << bits:
        raise ValueError(f"{what} {text!r} out of range")
    return value


def parse_address(s):
    """Parse an address such as ``"0100007F:0050"`` into ``(ip, port)``.

    The address part is little endian per 4-byte group, as found on
    little endian machines.
    """
    host, sep, port_text = s.partition(":")
    if not sep:
        raise ValueError(f"unparsable address {s!r}")
    if len(host) not in (8, 32):
        raise ValueError(
            f"unparsable address {s!r}, expected length of {host!r} to be 8 or 32, got {len(host)}"
        )
    if not _HEX_RE.fullmatch(host):
        raise ValueError(f"unparsable address {s!r}: unparsable quartet in {host!r}")
    raw = b"".join(bytes.fromhex(host[i:i + 8])[::-1] for i in range(0, len(host), 8))
    ip = ipaddress.IPv4Address(raw) if len(raw) == 4 else ipaddress.IPv6Address(raw)
    try:
        port = _parse_hex(port_text, 16, "port")
    except ValueError:
        raise ValueError(f"unparsable address {s!r}: unparsable port {port_text!r}") from None
    return ip, port


def parse(stream, kind):
    """Parse the lines of a /proc/net/tcp{,6} file into a list of entries."""
    try:
        kind = Kind(kind)
    except ValueError:
        raise ValueError(f"unexpected kind {kind!r}") from None

    entries = []
    field_names = {}
    for index, raw in enumerate(stream):
        line = raw.strip()
        if not line:
            continue
        fields = line.split()
        if index == 0:
            field_names = {name: i for i, name in enumerate(fields)}
            for required in ("local_address", "st"):
                if required not in field_names:
                    raise ValueError(f"field {required!r} not found")
            continue
        ip, port = parse_address(fields[field_names.get("local_address", 0)])
        state = _parse_hex(fields[field_names.get("st", 0)], 8, "state")
        entries.append(Entry(kind=kind, ip=ip, port=port, state=state))
    return entries


def parse_files(files=None):
    """Parse several files, given as a mapping of path to kind.

    Files that do not exist are skipped.
    """
    if files is None:
        files = DEFAULT_FILES
    entries = []
    for path, kind in files.items():
        try:
            with open(path, encoding="ascii", errors="replace") as stream:
                entries.extend(parse(stream, kind))
        except FileNotFoundError:
            continue
    return entries