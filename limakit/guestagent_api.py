"""Data types exchanged with the guest agent."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

IPV4_LOOPBACK1 = ipaddress.IPv4Address("127.0.0.1")

_ZERO_TIME = "0001-01-01T00:00:00Z"
_TIME_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})"
)


def _to_ip(value):
    ip = ipaddress.ip_address(value)
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def _format_time(t):
    if t is None:
        return _ZERO_TIME
    if t.tzinfo is None:
        t = t.astimezone()
    text = f"{t.year:04d}-{t.month:02d}-{t.day:02d}T{t.hour:02d}:{t.minute:02d}:{t.second:02d}"
    frac = f"{t.microsecond:06d}".rstrip("0")
    if frac:
        text += "." + frac
    offset = t.utcoffset()
    if not offset:
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "+" if minutes >= 0 else "-"
    minutes = abs(minutes)
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _parse_time(text):
    if text is None or text == _ZERO_TIME:
        return None
    match = _TIME_RE.fullmatch(text)
    if not match:
        raise ValueError(f"invalid time {text!r}")
    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    micro = int((match.group(7) or "")[:6].ljust(6, "0"))
    zone = match.group(8)
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    return datetime(year, month, day, hour, minute, second, micro, tzinfo=tz)


@dataclass(frozen=True)
class IPPort:
    """An IP address and a port."""

    ip: ipaddress.IPv4Address | ipaddress.IPv6Address
    port: int

    def __post_init__(self):
        object.__setattr__(self, "ip", _to_ip(self.ip))

    def __str__(self):
        if self.ip.version == 6:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"

    def to_dict(self):
        return {"ip": str(self.ip), "port": self.port}

    @classmethod
    def from_dict(cls, data):
        return cls(ip=data["ip"], port=int(data["port"]))


@dataclass
class Info:
    """Information reported by the guest agent."""

    local_ports: list[IPPort] = field(default_factory=list)

    def to_dict(self):
        return {"localPorts": [p.to_dict() for p in self.local_ports]}

    @classmethod
    def from_dict(cls, data):
        return cls(local_ports=[IPPort.from_dict(p) for p in data.get("localPorts") or []])


@dataclass
class Event:
    """A change in the guest's listening ports.

    The first event of a stream carries all ports as ``local_ports_added``.
    """

    time: datetime | None = None
    local_ports_added: list[IPPort] = field(default_factory=list)
    local_ports_removed: list[IPPort] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self):
        data = {"time": _format_time(self.time)}
        if self.local_ports_added:
            data["localPortsAdded"] = [p.to_dict() for p in self.local_ports_added]
        if self.local_ports_removed:
            data["localPortsRemoved"] = [p.to_dict() for p in self.local_ports_removed]
        if self.errors:
            data["errors"] = list(self.errors)
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            time=_parse_time(data.get("time")),
            local_ports_added=[IPPort.from_dict(p) for p in data.get("localPortsAdded") or []],
            local_ports_removed=[IPPort.from_dict(p) for p in data.get("localPortsRemoved") or []],
            errors=list(data.get("errors") or []),
        )