"""Host agent events and a watcher for the host agent's log files."""

from __future__ import annotations

import contextlib
import json
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

_ZERO_TIME = "0001-01-01T00:00:00Z"
_TIME_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})"
)
_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
}


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


@dataclass
class Status:
    """State of the host agent.

    ``degraded`` implies ``running``; ``exiting`` implies not ``running``.
    """

    running: bool = False
    degraded: bool = False
    exiting: bool = False
    errors: list[str] = field(default_factory=list)
    ssh_local_port: int = 0

    def to_dict(self):
        data = {}
        if self.running:
            data["running"] = True
        if self.degraded:
            data["degraded"] = True
        if self.exiting:
            data["exiting"] = True
        if self.errors:
            data["errors"] = list(self.errors)
        if self.ssh_local_port:
            data["sshLocalPort"] = self.ssh_local_port
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            running=bool(data.get("running", False)),
            degraded=bool(data.get("degraded", False)),
            exiting=bool(data.get("exiting", False)),
            errors=list(data.get("errors") or []),
            ssh_local_port=int(data.get("sshLocalPort", 0)),
        )


@dataclass
class Event:
    time: datetime | None = None
    status: Status = field(default_factory=Status)

    def to_json(self):
        return json.dumps({"time": _format_time(self.time), "status": self.status.to_dict()})

    @classmethod
    def from_json(cls, text):
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {text!r}")
        return cls(
            time=_parse_time(data.get("time")),
            status=Status.from_dict(data.get("status") or {}),
        )


class _Tail:
    """Follows a file and yields complete lines as they are appended."""

    def __init__(self, path):
        self._file = open(path, encoding="utf-8", errors="replace")
        self._pending = ""

    def lines(self):
        chunk = self._file.read()
        if not chunk:
            return []
        *complete, self._pending = (self._pending + chunk).split("\n")
        return [line.rstrip("\r") for line in complete]

    def close(self):
        self._file.close()


def _propagate(line, begin):
    if not line:
        return
    try:
        record = json.loads(line)
    except ValueError:
        record = None
    if not isinstance(record, dict) or "msg" not in record:
        logger.debug("[hostagent] %s", line)
        return
    if begin is not None and "time" in record:
        try:
            logged_at = _parse_time(record["time"])
        except ValueError:
            logged_at = None
        if begin.tzinfo is None:
            begin = begin.astimezone()
        if logged_at is not None and logged_at < begin:
            return
    level = _LEVELS.get(str(record.get("level", "info")).lower(), logging.INFO)
    logger.log(level, "[hostagent] %s", record["msg"])


def watch(stdout_path, stderr_path, begin, on_event, timeout=None, poll_interval=0.1):
    """Follow the host agent's stdout (events) and stderr (logs).

    Each event read from stdout is passed to *on_event*; when it returns a
    true value, watching stops and ``True`` is returned. Log records on
    stderr written before *begin* are dropped, the rest are re-logged.
    Returns ``False`` once *timeout* seconds have elapsed. Both files must
    exist.
    """
    deadline = None if timeout is None else time.monotonic() + timeout
    with contextlib.ExitStack() as stack:
        out = _Tail(stdout_path)
        stack.callback(out.close)
        err = _Tail(stderr_path)
        stack.callback(err.close)
        while True:
            for line in out.lines():
                if not line:
                    continue
                ev = Event.from_json(line)
                logger.debug("received an event: %s", ev)
                if on_event(ev):
                    return True
            for line in err.lines():
                _propagate(line, begin)
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(poll_interval)