import json
import logging
from datetime import datetime, timedelta, timezone

import pytest

from limakit.events import Event, Status, watch


def _write_events(path, events):
    path.write_text("".join(ev.to_json() + "\n" for ev in events))


def test_event_json_shape():
    ev = Event(time=datetime(2022, 1, 2, 3, 4, 5, tzinfo=timezone.utc), status=Status(exiting=True))
    assert json.loads(ev.to_json()) == {"time": "2022-01-02T03:04:05Z", "status": {"exiting": True}}


def test_event_round_trip():
    ev = Event(
        time=datetime(2022, 5, 6, 7, 8, 9, 250000, tzinfo=timezone(timedelta(hours=-5))),
        status=Status(running=True, degraded=True, errors=["a", "b"], ssh_local_port=60022),
    )
    assert Event.from_json(ev.to_json()) == ev


def test_status_omits_defaults():
    assert Status().to_dict() == {}
    assert Event.from_json(Event().to_json()) == Event()


def test_from_json_rejects_non_object():
    with pytest.raises(ValueError):
        Event.from_json("[1, 2]")


def test_watch_stops_on_exiting(tmp_path):
    stdout = tmp_path / "ha.stdout.log"
    stderr = tmp_path / "ha.stderr.log"
    stderr.write_text("")
    _write_events(stdout, [
        Event(status=Status(ssh_local_port=60022)),
        Event(status=Status(running=True, ssh_local_port=60022)),
        Event(status=Status(exiting=True)),
        Event(status=Status(running=True)),
    ])
    seen = []

    def on_event(ev):
        seen.append(ev)
        return ev.status.exiting

    assert watch(str(stdout), str(stderr), datetime.now(timezone.utc), on_event, timeout=5) is True
    assert len(seen) == 3
    assert seen[1].status.running


def test_watch_times_out(tmp_path):
    stdout = tmp_path / "out"
    stderr = tmp_path / "err"
    _write_events(stdout, [Event(status=Status(running=True))])
    stderr.write_text("")
    seen = []
    result = watch(str(stdout), str(stderr), None, lambda ev: seen.append(ev) or False,
                   timeout=0.2, poll_interval=0.05)
    assert result is False
    assert len(seen) == 1


def test_watch_requires_files(tmp_path):
    (tmp_path / "err").write_text("")
    with pytest.raises(FileNotFoundError):
        watch(str(tmp_path / "missing"), str(tmp_path / "err"), None, lambda ev: True, timeout=0.1)


def test_watch_rejects_invalid_json(tmp_path):
    stdout = tmp_path / "out"
    stderr = tmp_path / "err"
    stdout.write_text("not json\n")
    stderr.write_text("")
    with pytest.raises(ValueError):
        watch(str(stdout), str(stderr), None, lambda ev: True, timeout=1)


def test_watch_propagates_recent_logs(tmp_path, caplog):
    begin = datetime(2022, 1, 1, tzinfo=timezone.utc)
    stdout = tmp_path / "out"
    stderr = tmp_path / "err"
    stdout.write_text("")
    stderr.write_text(
        json.dumps({"level": "info", "msg": "old", "time": "2021-12-31T00:00:00Z"}) + "\n"
        + json.dumps({"level": "warning", "msg": "fresh", "time": "2022-01-02T00:00:00Z"}) + "\n"
    )
    with caplog.at_level(logging.DEBUG, logger="limakit.events"):
        assert watch(str(stdout), str(stderr), begin, lambda ev: True, timeout=0.1) is False
    messages = [r.getMessage() for r in caplog.records]
    assert "[hostagent] fresh" in messages
    assert "[hostagent] old" not in messages