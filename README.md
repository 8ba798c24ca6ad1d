# limakit

Building blocks for running Linux virtual machines behind a host agent and
a guest agent. It covers parsing the kernel's TCP socket tables, an HTTP API
for a guest agent served on a UNIX socket, the JSON events a host agent
writes, port forwarding over an SSH master connection, rendering SSH
options, validating cloud-init arguments, working out instance names from
arguments, and a download cache for disk images.

It uses only the standard library.

## Installation

```
pip install limakit
```

For running the tests:

```
pip install "limakit[test]"
pytest
```

## Modules

- `limakit.procnettcp`: `parse(stream, kind)`, `parse_address(s)` and
  `parse_files(files=None)` read `/proc/net/tcp` and `/proc/net/tcp6` into
  `Entry` records (`kind`, `ip`, `port`, `state`). `Kind` is `TCP` or
  `TCP6`; `TCP_LISTEN` and `TCP_ESTABLISHED` are the state values. Files
  that do not exist are skipped by `parse_files`.
- `limakit.guestagent_api`: `IPPort`, `Info` and `Event`, the records the
  guest agent reports, with `to_dict()` / `from_dict()` for their JSON form.
- `limakit.guestagent_server`: `GuestAgentServer` serves `GET /v1/info` and
  `GET /v1/events` for an agent object on a UNIX socket;
  `GuestAgentClient` talks to it.
- `limakit.hostagent_api`: `Info` and `HostAgentClient`, whose `info()`
  queries a host agent's `GET /v1/info` endpoint.
- `limakit.unixhttp`: `UnixHTTPConnection`, an `http.client` connection
  over a UNIX socket, and `get_json(socket_path, path)`.
- `limakit.events`: host agent `Status` and `Event` records as JSON lines
  (`Event.to_json()`, `Event.from_json()`), and `watch(...)` for following
  the host agent's stdout and stderr files.
- `limakit.sshforward`: `SSHConfig`, `Verb` (`FORWARD`, `CANCEL`),
  `forward_ssh(...)` to start or stop a forward through the SSH master,
  `find_free_tcp_local_port()`, `find_free_udp_local_port()` and
  `determine_ssh_local_port(local_port, inst_name)`.
- `limakit.portforward`: `PortForwardRule`, `host_address(rule, guest)`,
  `forward_tcp(...)` and `PortForwarder`, which decides which guest ports
  go to which host address and applies the port changes of a guest agent
  `Event`.
- `limakit.sshformat`: `format_ssh(inst_name, fmt, opts)` renders SSH
  options as a command line, bare arguments, one option per line or an
  `~/.ssh/config` block (`SSHFormat.CMD`, `ARGS`, `OPTIONS`, `CONFIG`).
- `limakit.downloader`: `download(local, remote, cache_dir=None,
  expected_digest=None)` fetches a file, optionally checks a
  `sha256:`/`sha384:`/`sha512:` digest, and keeps a per-URL cache.
- `limakit.cidata`: `TemplateArgs`, `Containerd`, `Network` and
  `validate_template_args(args)` for the cloud-init data of an instance.
- `limakit.instarg`: tells instance names, YAML paths, `template://` names,
  `http(s)://` and `file://` URLs apart, derives instance names from them,
  lists template YAML files and builds the warning header for an editor.
- `limakit.identifiers`: `validate(s)` checks instance and user names.

Errors are raised as exceptions: `ValueError` for invalid input,
`DownloadError` for failed downloads and digest mismatches,
`RuntimeError` when ssh fails, and `http.client.HTTPException` for
non-200 API responses.

## Examples

### Parsing a TCP table

```python
from limakit.procnettcp import TCP_LISTEN, Kind, parse

with open("/proc/net/tcp") as stream:
    for entry in parse(stream, Kind.TCP):
        if entry.state == TCP_LISTEN:
            print(entry.ip, entry.port)
```

### Serving and querying the guest agent API

`GuestAgentServer` accepts any object with an `info()` method returning an
`Info`, and an `events(stop_event)` method returning an iterable of
`Event`s; the server sets `stop_event` when it shuts down.

```python
import threading

from limakit.guestagent_api import Event, Info, IPPort
from limakit.guestagent_server import GuestAgentClient, GuestAgentServer


class StaticAgent:
    def info(self):
        return Info(local_ports=[IPPort("127.0.0.1", 8080)])

    def events(self, stop_event):
        yield Event(local_ports_added=[IPPort("127.0.0.1", 8080)])


server = GuestAgentServer("/tmp/ga.sock", StaticAgent())
threading.Thread(target=server.serve_forever, daemon=True).start()

client = GuestAgentClient("/tmp/ga.sock")
print(client.info())
try:
    client.events(lambda ev: print(ev.local_ports_added))
except EOFError:
    pass  # the stream ended
server.shutdown()
```

`GuestAgentClient.events` calls its callback for each event and raises
`EOFError` when the server closes the stream.

### Watching host agent events

```python
from datetime import datetime, timezone

from limakit.events import watch

stopped = watch(
    "ha.stdout.log",
    "ha.stderr.log",
    begin=datetime.now(timezone.utc),
    on_event=lambda ev: ev.status.exiting,
    timeout=180,
)
```

`watch` returns `True` once the callback returns a true value and `False`
when the timeout elapses. JSON log records on stderr written before `begin`
are dropped; the rest are logged through the `limakit.events` logger.

### Choosing where a guest port is forwarded

```python
from limakit.guestagent_api import IPPort
from limakit.portforward import PortForwarder, PortForwardRule
from limakit.sshforward import SSHConfig

rules = [
    PortForwardRule(guest_ip="0.0.0.0", guest_port=22, ignore=True),
    PortForwardRule(guest_port=8080, host_port=18080),
    PortForwardRule(guest_ip="127.0.0.1"),
]
forwarder = PortForwarder(SSHConfig(), 60022, rules)
print(forwarder.forwarding_addresses(IPPort("127.0.0.1", 8080)))
# ('127.0.0.1:18080', '127.0.0.1:8080')
```

`PortForwarder.on_event(ev)` runs ssh to cancel forwards for removed ports
and set up forwards for added ones.

### Printing an SSH config block

```python
from limakit.sshformat import SSHFormat, format_ssh

print(format_ssh("default", SSHFormat.CONFIG, ["User=example", "Port=60022"]), end="")
# Host lima-default
#   User example
#   Port 60022
```

### Downloading with a cache

```python
from limakit.downloader import default_cache_dir, download

result = download(
    "~/images/disk.img",
    "https://example.com/disk.img",
    cache_dir=default_cache_dir(),
    expected_digest="sha256:" + "0" * 64,
)
print(result.status, result.cache_path, result.validated_digest)
```

The status is `SKIPPED` when the local file already exists, `USED_CACHE`
when it came from the cache and `DOWNLOADED` otherwise. Passing an empty
`local` with a `cache_dir` only fills the cache.

## What it does not do

limakit ships no command-line program and no running daemon: there is no
`daemon` command that serves the guest agent API, and no agent that itself
watches the guest's TCP tables and container NAT rules and turns them into
events; `GuestAgentServer` serves whatever agent object it is given. There
is no built-in DNS resolver for the guest, and no lookup of ports published
through iptables. Nothing here starts or stops virtual machines, writes the
cloud-init image, or mounts host directories into the guest.