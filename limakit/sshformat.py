"""Rendering of the ssh options of an instance in several formats."""

from __future__ import annotations

from enum import Enum


class SSHFormat(str, Enum):
    CMD = "cmd"
    ARGS = "args"
    OPTIONS = "options"
    CONFIG = "config"


def format_ssh(inst_name, fmt, opts):
    """Return the text showing *opts* (``Key=Value`` strings) in format *fmt*.

    ``cmd`` is a full ssh command line, ``args`` the same without ``ssh``
    and the destination, ``options`` one option per line and ``config`` an
    ssh_config ``Host`` block.
    """
    try:
        fmt = SSHFormat(fmt)
    except ValueError:
        raise ValueError(f"unknown format: {fmt!r}") from None
    fake_hostname = "lima-" + inst_name  # the default guest hostname
    option_args = [part for o in opts for part in ("-o", o)]
    if fmt is SSHFormat.CMD:
        return " ".join(["ssh", *option_args, fake_hostname]) + "\n"
    if fmt is SSHFormat.ARGS:
        return " ".join(option_args) + "\n"
    if fmt is SSHFormat.OPTIONS:
        return "".join(o + "\n" for o in opts)
    lines = [f"Host {fake_hostname}\n"]
    for o in opts:
        key, sep, value = o.partition("=")
        if not sep:
            raise ValueError(f"unexpected option {o!r}")
        lines.append(f"  {key} {value}\n")
    return "".join(lines)