"""Interpretation of the instance argument of ``start``: names, YAML paths and URLs."""

from __future__ import annotations

import glob
import os
from dataclasses import dataclass
from urllib.parse import urlsplit

from limakit import identifiers

YAML_BYTES_LIMIT = 4 * 1024 * 1024  # 4MiB


@dataclass(frozen=True)
class TemplateYAML:
    """A template file shipped with lima, by name and path."""

    name: str
    location: str

    def to_dict(self):
        return {"name": self.name, "location": self.location}


def _parse_url(arg):
    try:
        return urlsplit(arg)
    except ValueError:
        return None


def _base(path):
    """Return the last element of a slash-separated path, as the shell tools do."""
    if path == "":
        return "."
    stripped = path.rstrip("/")
    if stripped == "":
        return "/"
    return stripped.rsplit("/", 1)[-1]


def arg_seems_template_url(arg):
    """Return ``(is_template, parsed)`` for an argument such as ``template://docker``.

    The template name is ``parsed.netloc``; *parsed* is ``None`` when the
    argument is not a parsable URL.
    """
    parsed = _parse_url(arg)
    if parsed is None:
        return False, None
    return parsed.scheme == "template", parsed


def arg_seems_http_url(arg):
    """True when *arg* is an ``http://`` or ``https://`` URL."""
    parsed = _parse_url(arg)
    return parsed is not None and parsed.scheme in ("http", "https")


def arg_seems_file_url(arg):
    """True when *arg* is a ``file://`` URL."""
    parsed = _parse_url(arg)
    return parsed is not None and parsed.scheme == "file"


def arg_seems_yaml_path(arg):
    """True when *arg* contains a slash or ends with ``.yml`` or ``.yaml``."""
    if "/" in arg:
        return True
    lower = arg.lower()
    return lower.endswith(".yml") or lower.endswith(".yaml")


def inst_name_from_yaml_path(path):
    """Derive an instance name from the file name of a YAML path.

    The base name is lower-cased, a ``.yml`` and then a ``.yaml`` suffix is
    removed and dots become dashes. Raises ``ValueError`` if the result is
    not a valid identifier.
    """
    s = _base(path).lower()
    if s.endswith(".yml"):
        s = s[: -len(".yml")]
    if s.endswith(".yaml"):
        s = s[: -len(".yaml")]
    s = s.replace(".", "-")
    try:
        identifiers.validate(s)
    except ValueError as exc:
        raise ValueError(f"filename {path!r} is invalid: {exc}") from exc
    return s


def inst_name_from_url(url):
    """Derive an instance name from the last path element of *url*."""
    parsed = urlsplit(url)
    return inst_name_from_yaml_path(_base(parsed.path))


def read_at_maximum(stream, limit=YAML_BYTES_LIMIT):
    """Read from a binary *stream* until EOF, returning at most *limit* bytes."""
    chunks = []
    remaining = limit
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def list_template_yamls(examples_dir):
    """Return the templates in *examples_dir*, sorted by path; hidden files are skipped."""
    templates = []
    for path in sorted(glob.glob(os.path.join(glob.escape(examples_dir), "*.yaml"))):
        base = os.path.basename(path)
        if base.startswith("."):
            continue
        templates.append(TemplateYAML(name=base[: -len(".yaml")], location=path))
    return templates


def file_warning(filename):
    """Return a commented header quoting *filename*, or ``""`` if it is missing or empty."""
    try:
        with open(filename, encoding="utf-8", errors="replace") as f:
            content = f.read()
    except OSError:
        return ""
    if not content:
        return ""
    parts = [
        f"# WARNING: {filename} includes the following settings,\n",
        "# which are applied before applying this YAML:\n",
        "# -----------\n",
    ]
    if content.endswith("\n"):
        content = content[:-1]
    for line in content.split("\n"):
        parts.append(f"# {line}\n" if line else "#\n")
    parts.append("# -----------\n")
    parts.append("\n")
    return "".join(parts)