"""Download of remote files, with an optional on-disk cache and digest checks."""

from __future__ import annotations

import contextlib
import hashlib
import logging
import os
import re
import shutil
import sys
import urllib.error
import urllib.request
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

_CHUNK = 1 << 20

# Supported digest algorithms and the length of their hex encoding.
_ALGORITHMS = {"sha256": 64, "sha384": 96, "sha512": 128}
_ENCODED_RE = re.compile(r"[a-f0-9]+")


class Status(str, Enum):
    UNKNOWN = ""
    DOWNLOADED = "downloaded"
    SKIPPED = "skipped"
    USED_CACHE = "used-cache"


@dataclass(frozen=True)
class Result:
    status: Status
    cache_path: str = ""
    validated_digest: bool = False


class DownloadError(Exception):
    """Raised when a download fails or its content does not match the digest."""


def default_cache_dir():
    """Return the per-user cache directory for lima."""
    if sys.platform == "darwin":
        home = os.environ.get("HOME")
        if not home:
            raise OSError("$HOME is not defined")
        base = os.path.join(home, "Library", "Caches")
    elif sys.platform.startswith("win"):
        base = os.environ.get("LocalAppData")
        if not base:
            raise OSError("%LocalAppData% is not defined")
    else:
        base = os.environ.get("XDG_CACHE_HOME", "")
        if base:
            if not os.path.isabs(base):
                raise OSError("path in $XDG_CACHE_HOME is relative")
        else:
            home = os.environ.get("HOME")
            if not home:
                raise OSError("neither $XDG_CACHE_HOME nor $HOME are defined")
            base = os.path.join(home, ".cache")
    return os.path.join(base, "lima")


def validate_digest(expected_digest):
    """Check a digest such as ``sha256:<hex>`` and return its algorithm name.

    Raises ``ValueError`` if the format is wrong or the algorithm is not available.
    """
    algo, sep, encoded = expected_digest.partition(":")
    if not sep or not algo or not encoded:
        raise ValueError(f"invalid checksum digest format: {expected_digest!r}")
    if algo not in _ALGORITHMS:
        raise ValueError(f"expected digest algorithm {algo!r} is not available")
    if len(encoded) != _ALGORITHMS[algo]:
        raise ValueError(f"invalid checksum digest length: {expected_digest!r}")
    if not _ENCODED_RE.fullmatch(encoded):
        raise ValueError(f"invalid checksum digest format: {expected_digest!r}")
    return algo


def is_local(s):
    """True when *s* has no scheme or the ``file://`` scheme."""
    return "://" not in s or s.startswith("file://")


def canonical_local_path(s):
    """Return the absolute local path for *s*.

    A ``file://`` prefix is stripped and the rest must be absolute; otherwise
    a leading ``~`` is expanded and a relative path is made absolute.
    """
    if not s:
        raise ValueError("got empty path")
    if not is_local(s):
        raise ValueError(f"got non-local path: {s!r}")
    if s.startswith("file://"):
        res = s[len("file://"):]
        if not os.path.isabs(res):
            raise ValueError(f"got non-absolute path {res!r}")
        return res
    return os.path.abspath(os.path.expanduser(s))


def _file_digest(path, algo):
    hasher = hashlib.new(algo)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            hasher.update(chunk)
    return f"{algo}:{hasher.hexdigest()}"


def _validate_local_file_digest(path, expected_digest):
    if not path:
        raise ValueError("validate_local_file_digest: got empty path")
    if not expected_digest:
        return
    logger.debug("verifying digest of local file %r (%s)", path, expected_digest)
    actual = _file_digest(path, validate_digest(expected_digest))
    if actual != expected_digest:
        raise DownloadError(f"expected digest {expected_digest!r}, got {actual!r}")


def _copy_local(dst, src, expected_digest):
    src_path = canonical_local_path(src)
    _validate_local_file_digest(src_path, expected_digest)
    if not dst:
        # caching-only mode
        return
    shutil.copyfile(src_path, canonical_local_path(dst))


def _remove_all(path):
    with contextlib.suppress(FileNotFoundError):
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.unlink(path)


def _download_http(local_path, url, expected_digest):
    if not local_path:
        raise ValueError("download_http: got empty local path")
    logger.debug("downloading %r into %r", url, local_path)
    tmp_path = local_path + ".tmp"
    _remove_all(tmp_path)
    hasher = hashlib.new(validate_digest(expected_digest)) if expected_digest else None

    with open(tmp_path, "wb") as out:
        try:
            resp = urllib.request.urlopen(url)
        except urllib.error.HTTPError as exc:
            raise DownloadError(f"expected HTTP status 200, got {exc.code} {exc.reason}") from exc
        with resp:
            if resp.status != 200:
                raise DownloadError(f"expected HTTP status 200, got {resp.status} {resp.reason}")
            total = 0
            for chunk in iter(lambda: resp.read(_CHUNK), b""):
                out.write(chunk)
                if hasher is not None:
                    hasher.update(chunk)
                total += len(chunk)
            logger.debug("received %d bytes from %r", total, url)
        if hasher is not None:
            actual = f"{hasher.name}:{hasher.hexdigest()}"
            if actual != expected_digest:
                raise DownloadError(f"expected digest {expected_digest!r}, got {actual!r}")
        out.flush()
        os.fsync(out.fileno())

    _remove_all(local_path)
    os.replace(tmp_path, local_path)


def download(local, remote, cache_dir=None, expected_digest=None):
    """Download *remote* into the local path *local*.

    When *cache_dir* is given, remote resources are cached under it; local
    files are never cached. If *local* already exists nothing is done and
    the status is ``SKIPPED``. *local* may be empty for caching-only mode.
    When *expected_digest* (``algo:hex``) is given, the content is checked
    against it, except for an already existing *local* and for cached data
    that has a recorded digest, which is compared instead.
    """
    if expected_digest:
        validate_digest(expected_digest)
    else:
        expected_digest = ""
    validated = bool(expected_digest)

    local_path = ""
    if not local:
        if not cache_dir:
            raise ValueError("caching-only mode requires the cache directory to be specified")
    else:
        local_path = canonical_local_path(local)
        if os.path.lexists(local_path):
            logger.debug(
                "file %r already exists, skipping downloading from %r (and skipping digest validation)",
                local_path,
                remote,
            )
            return Result(status=Status.SKIPPED, validated_digest=False)
        os.makedirs(os.path.dirname(local_path), mode=0o755, exist_ok=True)

    if is_local(remote):
        _copy_local(local_path, remote, expected_digest)
        return Result(status=Status.DOWNLOADED, validated_digest=validated)

    if not cache_dir:
        _download_http(local_path, remote, expected_digest)
        return Result(status=Status.DOWNLOADED, validated_digest=validated)

    url_hash = hashlib.sha256(remote.encode()).hexdigest()
    shad = os.path.join(cache_dir, "download", "by-url-sha256", url_hash)
    shad_data = os.path.join(shad, "data")
    shad_digest = ""
    if expected_digest:
        algo = expected_digest.partition(":")[0]
        shad_digest = os.path.join(shad, algo + ".digest")

    if os.path.exists(shad_data):
        logger.debug("file %r is cached as %r", local_path, shad_data)
        cached_digest = None
        if shad_digest:
            with contextlib.suppress(OSError):
                with open(shad_digest, encoding="utf-8") as f:
                    cached_digest = f.read().strip()
        if cached_digest is not None:
            logger.debug(
                "comparing digest %r with the cached digest file %r, not computing the actual digest of %r",
                expected_digest,
                shad_digest,
                shad_data,
            )
            if expected_digest != cached_digest:
                raise DownloadError(
                    f"expected digest {expected_digest!r} does not match the cached digest {cached_digest!r}"
                )
            _copy_local(local_path, shad_data, "")
        else:
            _copy_local(local_path, shad_data, expected_digest)
        return Result(status=Status.USED_CACHE, cache_path=shad_data, validated_digest=validated)

    _remove_all(shad)
    os.makedirs(shad, mode=0o700)
    with open(os.path.join(shad, "url"), "w", encoding="utf-8") as f:
        f.write(remote)
    _download_http(shad_data, remote, expected_digest)
    # the digest was already verified while downloading
    _copy_local(local_path, shad_data, "")
    if shad_digest:
        with open(shad_digest, "w", encoding="utf-8") as f:
            f.write(expected_digest)
    return Result(status=Status.DOWNLOADED, cache_path=shad_data, validated_digest=validated)