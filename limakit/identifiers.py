"""Validation of instance and user identifiers."""

import re

MAX_LENGTH = 76

_IDENTIFIER_RE = re.compile(r"[A-Za-z0-9]+(?:[._-][A-Za-z0-9]+)*", re.ASCII)


def validate(s):
    """Check that *s* is a valid identifier and return it unchanged.

    Identifiers are runs of ASCII letters and digits, optionally joined by
    single ``.``, ``_`` or ``-`` separators, at most ``MAX_LENGTH`` long.
    Raises ``ValueError`` otherwise.
    """
    if not s:
        raise ValueError("identifier must not be empty")
    if len(s) > MAX_LENGTH:
        raise ValueError(f"identifier {s!r} greater than maximum length ({MAX_LENGTH} characters)")
    if not _IDENTIFIER_RE.fullmatch(s):
        raise ValueError(f"identifier {s!r} must match {_IDENTIFIER_RE.pattern}")
    return s