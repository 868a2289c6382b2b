"""Filesystem and URL safe slugs."""

from __future__ import annotations

import re

SEPARATOR = "-"
_RUNS = re.compile(r"-{2,}")


def _map_char(char: str) -> str:
    if char.isascii():
        if char.isalnum() or char in "_-":
            return char.lower()
        return SEPARATOR
    return char


def slugify(value: str) -> str:
    """Lower-case ASCII, keep non-ASCII as is, collapse everything else to ``-``."""
    slug = "".join(_map_char(char) for char in value)
    return _RUNS.sub(SEPARATOR, slug).strip(SEPARATOR)
