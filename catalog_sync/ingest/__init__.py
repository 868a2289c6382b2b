"""Ingestion helpers."""

from __future__ import annotations

import functools
import pathlib

import yaml

FIELDS_PATH = pathlib.Path(__file__).with_name("fields.yml")


@functools.lru_cache(maxsize=None)
def load_field_names(path: pathlib.Path = FIELDS_PATH) -> dict[str, dict[str, str]]:
    """Column names keyed by record kind, then by attribute."""
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return {kind: dict(columns) for kind, columns in data.items()}
