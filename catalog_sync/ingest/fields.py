"""Decoders for Bitable cell values.

Bitable returns loosely typed JSON per column type: text columns arrive as a
plain string or as a list of rich-text segments, numbers sometimes arrive as
strings, link and attachment columns are lists of objects, and so on. Every
function here takes the record's field mapping plus a column name and returns a
typed value or ``None``. None of them raise.
"""

from __future__ import annotations

import math
from typing import Any, Mapping

from catalog_sync.ingest.models import AttachmentInfo

Fields = Mapping[str, Any]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _first(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


def extract_text(fields: Fields, key: str) -> str | None:
    value = fields.get(key)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        parts = [
            item["text"]
            for item in value
            if isinstance(item, dict) and isinstance(item.get("text"), str)
        ]
        if parts:
            return "".join(parts)
        return None
    if _is_number(value):
        return _format_number(value)
    return None


def extract_number(fields: Fields, key: str) -> float | None:
    """Finite numbers only; ``NaN`` and infinities decode to ``None``."""
    value = fields.get(key)
    try:
        if _is_number(value):
            number = float(value)
        elif isinstance(value, str):
            number = float(value.strip())
        else:
            return None
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def extract_bool(fields: Fields, key: str) -> bool:
    """Checkbox columns are simply absent when unticked."""
    value = fields.get(key)
    return value if isinstance(value, bool) else False


def extract_select(fields: Fields, key: str) -> str | None:
    value = fields.get(key)
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get("text"), str):
        return value["text"]
    return None


def _link_member(fields: Fields, key: str, member: str) -> str | None:
    first = _first(fields.get(key))
    if isinstance(first, dict) and isinstance(first.get(member), str):
        return first[member]
    if isinstance(first, str):
        return first
    return None


def extract_link_text(fields: Fields, key: str) -> str | None:
    """Display text of the first linked record."""
    return _link_member(fields, key, "text")


def extract_link_record_id(fields: Fields, key: str) -> str | None:
    return _link_member(fields, key, "record_id")


def extract_phone(fields: Fields, key: str) -> str | None:
    return extract_text(fields, key)


def extract_url(fields: Fields, key: str) -> str | None:
    value = fields.get(key)
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for member in ("link", "text"):
            if isinstance(value.get(member), str):
                return value[member]
    return None


def extract_attachment_url(fields: Fields, key: str) -> str | None:
    """URL of the first attachment, preferring the temporary download link."""
    first = _first(fields.get(key))
    if not isinstance(first, dict):
        return None
    for member in ("tmp_url", "url"):
        if isinstance(first.get(member), str):
            return first[member]
    return None


def extract_attachment_info(fields: Fields, key: str) -> AttachmentInfo | None:
    first = _first(fields.get(key))
    if not isinstance(first, dict):
        return None
    file_token = first.get("file_token")
    name = first.get("name")
    size = first.get("size")
    if not isinstance(file_token, str) or not isinstance(name, str):
        return None
    if not _is_number(size) or size < 0 or int(size) != size:
        return None
    return AttachmentInfo(file_token=file_token, name=name, size=int(size))
