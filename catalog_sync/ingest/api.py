"""Open platform response envelope handling."""

from __future__ import annotations

from typing import Any

import httpx

from catalog_sync.errors import SourceApiError


def decode_envelope(
    response: httpx.Response,
    action: str,
    *,
    error_cls: type[SourceApiError] = SourceApiError,
) -> dict[str, Any]:
    """Return the JSON body of a ``{code, msg, ...}`` response or raise ``error_cls``.

    The platform reports most failures through ``code`` with an HTTP 200, but
    gateway errors arrive as plain non-2xx responses, sometimes without JSON.
    """
    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        raise error_cls(action, response.status_code, f"Unexpected response: {response.text[:200]!r}")
    code = body.get("code")
    if code != 0:
        raise error_cls(action, code, str(body.get("msg") or response.reason_phrase))
    if response.is_error:
        raise error_cls(action, response.status_code, response.reason_phrase)
    return body
