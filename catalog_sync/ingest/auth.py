"""Tenant access token retrieval and caching."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

import httpx

from catalog_sync.config import DEFAULT_BASE_URL
from catalog_sync.errors import AuthError
from catalog_sync.ingest.api import decode_envelope
from catalog_sync.utils.retry import retry_async

logger = logging.getLogger(__name__)

DEFAULT_EXPIRE_SECONDS = 7200
REFRESH_MARGIN_SECONDS = 300


@dataclass(slots=True, frozen=True)
class CachedToken:
    token: str
    expires_at: float


class TokenCache:
    """Single-slot tenant token cache shared by every authenticated caller.

    The slot is read and replaced under an :class:`asyncio.Lock`; the token
    request itself runs outside the lock, so two callers seeing an expired slot
    may both refresh. The later write wins.
    """

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        *,
        session: httpx.AsyncClient,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        refresh_margin: float = REFRESH_MARGIN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.app_id = app_id
        self.app_secret = app_secret
        self._session = session
        self._url = f"{base_url.rstrip('/')}/auth/v3/tenant_access_token/internal"
        self._timeout = timeout
        self._refresh_margin = refresh_margin
        self._clock = clock
        self._lock = asyncio.Lock()
        self._cached: CachedToken | None = None

    async def get_token(self) -> str:
        async with self._lock:
            cached = self._cached
        if cached is not None and cached.expires_at - self._refresh_margin > self._clock():
            return cached.token
        return await self.refresh()

    async def refresh(self) -> str:
        logger.info("Fetching new tenant_access_token")
        token, expire = await self._fetch_token()
        async with self._lock:
            self._cached = CachedToken(token=token, expires_at=self._clock() + expire)
        logger.info("Got new token, expires in %ss", expire)
        return token

    async def invalidate(self) -> None:
        async with self._lock:
            self._cached = None

    async def _fetch_token(self) -> tuple[str, int]:
        payload = {"app_id": self.app_id, "app_secret": self.app_secret}
        try:
            response = await retry_async(self._session.post)(self._url, json=payload, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise AuthError("Failed to send token request", None, str(exc)) from exc
        data = decode_envelope(response, "Failed to get token", error_cls=AuthError)
        token = data.get("tenant_access_token")
        if not token:
            raise AuthError("Failed to get token", 0, "No token in response")
        expire = data.get("expire") or DEFAULT_EXPIRE_SECONDS
        return token, int(expire)
