"""Resolve attachment file tokens into temporary download URLs."""

from __future__ import annotations

import logging

import httpx

from catalog_sync.config import DEFAULT_BASE_URL
from catalog_sync.errors import ResolutionFailed, SourceApiError
from catalog_sync.ingest.api import decode_envelope
from catalog_sync.ingest.auth import TokenCache
from catalog_sync.utils.retry import retry_async

logger = logging.getLogger(__name__)


class AttachmentResolver:
    """Exchanges a file token for a direct download URL valid for about 30 minutes.

    Resolved URLs are deliberately not cached; only transcoded output is.
    """

    def __init__(
        self,
        tokens: TokenCache,
        *,
        session: httpx.AsyncClient,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
    ) -> None:
        self.tokens = tokens
        self._session = session
        self._url = f"{base_url.rstrip('/')}/drive/v1/medias/batch_get_tmp_download_url"
        self._timeout = timeout

    async def resolve(self, file_token: str) -> str:
        try:
            token = await self.tokens.get_token()
            response = await retry_async(self._session.get)(
                self._url,
                params={"file_tokens": file_token},
                headers={"Authorization": f"Bearer {token}"},
                timeout=self._timeout,
            )
            body = decode_envelope(response, "Failed to get download URL")
        except httpx.HTTPError as exc:
            raise ResolutionFailed(file_token, None, str(exc)) from exc
        except SourceApiError as exc:
            raise ResolutionFailed(file_token, exc.code, exc.message) from exc

        urls = (body.get("data") or {}).get("tmp_download_urls") or []
        for entry in urls:
            if entry.get("file_token", file_token) == file_token and entry.get("tmp_download_url"):
                logger.debug("Resolved %s -> download URL", file_token)
                return entry["tmp_download_url"]
        raise ResolutionFailed(file_token, body.get("code"), "Empty tmp_download_urls array")
