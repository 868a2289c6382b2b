"""Bitable records API client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from catalog_sync.config import DEFAULT_BASE_URL
from catalog_sync.errors import SourceApiError
from catalog_sync.ingest.api import decode_envelope
from catalog_sync.ingest.auth import TokenCache
from catalog_sync.ingest.models import RecordItem, TableInfo
from catalog_sync.utils.retry import retry_async

logger = logging.getLogger(__name__)

PAGE_SIZE = 500


class BitableClient:
    def __init__(
        self,
        tokens: TokenCache,
        app_token: str,
        *,
        session: httpx.AsyncClient,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self.tokens = tokens
        self.app_token = app_token
        self._session = session
        self._tables_url = f"{base_url.rstrip('/')}/bitable/v1/apps/{app_token}/tables"
        self._timeout = timeout
        self._page_size = page_size

    async def list_tables(self) -> list[TableInfo]:
        data = await self._get(self._tables_url, {}, action="Failed to list tables")
        return [
            TableInfo(table_id=item["table_id"], name=item.get("name", ""), revision=item.get("revision"))
            for item in (data.get("items") or [])
        ]

    async def read_all_records(self, table_id: str) -> list[RecordItem]:
        """Read every record of a table, following ``page_token`` until ``has_more`` is false."""
        url = f"{self._tables_url}/{table_id}/records"
        records: list[RecordItem] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"page_size": self._page_size}
            if page_token:
                params["page_token"] = page_token
            logger.debug("Fetching records from %s (page_token=%s)", table_id, page_token)
            data = await self._get(url, params, action=f"Failed to read records from {table_id}")
            if data.get("total") is not None and page_token is None:
                logger.info("Table %s has %s total records", table_id, data["total"])
            for item in data.get("items") or []:
                records.append(RecordItem(record_id=item.get("record_id", ""), fields=item.get("fields") or {}))
            page_token = data.get("page_token")
            if not data.get("has_more") or not page_token:
                break
        logger.info("Read %s records from table %s", len(records), table_id)
        return records

    async def _get(self, url: str, params: dict[str, Any], *, action: str) -> dict[str, Any]:
        token = await self.tokens.get_token()
        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = await retry_async(self._session.get)(
                url, params=params, headers=headers, timeout=self._timeout
            )
        except httpx.HTTPError as exc:
            raise SourceApiError(action, None, str(exc)) from exc
        body = decode_envelope(response, action)
        return body.get("data") or {}
