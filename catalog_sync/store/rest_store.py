#==========================================================================================
# catalog_sync/store/rest_store.py
# Hosted-database REST adapter (PostgREST dialect).
# Reads and writes the flat products relation at {STORE_URL}/rest/v1/{table}.
#==========================================================================================
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from catalog_sync.config import settings
from catalog_sync.store.base import StoreError, clean_record

logger = logging.getLogger("uvicorn.error")


class RestStore:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        table: Optional[str] = None,
        timeout: Optional[float] = None,
        page_size: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        base = (base_url if base_url is not None else settings.STORE_URL).rstrip("/")
        self.table = table or settings.STORE_TABLE
        self.url = f"{base}/rest/v1/{self.table}"
        self.api_key = api_key if api_key is not None else settings.STORE_API_KEY
        self.timeout = timeout if timeout is not None else settings.STORE_TIMEOUT
        self.page_size = max(1, page_size or settings.STORE_PAGE_SIZE)
        self._transport = transport

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        operation: str,
        method: str,
        *,
        ref: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.request(
                    method, self.url, params=params, json=json, headers=self._headers(prefer)
                )
        except httpx.HTTPError as e:
            logger.error("[STORE] %s %s failed: %s", operation, ref or "", e)
            raise StoreError(operation, str(e) or e.__class__.__name__, ref=ref) from e
        if resp.status_code >= 400:
            detail = resp.text[:300]
            try:
                body = resp.json()
                if isinstance(body, dict):
                    detail = body.get("message") or detail
            except ValueError:
                pass
            raise StoreError(operation, f"HTTP {resp.status_code}: {detail}", ref=ref)
        return resp

    @staticmethod
    def _rows(resp: httpx.Response) -> List[Dict[str, Any]]:
        if not resp.content:
            return []
        data = resp.json()
        return data if isinstance(data, list) else [data]

    async def _fetch_pages(self, params: Dict[str, str], ref: Optional[str] = None) -> List[Dict[str, Any]]:
        """Read every matching row, one limit/offset page at a time until a short page."""
        rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page_params = {**params, "limit": str(self.page_size), "offset": str(offset)}
            resp = await self._request("fetch", "GET", ref=ref, params=page_params)
            page = self._rows(resp)
            rows.extend(page)
            if len(page) < self.page_size:
                return rows
            offset += len(page)

    async def fetch_all(self) -> List[Dict[str, Any]]:
        rows = await self._fetch_pages({"select": "*"})
        logger.info("[STORE] fetched %s rows from %s", len(rows), self.table)
        return rows

    async def fetch_by_parent(self, parent_id: str) -> List[Dict[str, Any]]:
        return await self._fetch_pages({"select": "id", "parent_id": f"eq.{parent_id}"}, ref=parent_id)

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        row = clean_record(record)
        resp = await self._request(
            "insert", "POST", ref=row.get("id") or row.get("sku"),
            json=row, prefer="return=representation",
        )
        rows = self._rows(resp)
        if not rows:
            raise StoreError("insert", "store returned no row", ref=row.get("sku"))
        return rows[0]

    async def update(self, record_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        row = clean_record(record)
        row.pop("id", None)
        resp = await self._request(
            "update", "PATCH", ref=record_id,
            params={"id": f"eq.{record_id}"}, json=row, prefer="return=representation",
        )
        rows = self._rows(resp)
        if not rows:
            raise StoreError("update", "no such record", ref=record_id)
        return rows[0]

    async def delete_by_id(self, record_id: str) -> bool:
        resp = await self._request(
            "delete", "DELETE", ref=record_id,
            params={"id": f"eq.{record_id}", "select": "id"}, prefer="return=representation",
        )
        # an empty representation means nothing matched the id
        return bool(self._rows(resp))

    async def bulk_upsert(self, records: List[Dict[str, Any]], conflict_key: str = "id") -> bool:
        await self._request(
            "bulk_upsert", "POST",
            params={"on_conflict": conflict_key},
            json=[clean_record(r) for r in records],
            prefer="resolution=merge-duplicates,return=minimal",
        )
        return True
