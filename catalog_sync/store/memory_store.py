# catalog_sync/store/memory_store.py
# In-process store adapter (development backend and test double).
from __future__ import annotations

import asyncio
import copy
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set

from catalog_sync.models.product import new_node_id
from catalog_sync.store.base import StoreError, clean_record

logger = logging.getLogger("uvicorn.error")


class MemoryStore:
    """
    Dict-backed products relation that keeps insertion order.

    `calls` records every write as (operation, ref) so callers can inspect ordering.
    `fail_on[operation]` holds ids/skus (or chunk numbers for bulk_upsert, starting
    at 1) that make the matching call raise StoreError.
    """

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None):
        self._rows: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.fail_on: Dict[str, Set[str]] = defaultdict(set)
        self._bulk_calls = 0
        for row in rows or []:
            rid = row.get("id") or new_node_id()
            self._rows[rid] = {**clean_record(row), "id": rid}

    def _check(self, operation: str, *refs: Optional[str]) -> None:
        failing = self.fail_on.get(operation) or set()
        for ref in refs:
            if ref is not None and str(ref) in failing:
                raise StoreError(operation, "injected failure", ref=str(ref))

    async def fetch_all(self) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        self._check("fetch", "*")
        return [copy.deepcopy(r) for r in self._rows.values()]

    async def fetch_by_parent(self, parent_id: str) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        self._check("fetch", parent_id)
        return [copy.deepcopy(r) for r in self._rows.values() if r.get("parent_id") == parent_id]

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        await asyncio.sleep(0)
        row = clean_record(record)
        self._check("insert", row.get("id"), row.get("sku"))
        rid = row.get("id") or new_node_id()
        if rid in self._rows:
            raise StoreError("insert", "duplicate key", ref=rid)
        row["id"] = rid
        self._rows[rid] = row
        self.calls.append(("insert", rid))
        return copy.deepcopy(row)

    async def update(self, record_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        await asyncio.sleep(0)
        self._check("update", record_id, record.get("sku"))
        if record_id not in self._rows:
            raise StoreError("update", "no such record", ref=record_id)
        changes = clean_record(record)
        changes.pop("id", None)
        self._rows[record_id].update(changes)
        self.calls.append(("update", record_id))
        return copy.deepcopy(self._rows[record_id])

    async def delete_by_id(self, record_id: str) -> bool:
        await asyncio.sleep(0)
        self._check("delete", record_id)
        self.calls.append(("delete", record_id))
        return self._rows.pop(record_id, None) is not None

    async def bulk_upsert(self, records: List[Dict[str, Any]], conflict_key: str = "id") -> bool:
        await asyncio.sleep(0)
        self._bulk_calls += 1
        self.calls.append(("bulk_upsert", len(records)))
        self._check("bulk_upsert", str(self._bulk_calls))
        for record in records:
            row = clean_record(record)
            key = row.get(conflict_key)
            if conflict_key == "id":
                key = key or new_node_id()
                row["id"] = key
                self._rows.setdefault(key, {}).update(row)
                continue
            existing = next((r for r in self._rows.values() if r.get(conflict_key) == key), None)
            if existing is not None:
                row.pop("id", None)
                existing.update(row)
            else:
                rid = row.get("id") or new_node_id()
                row["id"] = rid
                self._rows[rid] = row
        return True

    def rows(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._rows.values()]

    def writes(self, operation: str) -> List[Any]:
        return [ref for op, ref in self.calls if op == operation]
