# catalog_sync/store/base.py
# ===================================================
# Store adapter contract used by the sync reconciler
# ===================================================
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

# Columns of the persisted flat product relation
RECORD_FIELDS = (
    "id",
    "parent_id",
    "sku",
    "name",
    "type",
    "price",
    "qty",
    "status",
    "visibility",
    "attributes",
)


class StoreError(Exception):
    """A store call failed. Carries the operation and the id/sku it concerned."""

    def __init__(self, operation: str, message: str, ref: Optional[str] = None):
        self.operation = operation
        self.ref = ref
        self.message = message
        where = f" [{ref}]" if ref else ""
        super().__init__(f"{operation}{where}: {message}")


@runtime_checkable
class StoreAdapter(Protocol):
    """
    Asynchronous access to the flat `products` relation.
    Every method may raise StoreError; none of them retries.
    """

    async def fetch_all(self) -> List[Dict[str, Any]]: ...

    async def fetch_by_parent(self, parent_id: str) -> List[Dict[str, Any]]: ...

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]: ...

    async def update(self, record_id: str, record: Dict[str, Any]) -> Dict[str, Any]: ...

    async def delete_by_id(self, record_id: str) -> bool: ...

    async def bulk_upsert(self, records: List[Dict[str, Any]], conflict_key: str = "id") -> bool: ...


def clean_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only the persisted columns."""
    return {k: record[k] for k in RECORD_FIELDS if k in record}
