# catalog_sync/store/sql_store.py
# ===================================================
# SQLAlchemy (async) store adapter for the products table
# ===================================================
from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_sync.models.product import new_node_id
from catalog_sync.models.product_row import ProductRow
from catalog_sync.store.base import StoreError, clean_record

logger = logging.getLogger("uvicorn.error")


class SqlStore:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def fetch_all(self) -> List[Dict[str, Any]]:
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(select(ProductRow).order_by(ProductRow.pk))
                return [row.to_record() for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreError("fetch", str(e)) from e

    async def fetch_by_parent(self, parent_id: str) -> List[Dict[str, Any]]:
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(
                    select(ProductRow)
                    .where(ProductRow.parent_id == parent_id)
                    .order_by(ProductRow.pk)
                )
                return [row.to_record() for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreError("fetch", str(e), ref=parent_id) from e

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        values = clean_record(record)
        values["id"] = values.get("id") or new_node_id()
        try:
            async with self._sessionmaker() as session:
                row = ProductRow(**values)
                session.add(row)
                await session.flush()
                saved = row.to_record()
                await session.commit()
                return saved
        except SQLAlchemyError as e:
            raise StoreError("insert", str(e), ref=values["id"]) from e

    async def update(self, record_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        changes = clean_record(record)
        changes.pop("id", None)
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(select(ProductRow).where(ProductRow.id == record_id))
                row = result.scalar_one_or_none()
                if row is None:
                    raise StoreError("update", "no such record", ref=record_id)
                for key, value in changes.items():
                    setattr(row, key, value)
                saved = row.to_record()
                await session.commit()
                return saved
        except SQLAlchemyError as e:
            raise StoreError("update", str(e), ref=record_id) from e

    async def delete_by_id(self, record_id: str) -> bool:
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(delete(ProductRow).where(ProductRow.id == record_id))
                await session.commit()
                return (result.rowcount or 0) > 0
        except SQLAlchemyError as e:
            raise StoreError("delete", str(e), ref=record_id) from e

    async def bulk_upsert(self, records: List[Dict[str, Any]], conflict_key: str = "id") -> bool:
        if conflict_key not in ("id", "sku"):
            raise StoreError("bulk_upsert", f"unsupported conflict key {conflict_key!r}")
        rows = [clean_record(r) for r in records]
        column = getattr(ProductRow, conflict_key)
        try:
            async with self._sessionmaker() as session:
                keys = [r.get(conflict_key) for r in rows if r.get(conflict_key)]
                existing: Dict[str, ProductRow] = {}
                if keys:
                    result = await session.execute(select(ProductRow).where(column.in_(keys)))
                    existing = {getattr(row, conflict_key): row for row in result.scalars().all()}
                for values in rows:
                    current = existing.get(values.get(conflict_key))
                    if current is not None:
                        for key, value in values.items():
                            if key == "id" and conflict_key != "id":
                                continue
                            setattr(current, key, value)
                    else:
                        values["id"] = values.get("id") or new_node_id()
                        row = ProductRow(**values)
                        session.add(row)
                        existing[values.get(conflict_key)] = row
                await session.commit()
            return True
        except SQLAlchemyError as e:
            raise StoreError("bulk_upsert", str(e)) from e
