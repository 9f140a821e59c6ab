# catalog_sync/models/product_row.py
from __future__ import annotations
from typing import Any, Dict
from sqlalchemy import String, Integer, Float, JSON
from sqlalchemy.orm import Mapped, mapped_column
from catalog_sync.db import Base

class ProductRow(Base):
    __tablename__ = "products"

    # surrogate key keeps rows in insertion order
    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    parent_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    sku: Mapped[str] = mapped_column(String(128), index=True)
    name: Mapped[str] = mapped_column(String(255))
    type: Mapped[str] = mapped_column(String(32), default="simple")
    price: Mapped[float] = mapped_column(Float, default=0.0)
    qty: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(16), default="disabled")
    visibility: Mapped[str | None] = mapped_column(String(64), nullable=True)
    attributes: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "sku": self.sku,
            "name": self.name,
            "type": self.type,
            "price": self.price,
            "qty": self.qty,
            "status": self.status,
            "visibility": self.visibility,
            "attributes": dict(self.attributes or {}),
        }
