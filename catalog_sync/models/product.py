# catalog_sync/models/product.py
# ===================================================
# Catalog data model shared by import and sync
# ===================================================
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

ProductKind = Literal["configurable", "bundle", "simple"]
ProductStatus = Literal["enabled", "disabled"]

# Store-side batch limit for a single bulk write
DEFAULT_CHUNK_SIZE = 500


def new_node_id() -> str:
    return "id-" + uuid.uuid4().hex[:12]


class ProductNode(BaseModel):
    """One catalog entry, optionally owning an ordered list of child entries."""
    id: Optional[str] = None
    sku: str
    name: str
    kind: ProductKind = "simple"
    price: float = Field(0.0, ge=0)
    quantity: int = Field(0, ge=0)
    status: ProductStatus = "disabled"
    attributes: Dict[str, Any] = Field(default_factory=dict)
    children: List["ProductNode"] = Field(default_factory=list)
    # Only populated on the flat side of the tree/flat boundary
    parent_ref: Optional[str] = None

    class Config:
        extra = "ignore"

    def iter_tree(self):
        """Depth-first walk, parent before its children."""
        yield self
        for child in self.children:
            yield from child.iter_tree()


class VariationAttribute(BaseModel):
    key: str
    value: str


class ParsedVariation(BaseModel):
    """One `|`-separated entry of an encoded variation field."""
    sku: str
    attributes: List[VariationAttribute] = Field(default_factory=list)

    def attribute_map(self) -> Dict[str, str]:
        return {a.key: a.value for a in self.attributes}


class DecodedRecord(BaseModel):
    """Typed intermediate form of one imported row (see importer.row_decoder)."""
    sku: str
    name: str
    kind: ProductKind = "simple"
    # None means the row carried no usable price
    price: Optional[float] = None
    quantity: int = 0
    status: ProductStatus = "disabled"
    attributes: Dict[str, Any] = Field(default_factory=dict)
    # Raw `configurable_variations` value, consumed by the variation parser
    variations: Optional[str] = None


class ResolvedVariation(BaseModel):
    variation: ParsedVariation
    record: DecodedRecord


class SyncBatch(BaseModel):
    index: int
    records: List[Dict[str, Any]]

    def __len__(self) -> int:
        return len(self.records)


ProductNode.model_rebuild()
