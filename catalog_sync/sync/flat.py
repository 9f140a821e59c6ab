# catalog_sync/sync/flat.py
# --------------------------------------------------------------------------------------
# Conversion between the product forest and the flat, parent_id-linked relation the
# store persists. Flattening is depth-first with every parent ahead of its children.
# --------------------------------------------------------------------------------------
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from catalog_sync.models.product import (
    DEFAULT_CHUNK_SIZE,
    ProductNode,
    SyncBatch,
    new_node_id,
)
from catalog_sync.importer.row_decoder import is_truthy_status, parse_price, parse_quantity

logger = logging.getLogger("uvicorn.error")

_KINDS = {"configurable", "bundle", "simple"}


def node_to_record(node: ProductNode, parent_id: Optional[str] = None) -> Dict[str, Any]:
    """Persisted columns of one node, children left out."""
    attributes = dict(node.attributes or {})
    visibility = attributes.pop("visibility", None)
    return {
        "id": node.id,
        "parent_id": parent_id,
        "sku": node.sku,
        "name": node.name,
        "type": node.kind,
        "price": node.price,
        "qty": node.quantity,
        "status": node.status,
        "visibility": visibility,
        "attributes": attributes,
    }


def _attributes_of(record: Dict[str, Any]) -> Dict[str, Any]:
    raw = record.get("attributes")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else {}
        except ValueError:
            logger.warning("[SYNC] unreadable attributes on %s", record.get("id"))
            raw = {}
    return dict(raw) if isinstance(raw, dict) else {}


def record_to_node(record: Dict[str, Any]) -> ProductNode:
    attributes = _attributes_of(record)
    if record.get("visibility"):
        attributes["visibility"] = record["visibility"]
    kind = str(record.get("type") or record.get("kind") or "simple").lower()
    status = record.get("status")
    return ProductNode(
        id=None if record.get("id") is None else str(record["id"]),
        sku=str(record.get("sku") or ""),
        name=str(record.get("name") or ""),
        kind=kind if kind in _KINDS else "simple",
        price=parse_price(record.get("price")) or 0.0,
        quantity=parse_quantity(record.get("qty", record.get("quantity"))),
        status="enabled" if status == "enabled" or is_truthy_status(status) else "disabled",
        attributes=attributes,
    )


def flatten_forest(forest: Iterable[ProductNode]) -> List[Dict[str, Any]]:
    """
    Depth-first flatten, parent before its children, `parent_id` filled in.
    Nodes without an id get one assigned in place so children can reference it;
    parent_ref is set in place to match.
    """
    records: List[Dict[str, Any]] = []

    def _walk(nodes: Iterable[ProductNode], parent_id: Optional[str]) -> None:
        for node in nodes:
            if not node.id:
                node.id = new_node_id()
            node.parent_ref = parent_id
            records.append(node_to_record(node, parent_id))
            if node.children:
                _walk(node.children, node.id)

    _walk(forest, None)
    return records


def build_tree_from_flat(records: Iterable[Dict[str, Any]]) -> Tuple[List[ProductNode], List[str]]:
    """
    Rebuild the forest from flat records.
    Returns (forest, orphan_ids); orphans reference a parent id that is not present.
    """
    records = list(records)
    by_id: Dict[str, ProductNode] = {}
    nodes: List[Tuple[Dict[str, Any], ProductNode]] = []
    for record in records:
        node = record_to_node(record)
        nodes.append((record, node))
        if node.id is not None:
            by_id[node.id] = node

    forest: List[ProductNode] = []
    orphans: List[str] = []
    for record, node in nodes:
        parent_id = record.get("parent_id")
        if not parent_id:
            forest.append(node)
            continue
        parent = by_id.get(str(parent_id))
        if parent is None or parent is node:
            orphans.append(node.id or node.sku)
            logger.warning(
                "[SYNC] dropping orphan %s (%s): parent %s not found",
                node.id, node.sku, parent_id,
            )
            continue
        node.parent_ref = parent.id
        parent.children.append(node)
    return forest, orphans


def chunk_records(records: List[Dict[str, Any]], size: int = DEFAULT_CHUNK_SIZE) -> List[SyncBatch]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [
        SyncBatch(index=i // size + 1, records=records[i:i + size])
        for i in range(0, len(records), size)
    ]
