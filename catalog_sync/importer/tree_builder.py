# catalog_sync/importer/tree_builder.py
# --------------------------------------------------------------------------------------
# Build the parent/child product forest from decoded import rows.
# Configurable rows adopt the rows named in their variation field as children; any row
# adopted this way is removed from the top level.
# --------------------------------------------------------------------------------------
from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Set

from catalog_sync.models.product import (
    DecodedRecord,
    ProductNode,
    ResolvedVariation,
    new_node_id,
)
from catalog_sync.models.sync_result import ImportReport, ImportResult
from catalog_sync.importer.row_decoder import decode_row, safe_sku
from catalog_sync.importer.variation_parser import resolve_variations

logger = logging.getLogger("uvicorn.error")

TOP_LEVEL_VISIBILITY = "Catalog, Search"
CHILD_VISIBILITY = "Not Visible Individually"


def index_records(
    rows: Iterable[Dict[str, Any]],
    report: Optional[ImportReport] = None,
) -> tuple[List[DecodedRecord], Dict[str, Optional[DecodedRecord]]]:
    """
    Decode every row. Returns the valid records in input order and a SKU lookup that
    also remembers SKUs whose rows were rejected (mapped to None).
    """
    report = report if report is not None else ImportReport()
    records: List[DecodedRecord] = []
    by_sku: Dict[str, Optional[DecodedRecord]] = {}
    for raw in rows:
        report.rows_read += 1
        record = decode_row(raw)
        if record is None:
            report.rows_rejected += 1
            sku = safe_sku((raw or {}).get("sku"))
            if sku and sku not in by_sku:
                by_sku[sku] = None
            continue
        records.append(record)
        # first valid row wins for lookups
        if by_sku.get(record.sku) is None:
            by_sku[record.sku] = record
    return records, by_sku


def node_from_record(record: DecodedRecord, visibility_default: str) -> ProductNode:
    attributes = dict(record.attributes)
    attributes.setdefault("visibility", visibility_default)
    return ProductNode(
        id=new_node_id(),
        sku=record.sku,
        name=record.name,
        kind=record.kind,
        price=record.price or 0.0,
        quantity=record.quantity,
        status=record.status,
        attributes=attributes,
    )


def child_from_variation(parent: ProductNode, resolved: ResolvedVariation) -> ProductNode:
    record = resolved.record
    # variation attributes first, the child's own row wins on conflict
    attributes: Dict[str, Any] = dict(resolved.variation.attribute_map())
    attributes.update(record.attributes)
    attributes.setdefault("visibility", CHILD_VISIBILITY)
    return ProductNode(
        id=new_node_id(),
        sku=record.sku,
        name=record.name or f"{parent.name} Variation",
        kind="simple",
        price=record.price if record.price is not None else parent.price,
        quantity=record.quantity,
        status=record.status,
        attributes=attributes,
        parent_ref=parent.id,
    )


def build_forest(
    records: List[DecodedRecord],
    records_by_sku: Optional[Dict[str, Optional[DecodedRecord]]] = None,
    report: Optional[ImportReport] = None,
) -> List[ProductNode]:
    report = report if report is not None else ImportReport()
    if records_by_sku is None:
        records_by_sku = {}
        for record in records:
            records_by_sku.setdefault(record.sku, record)

    seen: Set[str] = set()
    parents: List[ProductNode] = []
    claimed: Set[str] = set()

    for record in records:
        if record.sku in seen:
            report.warn(
                "duplicate_sku", record.sku,
                f'Duplicate SKU "{record.sku}" in import; keeping the first row',
            )
            continue
        seen.add(record.sku)

        node = node_from_record(record, TOP_LEVEL_VISIBILITY)
        parents.append(node)

        if record.kind != "configurable" or not record.variations:
            if record.variations:
                logger.debug("[IMPORT] ignoring variations on non-configurable %s", record.sku)
            continue

        for resolved in resolve_variations(record.sku, record.variations, records_by_sku, report):
            child_sku = resolved.record.sku
            if child_sku in claimed:
                report.warn(
                    "child_already_claimed", child_sku,
                    f'Child SKU "{child_sku}" already belongs to another product; not added to "{record.sku}"',
                )
                continue
            node.children.append(child_from_variation(node, resolved))
            claimed.add(child_sku)
            report.children_attached += 1

        if not node.children:
            report.warn(
                "no_children", record.sku,
                f'No valid children found for configurable product "{record.sku}"',
            )
        else:
            logger.info("[IMPORT] %s children attached to %s", len(node.children), record.sku)

    for p in parents:
        if p.sku in claimed and p.children:
            report.warn(
                "children_dropped", p.sku,
                f'"{p.sku}" was adopted as a child, so its own {len(p.children)} children are dropped',
            )
    forest = [p for p in parents if p.sku not in claimed]
    report.top_level = len(forest)
    return forest


def import_rows(rows: Iterable[Dict[str, Any]]) -> ImportResult:
    """Decode, resolve variations and build the forest for a whole import."""
    report = ImportReport()
    records, by_sku = index_records(rows, report)
    forest = build_forest(records, by_sku, report)

    kinds = Counter(n.kind for n in forest)
    logger.info(
        "[IMPORT] %s rows read, %s rejected, %s top-level products %s, %s children",
        report.rows_read, report.rows_rejected, len(forest), dict(kinds), report.children_attached,
    )
    if not forest:
        logger.error("[IMPORT] No valid top-level products found in the import")
    return ImportResult(forest=forest, report=report)
