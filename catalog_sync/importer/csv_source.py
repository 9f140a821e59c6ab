# catalog_sync/importer/csv_source.py
# ===================================================
# Product export CSV in/out (Magento column layout)
# ===================================================
from __future__ import annotations

import io
import logging
from typing import Any, Dict, Iterable, List

import pandas as pd

from catalog_sync.models.product import ParsedVariation, ProductNode, VariationAttribute
from catalog_sync.importer.variation_parser import encode_variation_field

logger = logging.getLogger("uvicorn.error")

# Any one of these columns marks a file as a product export we understand
MAGENTO_MARKER_COLUMNS = ("sku", "product_type", "configurable_variations", "visibility")

EXPORT_COLUMNS = [
    "sku",
    "name",
    "product_type",
    "price",
    "qty",
    "status",
    "visibility",
    "option_title",
    "is_required",
    "color",
    "size",
    "configurable_variations",
]

# Child attributes that live in their own column rather than in the variation field
_ROW_ONLY_ATTRIBUTES = {"visibility", "option_title", "is_required"}


def read_catalog_csv(content: str | bytes) -> List[Dict[str, str]]:
    """Parse CSV text into row dicts; every value stays a string, blanks stay ''."""
    if isinstance(content, bytes):
        content = content.decode("utf-8-sig")
    content = content.lstrip("\ufeff")
    if not content.strip():
        return []
    df = pd.read_csv(
        io.StringIO(content),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
    )
    df.columns = [str(c).strip() for c in df.columns]
    rows = df.to_dict(orient="records")
    logger.info("[IMPORT] CSV contains %s rows, columns=%s", len(rows), list(df.columns))
    return rows


def looks_like_magento_export(columns: Iterable[str]) -> bool:
    cols = {str(c).strip() for c in columns or []}
    return any(field in cols for field in MAGENTO_MARKER_COLUMNS)


def _fmt_price(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".") if value else "0"


def _node_row(node: ProductNode) -> Dict[str, Any]:
    attrs = node.attributes or {}
    row = {
        "sku": node.sku,
        "name": node.name,
        "product_type": node.kind,
        "price": _fmt_price(node.price),
        "qty": str(node.quantity),
        # Magento encodes disabled as 2
        "status": "1" if node.status == "enabled" else "2",
        "visibility": attrs.get("visibility", ""),
        "option_title": attrs.get("option_title", ""),
        "is_required": "",
        "color": attrs.get("color", ""),
        "size": attrs.get("size", ""),
        "configurable_variations": "",
    }
    if "option_title" in attrs:
        row["is_required"] = "1" if attrs.get("is_required") else "0"
    return row


def _variation_of(child: ProductNode) -> ParsedVariation:
    attrs = [
        VariationAttribute(key=k, value=str(v))
        for k, v in (child.attributes or {}).items()
        if k not in _ROW_ONLY_ATTRIBUTES and v not in (None, "")
    ]
    return ParsedVariation(sku=child.sku, attributes=attrs)


def forest_to_rows(forest: List[ProductNode]) -> List[Dict[str, Any]]:
    """Flatten the forest to export rows, each parent followed by its children."""
    rows: List[Dict[str, Any]] = []
    for node in forest:
        for item in node.iter_tree():
            row = _node_row(item)
            if item.kind == "configurable" and item.children:
                row["configurable_variations"] = encode_variation_field(
                    [_variation_of(c) for c in item.children]
                )
            rows.append(row)
    return rows


def export_catalog_csv(forest: List[ProductNode]) -> str:
    df = pd.DataFrame(forest_to_rows(forest), columns=EXPORT_COLUMNS)
    return df.to_csv(index=False)
