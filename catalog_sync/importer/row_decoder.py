# catalog_sync/importer/row_decoder.py
# --------------------------------------------------------------------------------------
# Decode one flat import row (Magento-style product export) into a typed record.
# Values arrive as loosely typed text; anything unparsable falls back to a default.
# --------------------------------------------------------------------------------------
from __future__ import annotations

from typing import Any, Dict, Optional

from catalog_sync.models.product import DecodedRecord, ProductKind, ProductStatus

_KINDS = {"configurable", "bundle", "simple"}
_TRUTHY_STATUS = {"1", "enabled", "true"}

# Plain row columns copied into node attributes when present
ATTRIBUTE_FIELDS = ("visibility", "option_title", "color", "size")


def _norm(s: Any) -> str:
    return "" if s is None else str(s).strip()


def safe_sku(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_price(value: Any) -> Optional[float]:
    """Numeric parse; None when the value is missing or unparsable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value >= 0 else 0.0
    v = _norm(value).replace(" ", "")
    if not v:
        return None
    try:
        parsed = float(v)
    except ValueError:
        return None
    if parsed != parsed:  # NaN
        return None
    return max(parsed, 0.0)


def parse_quantity(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    v = _norm(value)
    if not v:
        return 0
    try:
        parsed = int(float(v))
    except (ValueError, OverflowError):
        return 0
    return max(parsed, 0)


def is_truthy_status(value: Any) -> bool:
    if value is True or value == 1:
        return True
    return _norm(value).lower() in _TRUTHY_STATUS


def normalize_status(raw: Dict[str, Any]) -> ProductStatus:
    if is_truthy_status(raw.get("status")) or is_truthy_status(raw.get("product_status")):
        return "enabled"
    return "disabled"


def normalize_kind(raw: Dict[str, Any]) -> ProductKind:
    kind = _norm(raw.get("product_type") or raw.get("type")).lower()
    return kind if kind in _KINDS else "simple"


def display_name(raw: Dict[str, Any]) -> str:
    return _norm(raw.get("name")) or _norm(raw.get("product_name"))


def has_required_data(raw: Dict[str, Any]) -> bool:
    """A row is usable when it has a SKU and some name to show."""
    return bool(safe_sku(raw.get("sku"))) and bool(display_name(raw))


def decode_row(raw: Dict[str, Any]) -> Optional[DecodedRecord]:
    """
    Decode one import row, or return None when the row is not a usable product.

    Recognized columns: sku, name/product_name, product_type/type, price,
    qty/quantity, status/product_status, visibility, option_title, is_required,
    color, size, configurable_variations.
    """
    if not raw or not has_required_data(raw):
        return None

    attributes: Dict[str, Any] = {}
    for field in ATTRIBUTE_FIELDS:
        value = _norm(raw.get(field))
        if value:
            attributes[field] = value
    if "option_title" in attributes:
        attributes["is_required"] = is_truthy_status(raw.get("is_required"))

    qty_raw = raw.get("qty")
    if qty_raw is None or _norm(qty_raw) == "":
        qty_raw = raw.get("quantity")

    variations = raw.get("configurable_variations")
    return DecodedRecord(
        sku=safe_sku(raw.get("sku")),
        name=display_name(raw),
        kind=normalize_kind(raw),
        price=parse_price(raw.get("price")),
        quantity=parse_quantity(qty_raw),
        status=normalize_status(raw),
        attributes=attributes,
        variations=variations if _norm(variations) else None,
    )
