# catalog_sync/importer/validation.py
# Per-field checks applied to edited grid cells before they are synced.
from __future__ import annotations

import re
from typing import Any, Optional

_SKU_RE = re.compile(r"^[a-zA-Z0-9\-_]+$")


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def validate_field(field: str, value: Any) -> Optional[str]:
    """Return an error message for an invalid value, None when it is acceptable."""
    if field == "sku":
        text = "" if value is None else str(value).strip()
        if not text:
            return "SKU cannot be empty"
        if not _SKU_RE.match(text):
            return "SKU can only contain letters, numbers, hyphens and underscores"
    elif field == "name":
        if value is None or not str(value).strip():
            return "Name cannot be empty"
    elif field == "price":
        n = _as_number(value)
        if n is None:
            return "Price must be a number"
        if n < 0:
            return "Price cannot be negative"
    elif field in ("quantity", "qty"):
        n = _as_number(value)
        if n is None:
            return "Quantity must be a number"
        if n < 0:
            return "Quantity cannot be negative"
    return None
