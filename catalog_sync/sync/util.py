# catalog_sync/sync/util.py
from __future__ import annotations

import inspect
from typing import Any, Dict


async def maybe_await(x):
    if inspect.isawaitable(x):
        return await x
    return x


def describe(record: Dict[str, Any] | None) -> str:
    """Short `sku (id)` label for log lines."""
    if not record:
        return "<none>"
    sku = record.get("sku") or "?"
    rid = record.get("id")
    return f"{sku} ({rid})" if rid else str(sku)
