# catalog_sync/importer/variation_parser.py
# --------------------------------------------------------------------------------------
# Parser for the encoded `configurable_variations` column of a product export.
#
#   sku=TS-1-S,color=Black,size=S|sku=TS-1-M,color=Black,size=M
#
# Entries are separated by "|", attributes inside an entry by ",". Each attribute is
# a key=value token; the `sku` key names the child product the entry refers to.
# --------------------------------------------------------------------------------------
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from catalog_sync.models.product import (
    DecodedRecord,
    ParsedVariation,
    ResolvedVariation,
    VariationAttribute,
)
from catalog_sync.models.sync_result import ImportReport
from catalog_sync.importer.row_decoder import safe_sku

logger = logging.getLogger("uvicorn.error")

ENTRY_SEPARATOR = "|"
TOKEN_SEPARATOR = ","
PAIR_SEPARATOR = "="
SKU_KEY = "sku"


def _split_token(token: str) -> Optional[Tuple[str, str]]:
    key, sep, value = token.partition(PAIR_SEPARATOR)
    if not sep:
        return None
    key, value = key.strip(), value.strip()
    if not key or not value:
        return None
    return key, value


def parse_variation_entry(entry: str) -> Optional[ParsedVariation]:
    """Parse one entry; None when it names no child SKU."""
    sku: Optional[str] = None
    attributes: List[VariationAttribute] = []
    for token in entry.split(TOKEN_SEPARATOR):
        pair = _split_token(token)
        if pair is None:
            continue
        key, value = pair
        if key == SKU_KEY:
            sku = safe_sku(value)
        else:
            attributes.append(VariationAttribute(key=key, value=value))
    if not sku:
        return None
    return ParsedVariation(sku=sku, attributes=attributes)


def parse_variation_field(encoded: Optional[str]) -> List[ParsedVariation]:
    """Parse the whole encoded field, keeping entry order."""
    if not encoded:
        return []
    out: List[ParsedVariation] = []
    for entry in str(encoded).split(ENTRY_SEPARATOR):
        parsed = parse_variation_entry(entry)
        if parsed is not None:
            out.append(parsed)
    return out


def encode_variation_field(variations: List[ParsedVariation]) -> str:
    """Inverse of parse_variation_field, used when exporting a catalog."""
    entries = []
    for v in variations:
        tokens = [f"{SKU_KEY}{PAIR_SEPARATOR}{v.sku}"]
        tokens += [f"{a.key}{PAIR_SEPARATOR}{a.value}" for a in v.attributes]
        entries.append(TOKEN_SEPARATOR.join(tokens))
    return ENTRY_SEPARATOR.join(entries)


def resolve_variations(
    parent_sku: str,
    encoded: Optional[str],
    records_by_sku: Dict[str, Optional[DecodedRecord]],
    report: Optional[ImportReport] = None,
) -> List[ResolvedVariation]:
    """
    Match each parsed variation with the decoded record of its child SKU.

    `records_by_sku` maps every SKU seen in the import to its decoded record, or to
    None when the row was present but not a usable product. Unmatched variations are
    dropped with a warning; the rest keep their order.
    """
    report = report if report is not None else ImportReport()
    resolved: List[ResolvedVariation] = []
    for variation in parse_variation_field(encoded):
        child_sku = variation.sku
        if child_sku == parent_sku:
            report.warn(
                "self_reference", parent_sku,
                f'Configurable "{parent_sku}" lists itself as a variation; ignored',
            )
            continue
        if child_sku not in records_by_sku:
            report.warn(
                "child_not_found", child_sku,
                f'Child SKU "{child_sku}" referenced by "{parent_sku}" was not found',
            )
            continue
        record = records_by_sku[child_sku]
        if record is None:
            report.warn(
                "child_incomplete", child_sku,
                f'Child SKU "{child_sku}" referenced by "{parent_sku}" is incomplete (no name)',
            )
            continue
        logger.debug("[IMPORT] matched child %s for %s", child_sku, parent_sku)
        resolved.append(ResolvedVariation(variation=variation, record=record))
    return resolved
