from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from catalog_sync.models.product import ProductNode

logger = logging.getLogger("uvicorn.error")


class ImportWarning(BaseModel):
    code: str  # e.g. "child_not_found", "no_children", "duplicate_sku"
    sku: Optional[str] = None
    message: str


class ImportReport(BaseModel):
    rows_read: int = 0
    rows_rejected: int = 0
    children_attached: int = 0
    top_level: int = 0
    warnings: List[ImportWarning] = Field(default_factory=list)

    def warn(self, code: str, sku: Optional[str], message: str) -> None:
        logger.warning("[IMPORT] %s", message)
        self.warnings.append(ImportWarning(code=code, sku=sku, message=message))

    def codes(self) -> List[str]:
        return [w.code for w in self.warnings]


class ImportResult(BaseModel):
    forest: List[ProductNode] = Field(default_factory=list)
    report: ImportReport = Field(default_factory=ImportReport)


class SyncFailure(BaseModel):
    operation: str  # insert | update | delete | fetch | bulk_upsert
    ref: Optional[str] = None  # id or sku of the affected record
    message: str


class SyncOutcome(BaseModel):
    """Result of one create/update/delete/mass write sequence."""
    operation: str
    ok: bool = True
    ref: Optional[str] = None
    node: Optional[ProductNode] = None
    written: int = 0
    failures: List[SyncFailure] = Field(default_factory=list)

    def fail(self, operation: str, ref: Optional[str], message: str) -> None:
        self.failures.append(SyncFailure(operation=operation, ref=ref, message=message))


class BulkOutcome(BaseModel):
    ok: bool = True
    total: int = 0
    committed: int = 0
    chunks_total: int = 0
    chunks_written: int = 0
    failures: List[SyncFailure] = Field(default_factory=list)


class LoadOutcome(BaseModel):
    ok: bool = True
    forest: List[ProductNode] = Field(default_factory=list)
    records: int = 0
    orphans: List[str] = Field(default_factory=list)
    failures: List[SyncFailure] = Field(default_factory=list)
