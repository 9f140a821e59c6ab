# ---------------------------------
# catalog_sync/sync/notifications.py
# ---------------------------------
# Row-change notifications coming from the grid (cell edited, row added, row deleted)
# are turned into store writes. Notifications raised while the change guard is held
# are the engine's own echoes and are dropped at the door; the rest are queued and
# drained by a single worker so one write sequence runs at a time.
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ValidationError

from catalog_sync.importer.validation import validate_field
from catalog_sync.models.audit_log import add_audit_entry
from catalog_sync.models.product import ProductNode
from catalog_sync.models.sync_result import SyncOutcome
from catalog_sync.sync.reconciler import SyncReconciler
from catalog_sync.sync.util import describe

logger = logging.getLogger("uvicorn.error")

EventKind = Literal["cell_edited", "row_added", "row_deleted"]

# grid column names that differ from the node field they edit
_FIELD_ALIASES = {"qty": "quantity", "type": "kind"}


class RowChangeEvent(BaseModel):
    kind: EventKind
    row: Dict[str, Any] = {}
    field: Optional[str] = None
    value: Any = None

    class Config:
        extra = "allow"


class RowChangeDispatcher:
    def __init__(self, reconciler: SyncReconciler, maxsize: int = 0, reload_after_write: bool = False):
        self.reconciler = reconciler
        self.reload_after_write = reload_after_write
        self.queue: "asyncio.Queue[RowChangeEvent]" = asyncio.Queue(maxsize)
        self.ignored = 0
        self.rejected = 0

    def notify(self, event: RowChangeEvent) -> bool:
        """Queue the notification. Returns False when it is ignored or rejected."""
        if self.reconciler.guard.active:
            self.ignored += 1
            logger.debug("[EVENTS] ignoring %s for %s while syncing", event.kind, describe(event.row))
            return False

        if event.kind == "cell_edited" and event.field:
            error = validate_field(event.field, event.value)
            if error:
                self.rejected += 1
                logger.warning("[EVENTS] edit of %s on %s rejected: %s", event.field, describe(event.row), error)
                return False

        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error("[EVENTS] queue full; dropping %s for %s", event.kind, describe(event.row))
            return False
        return True

    async def dispatch(self, event: RowChangeEvent) -> Optional[SyncOutcome]:
        """Run the write sequence for one notification."""
        if event.kind == "row_deleted":
            record_id = event.row.get("id")
            if not record_id:
                logger.warning("[EVENTS] row_deleted without an id; nothing to delete")
                return None
            return await self.reconciler.delete(str(record_id))

        row = dict(event.row)
        if event.kind == "cell_edited" and event.field:
            row[_FIELD_ALIASES.get(event.field, event.field)] = event.value
        try:
            node = ProductNode.model_validate(row)
        except ValidationError as e:
            logger.warning("[EVENTS] %s for %s has an invalid row: %s", event.kind, describe(event.row), e)
            outcome = SyncOutcome(operation="update" if event.kind == "cell_edited" else "create")
            outcome.fail("validate", describe(event.row), str(e))
            return outcome

        if event.kind == "cell_edited":
            return await self.reconciler.update(node)
        return await self.reconciler.create(node)

    async def drain(self) -> int:
        """Process everything currently queued; returns how many were handled."""
        handled = 0
        while not self.queue.empty():
            event = self.queue.get_nowait()
            try:
                await self._handle(event)
            finally:
                self.queue.task_done()
            handled += 1
        return handled

    async def _handle(self, event: RowChangeEvent) -> None:
        logger.info("[EVENTS] received %s for %s", event.kind, describe(event.row))
        outcome = await self.dispatch(event)
        if outcome is None:
            return
        if self.reload_after_write and outcome.written:
            await self.reconciler.load(suppress_notifications=True)
        details = f"{event.kind} {describe(event.row)}: written={outcome.written}"
        if outcome.failures:
            details += " failures=" + "; ".join(f"{f.operation} {f.ref}: {f.message}" for f in outcome.failures)
        add_audit_entry(action=f"Row Sync: {outcome.operation}", user="grid", details=details, ok=outcome.ok)

    async def worker_loop(self, stop_event: asyncio.Event) -> None:
        logger.info("[EVENTS] worker started")
        while not stop_event.is_set():
            try:
                event = await asyncio.wait_for(self.queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            try:
                await self._handle(event)
            except Exception as e:
                logger.exception("[EVENTS] %s for %s failed: %s", event.kind, describe(event.row), e)
            finally:
                self.queue.task_done()
        logger.info("[EVENTS] worker stopped")
