# catalog_sync/sync/reconciler.py
# =======================================================
# Product forest <-> flat store reconciler
# - Load (flat -> tree) and push to the grid
# - Create / update / delete, parents before children
# - Bulk load-replace in sequential fixed-size chunks
# - Mass status update / delete for a selection
# - CSV import entry point
# =======================================================
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

from catalog_sync.models.product import DEFAULT_CHUNK_SIZE, ProductNode, ProductStatus
from catalog_sync.models.sync_result import (
    BulkOutcome,
    ImportResult,
    LoadOutcome,
    SyncFailure,
    SyncOutcome,
)
from catalog_sync.importer.tree_builder import import_rows
from catalog_sync.store.base import StoreAdapter, StoreError
from catalog_sync.sync.flat import (
    build_tree_from_flat,
    chunk_records,
    flatten_forest,
    node_to_record,
    record_to_node,
)
from catalog_sync.sync.guard import ChangeGuard
from catalog_sync.sync.util import maybe_await

logger = logging.getLogger("uvicorn.error")

ReplaceRows = Callable[[List[ProductNode]], Union[None, Awaitable[None]]]


class SyncReconciler:
    """
    Keeps the product forest shown in the grid and the flat store in step.

    Store failures never raise out of the public methods; they are returned as
    failures on the outcome objects. Every write sequence holds the change guard.
    """

    def __init__(
        self,
        store: StoreAdapter,
        replace_rows: Optional[ReplaceRows] = None,
        guard: Optional[ChangeGuard] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        conflict_key: str = "id",
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.store = store
        self.replace_rows = replace_rows
        self.guard = guard or ChangeGuard()
        self.chunk_size = chunk_size
        self.conflict_key = conflict_key

    # ---- grid -------------------------------------------------------------

    async def _push_rows(self, forest: List[ProductNode], suppress_notifications: bool) -> None:
        if self.replace_rows is None:
            return
        if suppress_notifications:
            with self.guard.hold():
                await maybe_await(self.replace_rows(forest))
        else:
            await maybe_await(self.replace_rows(forest))

    # ---- load -------------------------------------------------------------

    async def load(self, suppress_notifications: bool = True) -> LoadOutcome:
        """Fetch every record, rebuild the forest and hand it to the grid."""
        try:
            records = await self.store.fetch_all()
        except StoreError as e:
            logger.error("[SYNC] load failed: %s", e)
            await self._push_rows([], suppress_notifications)
            return LoadOutcome(
                ok=False,
                failures=[SyncFailure(operation=e.operation, ref=e.ref, message=e.message)],
            )

        forest, orphans = build_tree_from_flat(records)
        await self._push_rows(forest, suppress_notifications)
        logger.info(
            "[SYNC] loaded %s records into %s top-level products (%s orphans dropped)",
            len(records), len(forest), len(orphans),
        )
        return LoadOutcome(ok=True, forest=forest, records=len(records), orphans=orphans)

    # ---- create -----------------------------------------------------------

    async def _create_node(
        self, node: ProductNode, parent_id: Optional[str], outcome: SyncOutcome
    ) -> Optional[ProductNode]:
        record = node_to_record(node, parent_id)
        if not record.get("id"):
            record.pop("id", None)
        try:
            persisted = await self.store.insert(record)
        except StoreError as e:
            logger.error("[SYNC] create %s failed: %s", node.sku, e)
            outcome.fail("insert", node.sku, e.message)
            return None
        if not persisted or not persisted.get("id"):
            outcome.fail("insert", node.sku, "store returned no id")
            return None
        outcome.written += 1

        saved = record_to_node(persisted)
        saved.parent_ref = parent_id
        for child in node.children:
            child_saved = await self._create_node(child, saved.id, outcome)
            if child_saved is not None:
                saved.children.append(child_saved)
        return saved

    async def create(self, node: ProductNode) -> SyncOutcome:
        """
        Insert the node, then each child with parent_id set to the id the store
        assigned. A failed child does not undo the parent.
        """
        outcome = SyncOutcome(operation="create", ref=node.sku)
        with self.guard.hold():
            saved = await self._create_node(node, node.parent_ref, outcome)
        outcome.node = saved
        outcome.ok = saved is not None and not outcome.failures
        if saved is not None:
            logger.info("[SYNC] created %s (%s), %s records written", saved.sku, saved.id, outcome.written)
        return outcome

    # ---- update -----------------------------------------------------------

    async def _update_node(
        self,
        node: ProductNode,
        parent_id: Optional[str],
        outcome: SyncOutcome,
        keep_parent: bool = False,
    ) -> bool:
        if not node.id:
            outcome.fail("update", node.sku, "node has no id")
            return False
        record = node_to_record(node, parent_id)
        if keep_parent:
            # the stored parent link is left as it is
            record.pop("parent_id", None)
        try:
            await self.store.update(node.id, record)
        except StoreError as e:
            logger.error("[SYNC] update %s failed: %s", node.sku, e)
            outcome.fail("update", node.id, e.message)
            return False
        outcome.written += 1
        for child in node.children:
            await self._update_node(child, node.id, outcome)
        return True

    async def update(self, node: ProductNode) -> SyncOutcome:
        """
        Update the node by id, then its children with parent_id = node.id.
        A node without parent_ref keeps whatever parent_id the store already has.
        """
        outcome = SyncOutcome(operation="update", ref=node.id or node.sku, node=node)
        with self.guard.hold():
            await self._update_node(
                node, node.parent_ref, outcome, keep_parent=node.parent_ref is None
            )
        outcome.ok = not outcome.failures
        return outcome

    # ---- delete -----------------------------------------------------------

    async def _delete_node(self, record_id: str, outcome: SyncOutcome) -> bool:
        try:
            children = await self.store.fetch_by_parent(record_id)
        except StoreError as e:
            outcome.fail("fetch", record_id, e.message)
            return False

        children_ok = True
        for child in children:
            child_id = child.get("id")
            if child_id is None:
                continue
            if not await self._delete_node(str(child_id), outcome):
                children_ok = False
        if not children_ok:
            outcome.fail("delete", record_id, "kept because a child could not be deleted")
            return False

        try:
            deleted = await self.store.delete_by_id(record_id)
        except StoreError as e:
            logger.error("[SYNC] delete %s failed: %s", record_id, e)
            outcome.fail("delete", record_id, e.message)
            return False
        if not deleted:
            outcome.fail("delete", record_id, "no such record")
            return False
        outcome.written += 1
        return True

    async def delete(self, record_id: str) -> SyncOutcome:
        """Delete every descendant of the record (children first), then the record."""
        outcome = SyncOutcome(operation="delete", ref=record_id)
        with self.guard.hold():
            outcome.ok = await self._delete_node(record_id, outcome)
        logger.info("[SYNC] delete %s ok=%s (%s records removed)", record_id, outcome.ok, outcome.written)
        return outcome

    # ---- bulk -------------------------------------------------------------

    async def bulk_replace(self, forest: Iterable[ProductNode]) -> BulkOutcome:
        """
        Flatten the forest and upsert it chunk by chunk, each chunk awaited before the
        next. The first failing chunk stops the run; `committed` counts the records of
        the chunks written before it.
        """
        with self.guard.hold():
            records = flatten_forest(forest)
            batches = chunk_records(records, self.chunk_size)
            outcome = BulkOutcome(total=len(records), chunks_total=len(batches))
            logger.info("[SYNC] bulk import of %s records in %s chunks", len(records), len(batches))

            for batch in batches:
                try:
                    ok = await self.store.bulk_upsert(batch.records, conflict_key=self.conflict_key)
                    message = "store rejected the chunk"
                except StoreError as e:
                    ok, message = False, e.message
                if not ok:
                    outcome.ok = False
                    outcome.failures.append(
                        SyncFailure(operation="bulk_upsert", ref=f"chunk {batch.index}", message=message)
                    )
                    logger.error(
                        "[SYNC] bulk import aborted at chunk %s of %s: %s (%s of %s records committed)",
                        batch.index, len(batches), message, outcome.committed, outcome.total,
                    )
                    break
                outcome.committed += len(batch)
                outcome.chunks_written += 1
                logger.info("[SYNC] imported batch %s of %s", batch.index, len(batches))
        return outcome

    # ---- mass actions -----------------------------------------------------

    async def mass_update_status(self, ids: Iterable[str], status: ProductStatus) -> SyncOutcome:
        outcome = SyncOutcome(operation="mass_status", ref=status)
        with self.guard.hold():
            for record_id in ids:
                try:
                    await self.store.update(record_id, {"status": status})
                    outcome.written += 1
                except StoreError as e:
                    outcome.fail("update", record_id, e.message)
        outcome.ok = not outcome.failures
        return outcome

    async def mass_delete(self, ids: Iterable[str]) -> SyncOutcome:
        outcome = SyncOutcome(operation="mass_delete")
        with self.guard.hold():
            for record_id in ids:
                await self._delete_node(record_id, outcome)
        outcome.ok = not outcome.failures
        return outcome

    # ---- import -----------------------------------------------------------

    async def import_catalog(
        self, rows: Iterable[Dict[str, Any]], persist: bool = False
    ) -> Tuple[ImportResult, Optional[BulkOutcome]]:
        """Build the forest from import rows, show it in the grid, optionally persist it."""
        result = import_rows(rows)
        if persist and result.forest:
            # ids are assigned during the flatten, before the grid sees the rows
            bulk = await self.bulk_replace(result.forest)
        else:
            bulk = None
        await self._push_rows(result.forest, suppress_notifications=True)
        return result, bulk
