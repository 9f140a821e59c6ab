import asyncio

from catalog_sync.models.audit_log import clear_audit_log, get_audit_log
from catalog_sync.store.memory_store import MemoryStore
from catalog_sync.sync.notifications import RowChangeDispatcher, RowChangeEvent
from catalog_sync.sync.reconciler import SyncReconciler

ROWS = [
    {"id": "p", "sku": "TS-1", "name": "Tee", "type": "configurable", "price": 20, "status": "enabled"},
    {"id": "c", "parent_id": "p", "sku": "TS-1-S", "name": "Tee S", "price": 20, "qty": 2},
]


def _setup():
    store = MemoryStore(rows=ROWS)
    holder = {}

    def replace_rows(forest):
        # the grid echoes every replaced row back as an edit
        dispatcher = holder["dispatcher"]
        for node in forest:
            dispatcher.notify(RowChangeEvent(kind="cell_edited", row=node.model_dump(), field="name", value=node.name))

    reconciler = SyncReconciler(store, replace_rows=replace_rows)
    dispatcher = RowChangeDispatcher(reconciler)
    holder["dispatcher"] = dispatcher
    return store, reconciler, dispatcher


def test_echoes_during_load_are_ignored():
    async def run():
        store, reconciler, dispatcher = _setup()
        await reconciler.load()
        return store, dispatcher

    store, dispatcher = asyncio.run(run())
    assert dispatcher.ignored == 1
    assert dispatcher.queue.empty()
    assert store.calls == []


def test_invalid_edit_is_not_synced():
    async def run():
        store, reconciler, dispatcher = _setup()
        outcome = await reconciler.load(suppress_notifications=True)
        row = outcome.forest[0].model_dump()
        queued = dispatcher.notify(RowChangeEvent(kind="cell_edited", row=row, field="price", value="-4"))
        return store, dispatcher, queued

    store, dispatcher, queued = asyncio.run(run())
    assert queued is False
    assert dispatcher.rejected == 1
    assert store.writes("update") == []


def test_cell_edit_updates_record_and_children():
    async def run():
        store, reconciler, dispatcher = _setup()
        outcome = await reconciler.load()
        row = outcome.forest[0].model_dump()
        assert dispatcher.notify(RowChangeEvent(kind="cell_edited", row=row, field="name", value="Tee v2"))
        handled = await dispatcher.drain()
        return store, handled

    clear_audit_log()
    store, handled = asyncio.run(run())
    assert handled == 1
    assert store.writes("update") == ["p", "c"]
    assert store.rows()[0]["name"] == "Tee v2"
    assert get_audit_log()[-1]["action"] == "Row Sync: update"


def test_qty_edit_maps_to_quantity():
    async def run():
        store, reconciler, dispatcher = _setup()
        outcome = await reconciler.load()
        child = outcome.forest[0].children[0].model_dump()
        dispatcher.notify(RowChangeEvent(kind="cell_edited", row=child, field="qty", value="11"))
        await dispatcher.drain()
        return store

    store = asyncio.run(run())
    child = [r for r in store.rows() if r["id"] == "c"][0]
    assert child["qty"] == 11
    assert child["parent_id"] == "p"


def test_row_added_and_deleted():
    async def run():
        store, reconciler, dispatcher = _setup()
        dispatcher.notify(RowChangeEvent(kind="row_added", row={"sku": "MUG", "name": "Mug", "price": 8}))
        dispatcher.notify(RowChangeEvent(kind="row_deleted", row={"id": "p", "sku": "TS-1"}))
        dispatcher.notify(RowChangeEvent(kind="row_deleted", row={"sku": "NO-ID"}))
        await dispatcher.drain()
        return store

    store = asyncio.run(run())
    assert [r["sku"] for r in store.rows()] == ["MUG"]
    assert store.writes("delete") == ["c", "p"]


def test_worker_loop_drains_queue():
    async def run():
        store, reconciler, dispatcher = _setup()
        stop = asyncio.Event()
        task = asyncio.create_task(dispatcher.worker_loop(stop))
        dispatcher.notify(RowChangeEvent(kind="row_added", row={"sku": "MUG", "name": "Mug"}))
        await asyncio.wait_for(dispatcher.queue.join(), timeout=5.0)
        stop.set()
        await asyncio.wait_for(task, timeout=5.0)
        return store

    store = asyncio.run(run())
    assert "MUG" in [r["sku"] for r in store.rows()]


def test_reload_after_write_refreshes_grid():
    async def run():
        store = MemoryStore(rows=ROWS)
        grids = []
        reconciler = SyncReconciler(store, replace_rows=grids.append)
        dispatcher = RowChangeDispatcher(reconciler, reload_after_write=True)
        dispatcher.notify(RowChangeEvent(kind="row_deleted", row={"id": "p", "sku": "TS-1"}))
        await dispatcher.drain()
        return grids, dispatcher

    grids, dispatcher = asyncio.run(run())
    assert grids == [[]]
    assert dispatcher.queue.empty()
