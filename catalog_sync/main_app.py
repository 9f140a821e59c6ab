#=================================================================
# catalog_sync/main_app.py
# FastAPI application entry-point for the catalog sync service.
#=================================================================

import logging, asyncio
from typing import List

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from catalog_sync.routes import router as api_router
from catalog_sync.config import settings
from catalog_sync.db import init_db
from catalog_sync.logging_filters import install_record_trim_filter
from catalog_sync.models.product import ProductNode
from catalog_sync.store.factory import build_store
from catalog_sync.sync.notifications import RowChangeDispatcher
from catalog_sync.sync.reconciler import SyncReconciler

# --- FastAPI instance ---
app = FastAPI(
    title="Catalog Sync",
    description="Hierarchical product catalog import and store sync.",
)

# --- Logging setup (console) ---
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s | %(message)s"
)
logger = logging.getLogger("uvicorn.error")
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
install_record_trim_filter()

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)  # /api/*

app.state.reconciler = None
app.state.dispatcher = None
app.state.grid = []

# --- Root endpoint ---
@app.get("/")
async def home():
    return {"status": "running", "service": "Catalog Sync", "backend": settings.STORE_BACKEND}

# --- Global error handler (keeps full stack trace in logs) ---
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": f"Sync failed: {str(exc)}"},
    )

def _replace_rows(forest: List[ProductNode]) -> None:
    app.state.grid = list(forest)

# ---- Services and background worker lifecycle ----
_worker_task: asyncio.Task | None = None
_worker_stop: asyncio.Event | None = None

@app.on_event("startup")
async def _startup():
    global _worker_task, _worker_stop
    if settings.STORE_BACKEND == "sql":
        await init_db()
    store = build_store()
    reconciler = SyncReconciler(
        store,
        replace_rows=_replace_rows,
        chunk_size=settings.SYNC_CHUNK_SIZE,
    )
    dispatcher = RowChangeDispatcher(reconciler, reload_after_write=True)
    app.state.reconciler = reconciler
    app.state.dispatcher = dispatcher
    app.state.grid = []

    await reconciler.load(suppress_notifications=True)

    _worker_stop = asyncio.Event()
    _worker_task = asyncio.create_task(dispatcher.worker_loop(_worker_stop))

@app.on_event("shutdown")
async def _shutdown():
    global _worker_task, _worker_stop
    if _worker_stop:
        _worker_stop.set()
    if _worker_task:
        try:
            await asyncio.wait_for(_worker_task, timeout=5.0)
        except Exception:
            _worker_task.cancel()
    _worker_task = None
    _worker_stop = None
