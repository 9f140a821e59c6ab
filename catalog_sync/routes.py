#=======================================================================================
# catalog_sync/routes.py
# FastAPI routes for the product catalog grid: load, row writes, mass actions,
# CSV import/export, bulk sync and row-change notifications.
#
# Services are built at startup (main_app.py) and live on app.state:
#   reconciler  SyncReconciler
#   dispatcher  RowChangeDispatcher
#   grid        rows last pushed to the grid
#=======================================================================================

import secrets
import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, Field

from catalog_sync.config import settings
from catalog_sync.importer.csv_source import (
    export_catalog_csv,
    looks_like_magento_export,
    read_catalog_csv,
)
from catalog_sync.models.audit_log import add_audit_entry, get_audit_log
from catalog_sync.models.product import ProductNode
from catalog_sync.models.sync_result import SyncOutcome
from catalog_sync.sync.notifications import RowChangeEvent

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/api", tags=["Catalog API"])

# ---------------------------
# HTTP Basic for write routes
# ---------------------------
security = HTTPBasic()

def verify_admin(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    ok_user = secrets.compare_digest(credentials.username or "", settings.ADMIN_USER or "")
    ok_pass = secrets.compare_digest(credentials.password or "", settings.ADMIN_PASS or "")
    if not (ok_user and ok_pass):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username

# ---------------------------
# Payloads
# ---------------------------
class MassActionRequest(BaseModel):
    action: Literal["enable", "disable", "delete"]
    ids: List[str] = Field(default_factory=list)

# ---------------------------
# Helpers
# ---------------------------
def _services(request: Request):
    state = request.app.state
    if getattr(state, "reconciler", None) is None:
        raise HTTPException(status_code=503, detail="Catalog services are not started")
    return state.reconciler, state.dispatcher

def _grid(request: Request) -> List[ProductNode]:
    return list(getattr(request.app.state, "grid", None) or [])

async def _write_response(
    reconciler, outcome: SyncOutcome, user: str, ok_status: int = 200
) -> JSONResponse:
    # grid follows the store after any write
    if outcome.written:
        await reconciler.load(suppress_notifications=True)
    details = f"ref={outcome.ref} written={outcome.written}"
    if outcome.failures:
        details += f" failures={len(outcome.failures)}"
    add_audit_entry(action=f"Catalog {outcome.operation}", user=user, details=details, ok=outcome.ok)
    code = ok_status if outcome.ok else status.HTTP_502_BAD_GATEWAY
    return JSONResponse(status_code=code, content=outcome.model_dump(mode="json"))

# ---------------------------
# Load / grid
# ---------------------------
@router.get("/products")
async def load_products(request: Request):
    reconciler, _ = _services(request)
    outcome = await reconciler.load(suppress_notifications=True)
    body = outcome.model_dump(mode="json")
    return JSONResponse(status_code=200 if outcome.ok else 502, content=body)

@router.get("/grid")
async def grid_rows(request: Request):
    rows = _grid(request)
    return {"count": len(rows), "products": [r.model_dump(mode="json") for r in rows]}

# ---------------------------
# Row writes
# ---------------------------
@router.post("/products")
async def create_product(node: ProductNode, request: Request, user: str = Depends(verify_admin)):
    reconciler, _ = _services(request)
    outcome = await reconciler.create(node)
    return await _write_response(reconciler, outcome, user, ok_status=status.HTTP_201_CREATED)

@router.put("/products/{record_id}")
async def update_product(record_id: str, node: ProductNode, request: Request, user: str = Depends(verify_admin)):
    reconciler, _ = _services(request)
    node.id = record_id
    outcome = await reconciler.update(node)
    return await _write_response(reconciler, outcome, user)

@router.delete("/products/{record_id}")
async def delete_product(record_id: str, request: Request, user: str = Depends(verify_admin)):
    reconciler, _ = _services(request)
    outcome = await reconciler.delete(record_id)
    return await _write_response(reconciler, outcome, user)

@router.post("/products/mass")
async def mass_action(payload: MassActionRequest, request: Request, user: str = Depends(verify_admin)):
    reconciler, _ = _services(request)
    if not payload.ids:
        raise HTTPException(status_code=400, detail="No products selected")
    if payload.action == "delete":
        outcome = await reconciler.mass_delete(payload.ids)
    else:
        new_status = "enabled" if payload.action == "enable" else "disabled"
        outcome = await reconciler.mass_update_status(payload.ids, new_status)
    logger.info("[SYNC] mass %s on %s products ok=%s", payload.action, len(payload.ids), outcome.ok)
    return await _write_response(reconciler, outcome, user)

# ---------------------------
# Import / export
# ---------------------------
@router.post("/import")
async def import_csv(
    request: Request,
    persist: Optional[bool] = Query(None, description="Write the imported catalog to the store"),
    user: str = Depends(verify_admin),
):
    reconciler, _ = _services(request)
    body = await request.body()
    try:
        rows = read_catalog_csv(body)
    except (UnicodeDecodeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Unreadable CSV: {e}")
    if not rows:
        raise HTTPException(status_code=400, detail="CSV contains no rows")
    if not looks_like_magento_export(rows[0].keys()):
        raise HTTPException(status_code=400, detail="Not a product export: expected sku/product_type columns")

    persist = settings.SYNC_ON_IMPORT if persist is None else persist
    result, bulk = await reconciler.import_catalog(rows, persist=persist)

    add_audit_entry(
        action="Catalog import",
        user=user,
        details=(
            f"rows={result.report.rows_read} top_level={result.report.top_level} "
            f"children={result.report.children_attached} warnings={len(result.report.warnings)} "
            f"persisted={bulk.committed if bulk else 0}"
        ),
        ok=bulk is None or bulk.ok,
    )
    content: Dict[str, Any] = {
        "report": result.report.model_dump(mode="json"),
        "products": [n.model_dump(mode="json") for n in result.forest],
        "bulk": bulk.model_dump(mode="json") if bulk else None,
    }
    code = 200 if bulk is None or bulk.ok else status.HTTP_502_BAD_GATEWAY
    return JSONResponse(status_code=code, content=content)

@router.get("/export")
async def export_csv(request: Request):
    csv_text = export_catalog_csv(_grid(request))
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="products.csv"'},
    )

# ---------------------------
# Bulk sync of the grid rows
# ---------------------------
@router.post("/sync/bulk")
async def bulk_sync(request: Request, user: str = Depends(verify_admin)):
    reconciler, _ = _services(request)
    grid = _grid(request)
    if not grid:
        raise HTTPException(status_code=400, detail="Nothing to sync")
    outcome = await reconciler.bulk_replace(grid)
    add_audit_entry(
        action="Catalog bulk sync",
        user=user,
        details=f"committed={outcome.committed}/{outcome.total} chunks={outcome.chunks_written}/{outcome.chunks_total}",
        ok=outcome.ok,
    )
    return JSONResponse(
        status_code=200 if outcome.ok else status.HTTP_502_BAD_GATEWAY,
        content=outcome.model_dump(mode="json"),
    )

# ---------------------------
# Row-change notifications from the grid
# ---------------------------
@router.post("/events", status_code=status.HTTP_202_ACCEPTED)
async def row_change(event: RowChangeEvent, request: Request, user: str = Depends(verify_admin)):
    _, dispatcher = _services(request)
    queued = dispatcher.notify(event)
    return {"queued": queued, "kind": event.kind}

# ---------------------------
# Audit
# ---------------------------
@router.get("/audit")
async def audit_log():
    return {"entries": get_audit_log()}
