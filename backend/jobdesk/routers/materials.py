from fastapi import APIRouter, Depends, HTTPException

import structlog

from jobdesk import paths, schemas
from jobdesk.deps import get_current_user, get_store, to_http
from jobdesk.errors import JobDeskError
from jobdesk.ids import new_id, now_ms
from jobdesk.store import DocumentStore

router = APIRouter(prefix="/materials", tags=["materials"])
logger = structlog.get_logger(__name__)


@router.post("/", response_model=schemas.Material)
async def create_material(
    payload: schemas.MaterialCreate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    now = now_ms()
    material = schemas.Material(id=new_id("material"), **payload.model_dump(), created_at=now, updated_at=now)

    async def _create(tx):
        tx.write(store.doc(user["tenant_id"], paths.MATERIALS, material.id), material.model_dump())

    try:
        await store.transactionally(_create)
    except JobDeskError as e:
        logger.warning("material_create_failed", material_id=material.id, error=str(e))
        raise to_http(e)
    return material


@router.get("/", response_model=list[schemas.Material])
async def list_materials(user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    docs = await store.list_docs(user["tenant_id"], paths.MATERIALS)
    return sorted(docs, key=lambda d: (d.get("name") or "").lower())


@router.get("/{material_id}", response_model=schemas.Material)
async def get_material(material_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    raw = await store.get(store.doc(user["tenant_id"], paths.MATERIALS, material_id))
    if not raw:
        raise HTTPException(status_code=404, detail="Material not found")
    return raw


@router.get("/{material_id}/movements", response_model=list[schemas.StockMovement])
async def list_movements(material_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    docs = await store.list_docs(user["tenant_id"], paths.STOCK_MOVEMENTS)
    rows = [d for d in docs if d.get("material_id") == material_id]
    rows.sort(key=lambda d: d.get("date") or 0, reverse=True)
    return rows
