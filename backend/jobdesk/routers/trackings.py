from typing import Callable

from fastapi import APIRouter, Depends, HTTPException

import structlog

from jobdesk import paths, schemas, trash
from jobdesk.deps import get_current_user, get_store, to_http
from jobdesk.errors import JobDeskError, TrackingNotFoundError
from jobdesk.ids import new_id, now_ms
from jobdesk.payments import register_tracking_payment
from jobdesk.store import DocumentStore, Transaction

router = APIRouter(prefix="/trackings", tags=["trackings"])
logger = structlog.get_logger(__name__)

# status -> timestamp recorded under tracking.dates
STATUS_DATES = {
    "in_progress": "started_at",
    "delivered": "delivered_at",
    "closed": "closed_at",
    "canceled": "canceled_at",
}


async def _mutate(
    store: DocumentStore,
    tenant_id: str,
    tracking_id: str,
    change: Callable[[schemas.Tracking], dict],
) -> dict:
    """Read the tracking, apply ``change`` and write the partial it returns, atomically."""
    ref = store.doc(tenant_id, paths.TRACKINGS, tracking_id)

    async def _run(tx: Transaction) -> dict:
        raw = await tx.read(ref)
        if raw is None or raw.get("deleted_at"):
            raise TrackingNotFoundError(tracking_id)
        partial = change(schemas.Tracking.model_validate(raw))
        tx.update(ref, {**partial, "updated_at": now_ms()})
        return await tx.read(ref)

    try:
        return await store.transactionally(_run)
    except JobDeskError as e:
        logger.warning("tracking_update_failed", tracking_id=tracking_id, error=str(e))
        raise to_http(e)


@router.get("/", response_model=list[schemas.Tracking])
async def list_trackings(
    status: str | None = None,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    docs = await store.list_docs(user["tenant_id"], paths.TRACKINGS)
    rows = [d for d in docs if not d.get("deleted_at") and (not status or d.get("status") == status)]
    rows.sort(key=lambda d: d.get("created_at") or 0, reverse=True)
    return rows


@router.get("/deleted", response_model=list[schemas.Tracking])
async def list_deleted_trackings(user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    return await trash.list_deleted(store, user["tenant_id"], paths.TRACKINGS)


@router.get("/{tracking_id}", response_model=schemas.Tracking)
async def get_tracking(tracking_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    raw = await store.get(store.doc(user["tenant_id"], paths.TRACKINGS, tracking_id))
    if not raw or raw.get("deleted_at"):
        raise HTTPException(status_code=404, detail="Tracking not found")
    return raw


@router.patch("/{tracking_id}/status", response_model=schemas.Tracking)
async def update_status(
    tracking_id: str,
    payload: schemas.TrackingStatusUpdate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    def change(tracking: schemas.Tracking) -> dict:
        dates = dict(tracking.dates)
        if payload.status in STATUS_DATES:
            dates[STATUS_DATES[payload.status]] = now_ms()
        return {"status": payload.status, "dates": dates}

    return await _mutate(store, user["tenant_id"], tracking_id, change)


@router.post("/{tracking_id}/tasks", response_model=schemas.Tracking)
async def add_task(
    tracking_id: str,
    payload: schemas.TaskCreate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    def change(tracking: schemas.Tracking) -> dict:
        task = schemas.TrackingTask(id=new_id("task"), text=payload.text, created_at=now_ms())
        return {"tasks": [t.model_dump() for t in tracking.tasks] + [task.model_dump()]}

    return await _mutate(store, user["tenant_id"], tracking_id, change)


@router.patch("/{tracking_id}/tasks/{task_id}", response_model=schemas.Tracking)
async def set_task_completed(
    tracking_id: str,
    task_id: str,
    payload: schemas.TaskCompletion,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    def change(tracking: schemas.Tracking) -> dict:
        if not any(t.id == task_id for t in tracking.tasks):
            raise HTTPException(status_code=404, detail="Task not found")
        return {"tasks": [
            {**t.model_dump(), "completed": payload.completed} if t.id == task_id else t.model_dump()
            for t in tracking.tasks
        ]}

    return await _mutate(store, user["tenant_id"], tracking_id, change)


@router.patch("/{tracking_id}/materials/{material_id}", response_model=schemas.Tracking)
async def set_material_status(
    tracking_id: str,
    material_id: str,
    payload: schemas.MaterialStatusUpdate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    def change(tracking: schemas.Tracking) -> dict:
        if not any(m.id == material_id for m in tracking.materials):
            raise HTTPException(status_code=404, detail="Material not found")
        return {"materials": [
            {**m.model_dump(), "status": payload.status} if m.id == material_id else m.model_dump()
            for m in tracking.materials
        ]}

    return await _mutate(store, user["tenant_id"], tracking_id, change)


@router.post("/{tracking_id}/logs", response_model=schemas.Tracking)
async def add_daily_log(
    tracking_id: str,
    payload: schemas.DailyLogCreate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    def change(tracking: schemas.Tracking) -> dict:
        log = schemas.DailyLog(id=new_id("log"), **payload.model_dump())
        return {"daily_logs": [d.model_dump() for d in tracking.daily_logs] + [log.model_dump()]}

    return await _mutate(store, user["tenant_id"], tracking_id, change)


@router.post("/{tracking_id}/payments", response_model=schemas.Payment)
async def add_tracking_payment(
    tracking_id: str,
    payload: schemas.PaymentCreate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    try:
        payment = await register_tracking_payment(store, user["tenant_id"], tracking_id, payload)
    except JobDeskError as e:
        logger.warning("tracking_payment_failed", tracking_id=tracking_id, error=str(e))
        raise to_http(e)
    logger.info("tracking_payment_registered", tracking_id=tracking_id, payment_id=payment.id)
    return payment


@router.delete("/{tracking_id}", status_code=204)
async def delete_tracking(tracking_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    try:
        await trash.soft_delete(store, store.doc(user["tenant_id"], paths.TRACKINGS, tracking_id), TrackingNotFoundError)
    except JobDeskError as e:
        raise to_http(e)
    return None


@router.post("/{tracking_id}/restore", response_model=schemas.Tracking)
async def restore_tracking(tracking_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    ref = store.doc(user["tenant_id"], paths.TRACKINGS, tracking_id)
    try:
        await trash.restore(store, ref, TrackingNotFoundError)
    except JobDeskError as e:
        raise to_http(e)
    return await store.get(ref)
