from fastapi import APIRouter, Depends, HTTPException, Query

import structlog

from jobdesk import paths, schemas, trash
from jobdesk.deps import get_current_user, get_store, to_http
from jobdesk.errors import ClientNotFoundError, DuplicateClientError, JobDeskError
from jobdesk.identity import derive_client_id
from jobdesk.ids import now_ms
from jobdesk.store import DocumentStore, Transaction

router = APIRouter(prefix="/clients", tags=["clients"])
logger = structlog.get_logger(__name__)


@router.post("/", response_model=schemas.Client)
async def create_client(
    payload: schemas.ClientCreate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    # why: same key an approval would derive, so approvals reuse this record
    client_id = derive_client_id(payload.email, payload.phone, payload.name)
    ref = store.doc(user["tenant_id"], paths.CLIENTS, client_id)

    async def _create(tx: Transaction) -> dict:
        if await tx.read(ref) is not None:
            raise DuplicateClientError(client_id)
        now = now_ms()
        data = {"id": client_id, **payload.model_dump(), "created_at": now, "updated_at": now}
        tx.write(ref, data)
        return data

    try:
        return await store.transactionally(_create)
    except JobDeskError as e:
        logger.warning("client_create_failed", client_id=client_id, error=str(e))
        raise to_http(e)


@router.get("/", response_model=list[schemas.Client])
async def list_clients(
    q: str | None = Query(default=None, description="Filter by name contains"),
    limit: int = 100,
    offset: int = 0,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    docs = [d for d in await store.list_docs(user["tenant_id"], paths.CLIENTS) if not d.get("deleted_at")]
    if q:
        needle = q.lower()
        docs = [d for d in docs if needle in (d.get("name") or "").lower()]
    docs.sort(key=lambda d: (d.get("name") or "").lower())
    return docs[offset:offset + limit]


@router.get("/deleted", response_model=list[schemas.Client])
async def list_deleted_clients(user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    return await trash.list_deleted(store, user["tenant_id"], paths.CLIENTS)


@router.get("/{client_id}", response_model=schemas.Client)
async def get_client(client_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    raw = await store.get(store.doc(user["tenant_id"], paths.CLIENTS, client_id))
    if not raw or raw.get("deleted_at"):
        raise HTTPException(status_code=404, detail="Client not found")
    return raw


@router.patch("/{client_id}", response_model=schemas.Client)
async def update_client(
    client_id: str,
    payload: schemas.ClientUpdate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    ref = store.doc(user["tenant_id"], paths.CLIENTS, client_id)

    async def _update(tx: Transaction) -> dict:
        existing = await tx.read(ref)
        if existing is None or existing.get("deleted_at"):
            raise ClientNotFoundError(client_id)
        # the key stays put even if email/phone change
        tx.update(ref, {**payload.model_dump(exclude_unset=True), "updated_at": now_ms()})
        return await tx.read(ref)

    try:
        return await store.transactionally(_update)
    except JobDeskError as e:
        raise to_http(e)


@router.delete("/{client_id}", status_code=204)
async def delete_client(client_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    try:
        await trash.soft_delete(store, store.doc(user["tenant_id"], paths.CLIENTS, client_id), ClientNotFoundError)
    except JobDeskError as e:
        raise to_http(e)
    return None


@router.post("/{client_id}/restore", response_model=schemas.Client)
async def restore_client(client_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    ref = store.doc(user["tenant_id"], paths.CLIENTS, client_id)
    try:
        await trash.restore(store, ref, ClientNotFoundError)
    except JobDeskError as e:
        raise to_http(e)
    return await store.get(ref)


@router.get("/{client_id}/trackings", response_model=list[schemas.Tracking])
async def list_client_trackings(client_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    docs = await store.list_docs(user["tenant_id"], paths.TRACKINGS)
    rows = [d for d in docs if d.get("client_id") == client_id and not d.get("deleted_at")]
    rows.sort(key=lambda d: d.get("created_at") or 0, reverse=True)
    return rows
