from fastapi import APIRouter, Depends, Query

import structlog

from jobdesk import ledger, paths, schemas
from jobdesk.deps import get_current_user, get_store, to_http
from jobdesk.errors import JobDeskError, LedgerEntryNotFoundError
from jobdesk.store import DocumentStore

# manual income/expense entries, outside the quote ledgers
router = APIRouter(prefix="/transactions", tags=["transactions"])
logger = structlog.get_logger(__name__)


@router.post("/", response_model=schemas.LedgerEntry)
async def create_transaction(
    payload: schemas.LedgerEntryCreate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    try:
        entry = await ledger.add_entry(store, user["tenant_id"], paths.TRANSACTIONS, payload)
    except JobDeskError as e:
        logger.warning("transaction_create_failed", error=str(e))
        raise to_http(e)
    logger.info("transaction_created", entry_id=entry["id"], kind=entry["kind"], amount=entry["amount"])
    return entry


@router.get("/", response_model=list[schemas.LedgerEntry])
async def list_transactions(
    limit: int = Query(default=50, ge=1, le=500),
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    return await ledger.list_recent(store, user["tenant_id"], paths.TRANSACTIONS, limit)


@router.get("/month", response_model=list[schemas.LedgerEntry])
async def list_transactions_by_month(
    year: int = Query(..., ge=1970),
    month: int = Query(..., ge=1, le=12),
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    return await ledger.list_month(store, user["tenant_id"], paths.TRANSACTIONS, year, month)


@router.delete("/{entry_id}", status_code=204)
async def delete_transaction(entry_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    try:
        await ledger.delete_entry(store, user["tenant_id"], paths.TRANSACTIONS, entry_id, LedgerEntryNotFoundError)
    except JobDeskError as e:
        raise to_http(e)
    return None
