from fastapi import APIRouter, Depends, Query

import structlog

from jobdesk import ledger, paths, schemas
from jobdesk.deps import get_current_user, get_store, to_http
from jobdesk.errors import ExpenseNotFoundError, JobDeskError
from jobdesk.store import DocumentStore

router = APIRouter(prefix="/expenses", tags=["expenses"])
logger = structlog.get_logger(__name__)


@router.post("/", response_model=schemas.Expense)
async def create_expense(
    payload: schemas.ExpenseCreate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    try:
        expense = await ledger.add_entry(store, user["tenant_id"], paths.EXPENSES, payload)
    except JobDeskError as e:
        logger.warning("expense_create_failed", error=str(e))
        raise to_http(e)
    logger.info("expense_created", expense_id=expense["id"], amount=expense["amount"])
    return expense


@router.get("/", response_model=list[schemas.Expense])
async def list_expenses(
    limit: int = Query(default=50, ge=1, le=500),
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    return await ledger.list_recent(store, user["tenant_id"], paths.EXPENSES, limit)


@router.get("/month", response_model=list[schemas.Expense])
async def list_expenses_by_month(
    year: int = Query(..., ge=1970),
    month: int = Query(..., ge=1, le=12),
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    return await ledger.list_month(store, user["tenant_id"], paths.EXPENSES, year, month)


@router.delete("/{expense_id}", status_code=204)
async def delete_expense(expense_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    try:
        await ledger.delete_entry(store, user["tenant_id"], paths.EXPENSES, expense_id, ExpenseNotFoundError)
    except JobDeskError as e:
        raise to_http(e)
    return None
