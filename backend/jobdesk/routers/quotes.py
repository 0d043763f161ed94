from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime

import structlog

from jobdesk import paths, schemas, trash
from jobdesk.approval import approve_budget
from jobdesk.deps import get_current_user, get_store, to_http
from jobdesk.errors import JobDeskError, QuoteNotFoundError
from jobdesk.ids import new_id, now_ms
from jobdesk.payments import register_payment
from jobdesk.store import DocumentStore, Transaction
from jobdesk.totals import price_items, quote_totals, round2

router = APIRouter(prefix="/quotes", tags=["quotes"])
logger = structlog.get_logger(__name__)

# once approved, items belong to the tracking record
LOCKED_STATES = ("approved", "in_progress", "completed")


def _make_number(seq: int) -> str:
    y = datetime.utcnow().year
    return f"Q-{y}-{seq:04d}"


async def _live_quote(tx: Transaction, ref) -> schemas.Quote:
    raw = await tx.read(ref)
    if raw is None or raw.get("deleted_at"):
        raise QuoteNotFoundError(ref.doc_id)
    return schemas.Quote.model_validate(raw)


@router.post("/", response_model=schemas.Quote)
async def create_quote(
    payload: schemas.QuoteCreate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    tenant_id = user["tenant_id"]
    counter_ref = store.doc(tenant_id, paths.COUNTERS, paths.QUOTES)

    async def _create(tx: Transaction) -> schemas.Quote:
        # why: readable sequential number per tenant
        counter = await tx.read(counter_ref) or {}
        seq = int(counter.get("value", 0)) + 1
        tx.write(counter_ref, {"value": seq})

        now = now_ms()
        items = price_items(payload.items)
        subtotal, total = quote_totals(items, payload.discount)
        quote = schemas.Quote(
            id=new_id("quote"),
            number=_make_number(seq),
            title=payload.title,
            client_id=payload.client_id,
            client_snapshot=payload.client_snapshot,
            items=items,
            materials=payload.materials,
            subtotal=subtotal,
            discount=payload.discount,
            total=total,
            status=payload.status,
            validity_days=payload.validity_days,
            notes=payload.notes,
            payment_terms=payload.payment_terms,
            outstanding_balance=total,
            created_at=now,
            updated_at=now,
        )
        tx.write(store.doc(tenant_id, paths.QUOTES, quote.id), quote.model_dump())
        return quote

    try:
        return await store.transactionally(_create)
    except JobDeskError as e:
        logger.warning("quote_create_failed", tenant_id=tenant_id, error=str(e))
        raise to_http(e)


@router.get("/", response_model=list[schemas.Quote])
async def list_quotes(
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    docs = await store.list_docs(user["tenant_id"], paths.QUOTES)
    rows = [
        d for d in docs
        if not d.get("deleted_at") and (not status or d.get("status") == status)
    ]
    rows.sort(key=lambda d: d.get("created_at") or 0, reverse=True)
    return rows[offset:offset + limit]


@router.get("/deleted", response_model=list[schemas.Quote])
async def list_deleted_quotes(user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    return await trash.list_deleted(store, user["tenant_id"], paths.QUOTES)


@router.get("/{quote_id}", response_model=schemas.Quote)
async def get_quote(quote_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    raw = await store.get(store.doc(user["tenant_id"], paths.QUOTES, quote_id))
    if not raw or raw.get("deleted_at"):
        raise HTTPException(status_code=404, detail="Quote not found")
    return raw


@router.patch("/{quote_id}", response_model=schemas.Quote)
async def update_quote(
    quote_id: str,
    payload: schemas.QuoteUpdate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    ref = store.doc(user["tenant_id"], paths.QUOTES, quote_id)

    async def _update(tx: Transaction) -> schemas.Quote:
        quote = await _live_quote(tx, ref)
        if quote.status in LOCKED_STATES:
            raise HTTPException(status_code=409, detail=f"Quote is {quote.status}, it can no longer be edited")
        data = quote.model_dump()
        data.update(payload.model_dump(exclude_unset=True, exclude_none=True))
        updated = schemas.Quote.model_validate(data)
        items = price_items(updated.items)
        subtotal, total = quote_totals(items, updated.discount)
        paid = sum(p.amount for p in updated.payments)
        updated = updated.model_copy(update={
            "items": items,
            "subtotal": subtotal,
            "total": total,
            "outstanding_balance": round2(total - paid),
            "updated_at": now_ms(),
        })
        tx.write(ref, updated.model_dump())
        return updated

    try:
        return await store.transactionally(_update)
    except JobDeskError as e:
        logger.warning("quote_update_failed", quote_id=quote_id, error=str(e))
        raise to_http(e)


@router.delete("/{quote_id}", status_code=204)
async def delete_quote(quote_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    try:
        await trash.soft_delete(store, store.doc(user["tenant_id"], paths.QUOTES, quote_id), QuoteNotFoundError)
    except JobDeskError as e:
        raise to_http(e)
    return None


@router.post("/{quote_id}/restore", response_model=schemas.Quote)
async def restore_quote(quote_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    ref = store.doc(user["tenant_id"], paths.QUOTES, quote_id)
    try:
        await trash.restore(store, ref, QuoteNotFoundError)
    except JobDeskError as e:
        raise to_http(e)
    return await store.get(ref)


@router.post("/{quote_id}/approve")
async def approve_quote(quote_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    try:
        tracking_id = await approve_budget(store, user["tenant_id"], quote_id)
    except JobDeskError as e:
        logger.warning("quote_approve_failed", quote_id=quote_id, error=str(e), error_type=type(e).__name__)
        raise to_http(e)
    logger.info("quote_approved", quote_id=quote_id, tracking_id=tracking_id)
    return {"quote_id": quote_id, "tracking_id": tracking_id}


@router.post("/{quote_id}/payments", response_model=schemas.Payment)
async def add_payment(
    quote_id: str,
    payload: schemas.PaymentCreate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    try:
        payment = await register_payment(store, user["tenant_id"], quote_id, payload)
    except JobDeskError as e:
        logger.warning("payment_register_failed", quote_id=quote_id, error=str(e), error_type=type(e).__name__)
        raise to_http(e)
    logger.info("payment_registered", quote_id=quote_id, payment_id=payment.id, amount=payment.amount)
    return payment


@router.get("/{quote_id}/payments", response_model=list[schemas.Payment])
async def list_payments(quote_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    raw = await store.get(store.doc(user["tenant_id"], paths.QUOTES, quote_id))
    if not raw or raw.get("deleted_at"):
        raise HTTPException(status_code=404, detail="Quote not found")
    return raw.get("payments", [])
