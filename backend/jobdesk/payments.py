from jobdesk import paths
from jobdesk.errors import QuoteNotFoundError, TrackingNotFoundError
from jobdesk.ids import new_id, now_ms
from jobdesk.schemas import Payment, PaymentCreate, Quote, Tracking
from jobdesk.store import DocumentStore, Transaction, validate_tenant_id
from jobdesk.totals import round2


def next_quote_status(status: str, outstanding: float) -> str:
    # settled -> completed; first partial payment on an approved quote starts the work
    if outstanding <= 0 and status != "completed":
        return "completed"
    if outstanding > 0 and status == "approved":
        return "in_progress"
    return status


def _append(ledger: list[Payment], payment_in: PaymentCreate, total: float) -> tuple[Payment, list[Payment], float]:
    payment = Payment(id=new_id("pay"), **payment_in.model_dump())
    ledger = [*ledger, payment]
    outstanding = round2(total - sum(p.amount for p in ledger))
    return payment, ledger, outstanding


async def register_payment(
    store: DocumentStore, tenant_id: str, quote_id: str, payment_in: PaymentCreate
) -> Payment:
    """Append a payment to the quote ledger and recompute balance and status.

    Over-payment is accepted and leaves a negative outstanding balance.
    """
    validate_tenant_id(tenant_id)
    quote_ref = store.doc(tenant_id, paths.QUOTES, quote_id)

    async def _register(tx: Transaction) -> Payment:
        raw = await tx.read(quote_ref)
        if raw is None or raw.get("deleted_at"):
            raise QuoteNotFoundError(quote_id)
        quote = Quote.model_validate(raw)
        payment, ledger, outstanding = _append(quote.payments, payment_in, quote.total)
        tx.update(quote_ref, {
            "payments": [p.model_dump() for p in ledger],
            "outstanding_balance": outstanding,
            "status": next_quote_status(quote.status, outstanding),
            "updated_at": now_ms(),
        })
        return payment

    return await store.transactionally(_register)


async def register_tracking_payment(
    store: DocumentStore, tenant_id: str, tracking_id: str, payment_in: PaymentCreate
) -> Payment:
    """Same ledger append on a tracking record. Status is left alone."""
    validate_tenant_id(tenant_id)
    tracking_ref = store.doc(tenant_id, paths.TRACKINGS, tracking_id)

    async def _register(tx: Transaction) -> Payment:
        raw = await tx.read(tracking_ref)
        if raw is None or raw.get("deleted_at"):
            raise TrackingNotFoundError(tracking_id)
        tracking = Tracking.model_validate(raw)
        payment, ledger, outstanding = _append(tracking.payments, payment_in, tracking.total)
        tx.update(tracking_ref, {
            "payments": [p.model_dump() for p in ledger],
            "outstanding_balance": outstanding,
            "updated_at": now_ms(),
        })
        return payment

    return await store.transactionally(_register)
