"""
Budget approval: one atomic transition from quote to tracked job.

Inside a single store transaction the quote is re-read, the client record is
upserted under its derived key, inventory referenced by material items is
reserved (with a stock movement per reservation), a tracking record is
created, and the quote is marked approved. Any failure leaves nothing behind.
"""

from jobdesk import paths
from jobdesk.errors import AlreadyApprovedError, MaterialNotFoundError, QuoteNotFoundError
from jobdesk.identity import derive_client_id
from jobdesk.ids import new_id, now_ms
from jobdesk.schemas import Quote, StockMovement, Tracking
from jobdesk.snapshots import build_materials, build_tasks
from jobdesk.store import DELETE_FIELD, DocumentStore, Transaction, validate_tenant_id


def reservation_reference(quote_number: str) -> str:
    return f"Reservation for quote #{quote_number}"


async def approve_budget(store: DocumentStore, tenant_id: str, quote_id: str) -> str:
    """Approve ``quote_id`` and return the id of the tracking record created for it."""
    validate_tenant_id(tenant_id)
    quote_ref = store.doc(tenant_id, paths.QUOTES, quote_id)

    async def _approve(tx: Transaction) -> str:
        raw = await tx.read(quote_ref)
        if raw is None or raw.get("deleted_at"):
            raise QuoteNotFoundError(quote_id)
        quote = Quote.model_validate(raw)
        if quote.status == "approved":
            raise AlreadyApprovedError(quote_id)

        now = now_ms()
        tracking_id = new_id("trk")
        snap = quote.client_snapshot

        # client upsert, keyed by contact data
        client_id = derive_client_id(snap.email, snap.phone, snap.name)
        client_ref = store.doc(tenant_id, paths.CLIENTS, client_id)
        existing = await tx.read(client_ref)
        client_fields = {
            "name": snap.name,
            "email": snap.email,
            "phone": snap.phone,
            "address": snap.address,
            "tax_id": snap.tax_id,
            "last_quote_id": quote_id,
            "last_quote_number": quote.number,
            "active_tracking_id": tracking_id,
            "last_used_at": now,
            "updated_at": now,
        }
        if existing is None:
            tx.write(client_ref, {"id": client_id, **client_fields, "created_at": now})
        else:
            # an approval brings a soft-deleted client back
            tx.update(client_ref, {**client_fields, "deleted_at": DELETE_FIELD})

        # stock reservation
        for item in quote.items:
            if item.kind != "material" or not item.material_reference_id:
                continue
            material_ref = store.doc(tenant_id, paths.MATERIALS, item.material_reference_id)
            material = await tx.read(material_ref)
            if material is None:
                raise MaterialNotFoundError(item.material_reference_id)
            quantity = item.quantity or 0
            tx.update(material_ref, {
                "committed_stock": (material.get("committed_stock") or 0) + quantity,
                "updated_at": now,
            })
            movement = StockMovement(
                id=new_id("mov"),
                material_id=item.material_reference_id,
                type="outflow",
                quantity=quantity,
                reference=reservation_reference(quote.number),
                date=now,
                created_at=now,
            )
            tx.write(store.doc(tenant_id, paths.STOCK_MOVEMENTS, movement.id), movement.model_dump())

        tracking = Tracking(
            id=tracking_id,
            quote_id=quote_id,
            quote_number=quote.number,
            title=quote.title,
            client_id=client_id,
            client_snapshot=snap,
            tasks=build_tasks(quote.items),
            materials=build_materials(quote.materials),
            total=quote.total,
            outstanding_balance=quote.total,
            status="pending_start",
            created_at=now,
            updated_at=now,
        )
        tx.write(store.doc(tenant_id, paths.TRACKINGS, tracking_id), tracking.model_dump())

        tx.update(quote_ref, {
            "status": "approved",
            "approved_at": now,
            "tracking_id": tracking_id,
            "client_id": client_id,
            "outstanding_balance": quote.total,
            "updated_at": now,
        })
        return tracking_id

    return await store.transactionally(_approve)
