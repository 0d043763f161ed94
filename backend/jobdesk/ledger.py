"""
Expense and manual income/expense ledgers.

Both live as flat collections of dated entries (``expenses`` and
``manual_transactions``). Entries are created, listed newest first and
hard-deleted; month queries use UTC calendar months.
"""
from datetime import datetime, timezone
from typing import Type

from pydantic import BaseModel

from jobdesk import paths
from jobdesk.errors import NotFoundError
from jobdesk.ids import new_id, now_ms
from jobdesk.store import DocumentStore, Transaction, validate_tenant_id

ID_PREFIXES = {paths.EXPENSES: "exp", paths.TRANSACTIONS: "txn"}


def month_bounds(year: int, month: int) -> tuple[int, int]:
    """[start, end) of a calendar month in epoch ms, month is 1-12."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime(year + month // 12, month % 12 + 1, 1, tzinfo=timezone.utc)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000)


def in_month(ts: int, year: int, month: int) -> bool:
    start, end = month_bounds(year, month)
    return start <= ts < end


async def add_entry(store: DocumentStore, tenant_id: str, collection: str, entry: BaseModel) -> dict:
    validate_tenant_id(tenant_id)
    now = now_ms()
    data = {"id": new_id(ID_PREFIXES.get(collection, "entry")), **entry.model_dump(), "created_at": now, "updated_at": now}

    async def _add(tx: Transaction) -> dict:
        tx.write(store.doc(tenant_id, collection, data["id"]), data)
        return data

    return await store.transactionally(_add)


async def list_recent(store: DocumentStore, tenant_id: str, collection: str, limit: int = 50) -> list[dict]:
    docs = await store.list_docs(tenant_id, collection)
    docs.sort(key=lambda d: d.get("date") or 0, reverse=True)
    return docs[:limit]


async def list_month(store: DocumentStore, tenant_id: str, collection: str, year: int, month: int) -> list[dict]:
    start, end = month_bounds(year, month)
    docs = [d for d in await store.list_docs(tenant_id, collection) if start <= (d.get("date") or 0) < end]
    docs.sort(key=lambda d: d["date"], reverse=True)
    return docs


async def delete_entry(
    store: DocumentStore, tenant_id: str, collection: str, entry_id: str, missing: Type[NotFoundError]
) -> None:
    ref = store.doc(tenant_id, collection, entry_id)

    async def _delete(tx: Transaction) -> None:
        if await tx.read(ref) is None:
            raise missing(entry_id)
        tx.delete(ref)

    await store.transactionally(_delete)
