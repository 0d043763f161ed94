from typing import Type

from jobdesk.errors import NotFoundError
from jobdesk.ids import now_ms
from jobdesk.store import DELETE_FIELD, DocRef, DocumentStore, Transaction


async def soft_delete(store: DocumentStore, ref: DocRef, missing: Type[NotFoundError]) -> None:
    async def _delete(tx: Transaction) -> None:
        if await tx.read(ref) is None:
            raise missing(ref.doc_id)
        now = now_ms()
        tx.update(ref, {"deleted_at": now, "updated_at": now})

    await store.transactionally(_delete)


async def restore(store: DocumentStore, ref: DocRef, missing: Type[NotFoundError]) -> None:
    async def _restore(tx: Transaction) -> None:
        if await tx.read(ref) is None:
            raise missing(ref.doc_id)
        tx.update(ref, {"deleted_at": DELETE_FIELD, "updated_at": now_ms()})

    await store.transactionally(_restore)


async def list_deleted(store: DocumentStore, tenant_id: str, collection: str, limit: int = 50) -> list[dict]:
    docs = [d for d in await store.list_docs(tenant_id, collection) if d.get("deleted_at")]
    docs.sort(key=lambda d: d["deleted_at"], reverse=True)
    return docs[:limit]
