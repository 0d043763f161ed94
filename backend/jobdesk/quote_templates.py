"""Reusable text blocks for quotes (conditions, notes, payment terms...).

At most one template per type is the default; setting a new default clears
the flag on the others of that type in the same transaction.
"""
from jobdesk import paths
from jobdesk.errors import TemplateNotFoundError
from jobdesk.ids import new_id, now_ms
from jobdesk.schemas import TemplateCreate, TemplateUpdate
from jobdesk.store import DocumentStore, Transaction, validate_tenant_id


async def _clear_other_defaults(store: DocumentStore, tx: Transaction, tenant_id: str, type_: str, keep_id: str) -> None:
    for doc in await store.list_docs(tenant_id, paths.TEMPLATES):
        if doc["id"] == keep_id or doc.get("type") != type_:
            continue
        ref = store.doc(tenant_id, paths.TEMPLATES, doc["id"])
        current = await tx.read(ref)
        if current and current.get("is_default"):
            tx.update(ref, {"is_default": False, "updated_at": now_ms()})


async def list_templates(store: DocumentStore, tenant_id: str) -> list[dict]:
    docs = await store.list_docs(tenant_id, paths.TEMPLATES)
    return sorted(docs, key=lambda d: d.get("title", "").lower())


async def create_template(store: DocumentStore, tenant_id: str, payload: TemplateCreate) -> dict:
    validate_tenant_id(tenant_id)
    now = now_ms()
    data = {"id": new_id("tpl"), **payload.model_dump(), "created_at": now, "updated_at": now}

    async def _create(tx: Transaction) -> dict:
        if payload.is_default:
            await _clear_other_defaults(store, tx, tenant_id, payload.type, data["id"])
        tx.write(store.doc(tenant_id, paths.TEMPLATES, data["id"]), data)
        return data

    return await store.transactionally(_create)


async def update_template(store: DocumentStore, tenant_id: str, template_id: str, payload: TemplateUpdate) -> dict:
    ref = store.doc(tenant_id, paths.TEMPLATES, template_id)

    async def _update(tx: Transaction) -> dict:
        if await tx.read(ref) is None:
            raise TemplateNotFoundError(template_id)
        tx.update(ref, {**payload.model_dump(exclude_unset=True), "updated_at": now_ms()})
        return await tx.read(ref)

    return await store.transactionally(_update)


async def delete_template(store: DocumentStore, tenant_id: str, template_id: str) -> None:
    ref = store.doc(tenant_id, paths.TEMPLATES, template_id)

    async def _delete(tx: Transaction) -> None:
        if await tx.read(ref) is None:
            raise TemplateNotFoundError(template_id)
        tx.delete(ref)

    await store.transactionally(_delete)


async def set_default(store: DocumentStore, tenant_id: str, template_id: str) -> dict:
    ref = store.doc(tenant_id, paths.TEMPLATES, template_id)

    async def _set(tx: Transaction) -> dict:
        template = await tx.read(ref)
        if template is None:
            raise TemplateNotFoundError(template_id)
        await _clear_other_defaults(store, tx, tenant_id, template["type"], template_id)
        tx.update(ref, {"is_default": True, "updated_at": now_ms()})
        return await tx.read(ref)

    return await store.transactionally(_set)


async def default_content(store: DocumentStore, tenant_id: str, type_: str) -> str:
    for doc in await store.list_docs(tenant_id, paths.TEMPLATES):
        if doc.get("type") == type_ and doc.get("is_default"):
            return doc["content"]
    return ""
