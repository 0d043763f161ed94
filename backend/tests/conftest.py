import pytest
from databases import Database

from jobdesk import paths
from jobdesk.db import create_tables
from jobdesk.ids import now_ms
from jobdesk.store import DocumentStore

TENANT = "tenant_test"


# Force AnyIO to use asyncio only (no trio)
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'jobdesk_test.db'}"


@pytest.fixture
async def store(db_url):
    create_tables(db_url)
    database = Database(db_url)
    await database.connect()
    try:
        yield DocumentStore(database)
    finally:
        await database.disconnect()


async def put(store, collection, doc, tenant_id=TENANT):
    async def _write(tx):
        tx.write(store.doc(tenant_id, collection, doc["id"]), doc)

    await store.transactionally(_write)
    return doc


def make_quote(quote_id="q1", *, total=5000.0, status="pending", items=None, materials=None,
               snapshot=None, number="Q-2026-0001", **extra):
    doc = {
        "id": quote_id,
        "number": number,
        "title": "Instalacion electrica",
        "client_snapshot": snapshot or {"name": "Juan Perez", "email": "juan@x.com"},
        "items": items if items is not None else [
            {"id": "item_1", "kind": "labor", "description": "Cableado", "quantity": 10,
             "unit": "m", "unit_price": 500, "total": 5000},
        ],
        "materials": materials or [],
        "subtotal": total,
        "discount": 0,
        "total": total,
        "status": status,
        "payments": [],
        "outstanding_balance": total,
        "created_at": now_ms(),
        "updated_at": now_ms(),
    }
    doc.update(extra)
    return doc


def make_material(material_id, *, committed=0.0, on_hand=100.0, name="Cable 2.5mm"):
    return {
        "id": material_id,
        "name": name,
        "unit": "m",
        "unit_price": 1.5,
        "stock_on_hand": on_hand,
        "min_stock": 0,
        "committed_stock": committed,
    }


@pytest.fixture
def seed(store):
    async def _seed(collection, doc, tenant_id=TENANT):
        return await put(store, collection, doc, tenant_id)

    return _seed


@pytest.fixture
def quotes_ref(store):
    def _ref(quote_id, tenant_id=TENANT):
        return store.doc(tenant_id, paths.QUOTES, quote_id)

    return _ref
