import asyncio

import pytest

from jobdesk import paths
from jobdesk.approval import approve_budget
from jobdesk.errors import AlreadyApprovedError, InvalidTenantError, MaterialNotFoundError, QuoteNotFoundError

from conftest import TENANT, make_material, make_quote


@pytest.mark.anyio
async def test_end_to_end_approval(store, seed, quotes_ref):
    await seed(paths.QUOTES, make_quote("q1"))

    tracking_id = await approve_budget(store, TENANT, "q1")

    quote = await store.get(quotes_ref("q1"))
    assert quote["status"] == "approved"
    assert quote["tracking_id"] == tracking_id
    assert quote["approved_at"] > 0
    assert quote["outstanding_balance"] == 5000
    assert quote["client_id"] == "client_juanxcom"

    client = await store.get(store.doc(TENANT, paths.CLIENTS, "client_juanxcom"))
    assert client["active_tracking_id"] == tracking_id
    assert client["last_quote_id"] == "q1"
    assert client["last_quote_number"] == "Q-2026-0001"
    assert client["name"] == "Juan Perez"
    assert client["created_at"] > 0

    tracking = await store.get(store.doc(TENANT, paths.TRACKINGS, tracking_id))
    assert tracking["quote_id"] == "q1"
    assert tracking["status"] == "pending_start"
    assert tracking["outstanding_balance"] == 5000
    assert tracking["client_snapshot"] == {"name": "Juan Perez", "email": "juan@x.com"}
    assert [t["text"] for t in tracking["tasks"]] == ["Cableado (10 m)"]
    assert tracking["tasks"][0]["completed"] is False
    assert tracking.get("payments", []) == []
    assert tracking.get("daily_logs", []) == []


@pytest.mark.anyio
async def test_second_approval_is_rejected(store, seed):
    await seed(paths.QUOTES, make_quote("q1"))
    await approve_budget(store, TENANT, "q1")

    with pytest.raises(AlreadyApprovedError):
        await approve_budget(store, TENANT, "q1")
    assert len(await store.list_docs(TENANT, paths.TRACKINGS)) == 1


@pytest.mark.anyio
async def test_missing_or_deleted_quote(store, seed):
    with pytest.raises(QuoteNotFoundError):
        await approve_budget(store, TENANT, "nope")

    await seed(paths.QUOTES, make_quote("gone", deleted_at=1))
    with pytest.raises(QuoteNotFoundError):
        await approve_budget(store, TENANT, "gone")


@pytest.mark.anyio
async def test_tenant_is_validated(store):
    with pytest.raises(InvalidTenantError):
        await approve_budget(store, "", "q1")


@pytest.mark.anyio
async def test_stock_is_reserved_with_movements(store, seed):
    await seed(paths.MATERIALS, make_material("m_cable", committed=2))
    items = [
        {"id": "i1", "kind": "material", "description": "Cable", "quantity": 3, "unit": "m",
         "unit_price": 1, "total": 3, "material_reference_id": "m_cable"},
        {"id": "i2", "kind": "material", "description": "Cable extra", "quantity": 4, "unit": "m",
         "unit_price": 1, "total": 4, "material_reference_id": "m_cable"},
        {"id": "i3", "kind": "labor", "description": "Instalacion", "quantity": 1,
         "unit_price": 100, "total": 100, "material_reference_id": "ignored_for_labor"},
        {"id": "i4", "kind": "material", "description": "Cinta", "quantity": 1,
         "unit_price": 5, "total": 5},
    ]
    await seed(paths.QUOTES, make_quote("q1", total=112, items=items, number="Q-2026-0007"))

    await approve_budget(store, TENANT, "q1")

    material = await store.get(store.doc(TENANT, paths.MATERIALS, "m_cable"))
    assert material["committed_stock"] == 9
    assert material["stock_on_hand"] == 100

    movements = await store.list_docs(TENANT, paths.STOCK_MOVEMENTS)
    assert sorted(m["quantity"] for m in movements) == [3, 4]
    assert all(m["type"] == "outflow" and m["material_id"] == "m_cable" for m in movements)
    assert all("Q-2026-0007" in m["reference"] for m in movements)


@pytest.mark.anyio
async def test_failed_approval_leaves_no_trace(store, seed, quotes_ref):
    await seed(paths.MATERIALS, make_material("m_ok", committed=1))
    items = [
        {"id": "i1", "kind": "material", "description": "Cable", "quantity": 5,
         "unit_price": 1, "total": 5, "material_reference_id": "m_ok"},
        {"id": "i2", "kind": "material", "description": "Caja", "quantity": 2,
         "unit_price": 1, "total": 2, "material_reference_id": "m_deleted"},
    ]
    await seed(paths.QUOTES, make_quote("q1", total=7, items=items))
    before = await store.get(quotes_ref("q1"))

    with pytest.raises(MaterialNotFoundError):
        await approve_budget(store, TENANT, "q1")

    assert await store.get(quotes_ref("q1")) == before
    assert await store.list_docs(TENANT, paths.CLIENTS) == []
    assert await store.list_docs(TENANT, paths.TRACKINGS) == []
    assert await store.list_docs(TENANT, paths.STOCK_MOVEMENTS) == []
    assert (await store.get(store.doc(TENANT, paths.MATERIALS, "m_ok")))["committed_stock"] == 1


@pytest.mark.anyio
async def test_same_client_converges_to_one_record(store, seed):
    await seed(paths.QUOTES, make_quote(
        "q1", number="Q-2026-0001",
        snapshot={"name": "Juan Perez", "email": "Juan@X.com", "phone": "1111111"},
    ))
    await seed(paths.QUOTES, make_quote(
        "q2", number="Q-2026-0002",
        snapshot={"name": "Juan P.", "email": " juan@x.com ", "phone": "2222222"},
    ))

    await approve_budget(store, TENANT, "q1")
    second_tracking = await approve_budget(store, TENANT, "q2")

    clients = await store.list_docs(TENANT, paths.CLIENTS)
    assert len(clients) == 1
    (client,) = clients
    assert client["last_quote_id"] == "q2"
    assert client["last_quote_number"] == "Q-2026-0002"
    assert client["active_tracking_id"] == second_tracking
    assert client["phone"] == "2222222"
    assert client["name"] == "Juan P."
    assert len(await store.list_docs(TENANT, paths.TRACKINGS)) == 2


@pytest.mark.anyio
async def test_existing_client_keeps_unrelated_fields(store, seed):
    await seed(paths.CLIENTS, {
        "id": "client_juanxcom", "name": "Juan", "email": "juan@x.com",
        "phone": "1234567", "frequent": True, "created_at": 42,
    })
    await seed(paths.QUOTES, make_quote("q1"))

    await approve_budget(store, TENANT, "q1")

    client = await store.get(store.doc(TENANT, paths.CLIENTS, "client_juanxcom"))
    assert client["frequent"] is True
    assert client["created_at"] == 42
    # absent snapshot fields do not erase stored ones
    assert client["phone"] == "1234567"
    assert client["name"] == "Juan Perez"


@pytest.mark.anyio
async def test_tracking_copies_every_item_and_material(store, seed):
    items = [
        {"id": f"i{n}", "kind": "labor", "description": f"Tarea {n}", "quantity": n,
         "unit": "u", "unit_price": 10, "total": 10 * n}
        for n in range(1, 4)
    ]
    materials = [
        {"id": "qm1", "name": "Cable", "quantity": 50, "unit": "m", "unit_price": 1},
        {"id": "qm2", "name": "Tablero", "quantity": 1, "unit_price": 200},
    ]
    await seed(paths.QUOTES, make_quote("q1", total=260, items=items, materials=materials))

    tracking_id = await approve_budget(store, TENANT, "q1")
    tracking = await store.get(store.doc(TENANT, paths.TRACKINGS, tracking_id))

    assert [t["text"] for t in tracking["tasks"]] == ["Tarea 1 (1 u)", "Tarea 2 (2 u)", "Tarea 3 (3 u)"]
    assert [t["related_item_id"] for t in tracking["tasks"]] == ["i1", "i2", "i3"]
    assert [(m["name"], m["status"], m["original_material_id"]) for m in tracking["materials"]] == [
        ("Cable", "planned", "qm1"),
        ("Tablero", "planned", "qm2"),
    ]


@pytest.mark.anyio
async def test_concurrent_approvals_for_same_client(store, seed):
    await seed(paths.QUOTES, make_quote("q1", number="Q-2026-0001"))
    await seed(paths.QUOTES, make_quote("q2", number="Q-2026-0002"))

    tracking_ids = await asyncio.gather(
        approve_budget(store, TENANT, "q1"),
        approve_budget(store, TENANT, "q2"),
    )

    (client,) = await store.list_docs(TENANT, paths.CLIENTS)
    assert client["id"] == "client_juanxcom"
    assert client["active_tracking_id"] in tracking_ids
    assert {t["id"] for t in await store.list_docs(TENANT, paths.TRACKINGS)} == set(tracking_ids)
    for quote_id in ("q1", "q2"):
        quote = await store.get(store.doc(TENANT, paths.QUOTES, quote_id))
        assert quote["status"] == "approved"
        assert quote["client_id"] == "client_juanxcom"


@pytest.mark.anyio
async def test_approval_revives_soft_deleted_client(store, seed):
    await seed(paths.CLIENTS, {
        "id": "client_juanxcom", "name": "Juan", "email": "juan@x.com",
        "created_at": 42, "deleted_at": 99,
    })
    await seed(paths.QUOTES, make_quote("q1"))

    tracking_id = await approve_budget(store, TENANT, "q1")

    client = await store.get(store.doc(TENANT, paths.CLIENTS, "client_juanxcom"))
    assert "deleted_at" not in client
    assert client["active_tracking_id"] == tracking_id
    assert client["created_at"] == 42
