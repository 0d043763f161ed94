import asyncio

import pytest
from pydantic import ValidationError

from jobdesk import paths
from jobdesk.approval import approve_budget
from jobdesk.errors import QuoteNotFoundError, TrackingNotFoundError
from jobdesk.payments import next_quote_status, register_payment, register_tracking_payment
from jobdesk.schemas import PaymentCreate

from conftest import TENANT, make_quote


def _pay(amount, method="cash", note=None):
    return PaymentCreate(amount=amount, method=method, date=1_700_000_000_000, note=note)


@pytest.mark.parametrize(
    "status,outstanding,expected",
    [
        ("approved", 600, "in_progress"),
        ("approved", 0, "completed"),
        ("in_progress", -10, "completed"),
        ("in_progress", 100, "in_progress"),
        ("completed", -50, "completed"),
        ("draft", 100, "draft"),
    ],
)
def test_next_quote_status(status, outstanding, expected):
    assert next_quote_status(status, outstanding) == expected


def test_amount_must_be_positive():
    with pytest.raises(ValidationError):
        PaymentCreate(amount=0, method="cash")
    with pytest.raises(ValidationError):
        PaymentCreate(amount=10, method="crypto")


@pytest.mark.anyio
async def test_payment_state_machine(store, seed, quotes_ref):
    await seed(paths.QUOTES, make_quote("q1", total=1000, status="approved"))

    await register_payment(store, TENANT, "q1", _pay(400))
    quote = await store.get(quotes_ref("q1"))
    assert (quote["status"], quote["outstanding_balance"]) == ("in_progress", 600)

    await register_payment(store, TENANT, "q1", _pay(600, "transfer"))
    quote = await store.get(quotes_ref("q1"))
    assert (quote["status"], quote["outstanding_balance"]) == ("completed", 0)

    await register_payment(store, TENANT, "q1", _pay(50, "check"))
    quote = await store.get(quotes_ref("q1"))
    assert (quote["status"], quote["outstanding_balance"]) == ("completed", -50)
    assert [p["amount"] for p in quote["payments"]] == [400, 600, 50]
    assert len({p["id"] for p in quote["payments"]}) == 3


@pytest.mark.anyio
@pytest.mark.parametrize("amounts", [[100.1, 200.2, 0.3], [0.3, 200.2, 100.1], [200.2, 0.3, 100.1]])
async def test_balance_does_not_depend_on_order(store, seed, quotes_ref, amounts):
    await seed(paths.QUOTES, make_quote("q1", total=500, status="approved"))
    for amount in amounts:
        await register_payment(store, TENANT, "q1", _pay(amount))
    quote = await store.get(quotes_ref("q1"))
    assert quote["outstanding_balance"] == 199.4
    assert quote["status"] == "in_progress"


@pytest.mark.anyio
async def test_payment_on_draft_keeps_status(store, seed, quotes_ref):
    await seed(paths.QUOTES, make_quote("q1", total=300, status="draft"))
    payment = await register_payment(store, TENANT, "q1", _pay(100, note="anticipo"))
    quote = await store.get(quotes_ref("q1"))
    assert quote["status"] == "draft"
    assert quote["outstanding_balance"] == 200
    assert quote["payments"] == [payment.model_dump(exclude_none=True)]


@pytest.mark.anyio
async def test_payment_on_missing_quote(store):
    with pytest.raises(QuoteNotFoundError):
        await register_payment(store, TENANT, "nope", _pay(10))


@pytest.mark.anyio
async def test_tracking_ledger_is_independent(store, seed, quotes_ref):
    await seed(paths.QUOTES, make_quote("q1", total=1000))
    tracking_id = await approve_budget(store, TENANT, "q1")

    await register_tracking_payment(store, TENANT, tracking_id, _pay(250))

    tracking = await store.get(store.doc(TENANT, paths.TRACKINGS, tracking_id))
    assert tracking["outstanding_balance"] == 750
    assert tracking["status"] == "pending_start"
    assert len(tracking["payments"]) == 1
    quote = await store.get(quotes_ref("q1"))
    assert quote["outstanding_balance"] == 1000
    assert quote.get("payments", []) == []

    with pytest.raises(TrackingNotFoundError):
        await register_tracking_payment(store, TENANT, "trk_missing", _pay(1))


@pytest.mark.anyio
async def test_concurrent_payments_are_all_recorded(store, seed, quotes_ref):
    await seed(paths.QUOTES, make_quote("q1", total=1000, status="approved"))

    results = await asyncio.gather(*(register_payment(store, TENANT, "q1", _pay(10)) for _ in range(5)))

    quote = await store.get(quotes_ref("q1"))
    assert len({p.id for p in results}) == 5
    assert sorted(p["id"] for p in quote["payments"]) == sorted(p.id for p in results)
    assert quote["outstanding_balance"] == 950
    assert quote["status"] == "in_progress"
