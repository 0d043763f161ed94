from jobdesk.schemas import QuoteItem
from jobdesk.totals import price_items, quote_totals, round2


def test_round2_half_up():
    assert round2(0.125) == 0.13
    assert round2(1.005) == 1.01
    assert round2(1000 - 400.1 - 0.2) == 599.7
    assert round2(-50) == -50


def test_quote_totals_apply_discount_and_clamp():
    items = price_items([
        QuoteItem(description="Cableado", quantity=10, unit="m", unit_price=12.345),
        QuoteItem(description="Mano de obra", quantity=1, unit_price=300),
    ])
    assert [i.total for i in items] == [123.45, 300]
    assert quote_totals(items, 23.45) == (423.45, 400)
    assert quote_totals(items, 1000) == (423.45, 0)


def test_item_without_quantity_totals_zero():
    (item,) = price_items([QuoteItem(description="Visita")])
    assert item.total == 0


def test_round2_negative_halves_go_up():
    assert round2(-0.005) == 0
    assert str(round2(-0.004)) == "0.0"
    assert round2(-1.235) == -1.23
    assert round2(-1.236) == -1.24
