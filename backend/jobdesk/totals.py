from decimal import Decimal, ROUND_FLOOR
from typing import Iterable

from jobdesk.schemas import QuoteItem

_CENT = Decimal("0.01")
_HALF_CENT = Decimal("0.005")


def round2(value: float) -> float:
    """Round to cents, halves towards +infinity (-0.005 -> 0.0, 0.125 -> 0.13)."""
    return float((Decimal(str(value)) + _HALF_CENT).quantize(_CENT, rounding=ROUND_FLOOR)) + 0.0


def price_items(items: Iterable[QuoteItem]) -> list[QuoteItem]:
    return [
        item.model_copy(update={"total": round2((item.quantity or 0) * item.unit_price)})
        for item in items
    ]


def quote_totals(items: Iterable[QuoteItem], discount: float) -> tuple[float, float]:
    """(subtotal, total) with total = subtotal - discount, floored at 0."""
    subtotal = round2(sum(item.total for item in items))
    total = round2(max(subtotal - (discount or 0), 0))
    return subtotal, total
