from typing import Iterable, Optional

from jobdesk.ids import new_id, now_ms
from jobdesk.schemas import QuoteItem, QuoteMaterial, TrackingMaterial, TrackingTask


def _fmt_quantity(quantity: float) -> str:
    if float(quantity).is_integer():
        return str(int(quantity))
    return str(quantity)


def task_text(item: QuoteItem) -> str:
    if item.quantity is None:
        return item.description
    amount = " ".join(p for p in (_fmt_quantity(item.quantity), item.unit or "") if p)
    return f"{item.description} ({amount})"


def build_tasks(items: Optional[Iterable[QuoteItem]]) -> list[TrackingTask]:
    created = now_ms()
    return [
        TrackingTask(
            id=new_id("task"),
            text=task_text(item),
            completed=False,
            related_item_id=item.id,
            created_at=created,
        )
        for item in items or ()
    ]


def build_materials(materials: Optional[Iterable[QuoteMaterial]]) -> list[TrackingMaterial]:
    return [
        TrackingMaterial(
            id=new_id("mat"),
            name=m.name,
            quantity=m.quantity,
            unit=m.unit,
            status="planned",
            original_material_id=m.id,
        )
        for m in materials or ()
    ]
