from __future__ import annotations

from datetime import datetime

from prodify.db_constants import STORE_ITEMS, StoreItem
from prodify.errors import ValidationError
from prodify.events import ItemPurchased
from prodify.processor import EventProcessor
from prodify.rewards import AppliedDelta


def list_store_items() -> list[StoreItem]:
    return list(STORE_ITEMS)


def resolve_item(identifier: str) -> StoreItem | None:
    key = (identifier or "").strip().lower()
    for item in STORE_ITEMS:
        if item.id == key or item.name.lower() == key:
            return item
    return None


def purchase_item(processor: EventProcessor, user_id: str, identifier: str, now: datetime) -> AppliedDelta:
    item = resolve_item(identifier)
    if item is None:
        raise ValidationError(f"Unknown store item: {identifier}")
    return processor.process(user_id, ItemPurchased(item_id=item.id, price=item.price), now)
