"""Expiration sweep: drop expired lots and adjust cached totals."""

from datetime import date
from typing import Iterable

from .models import Item


def sweep_item(item: Item, today: date) -> tuple[Item, bool]:
    """Remove the expired lots of a single item.

    Returns:
        Tuple of (item, changed). The input item is returned as-is when none
        of its lots are expired.
    """
    expired = [lot for lot in item.lots if lot.is_expired(today)]
    if not expired:
        return item, False

    updated = item.model_copy(deep=True)
    updated.lots = [lot for lot in updated.lots if not lot.is_expired(today)]
    updated.quantity -= sum(lot.available for lot in expired)
    return updated, True


def sweep(items: Iterable[Item], today: date) -> tuple[list[Item], list[int]]:
    """Sweep expired lots from every item.

    Args:
        items: Items as loaded from the store
        today: Current calendar date

    Returns:
        Tuple of (all items after the sweep in input order, ids of the items
        that changed and need to be persisted)
    """
    result: list[Item] = []
    changed_ids: list[int] = []
    for item in items:
        swept, changed = sweep_item(item, today)
        result.append(swept)
        if changed and swept.id is not None:
            changed_ids.append(swept.id)
    return result, changed_ids
