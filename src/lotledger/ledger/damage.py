"""Damage reports against a specific lot."""

from typing import Any

from ..errors import ExceedsAvailable, NotFound
from ..utils import parse_quantity
from .models import Item


def record_damage(item: Item, lot_id: str, damage_quantity: Any) -> Item:
    """Mark part of a lot as damaged.

    Damaged stock stays on the lot record but no longer counts towards the
    item's total. The total is recomputed from all lots rather than
    decremented.

    Raises:
        ValidationError: ``damage_quantity`` is not a whole number.
        NotFound: The item has no lot with ``lot_id``.
        ExceedsAvailable: The amount is not positive or is larger than the
            lot's remaining undamaged quantity.
    """
    damage_quantity = parse_quantity(damage_quantity, "damages")

    lot = item.find_lot(lot_id)
    if lot is None:
        raise NotFound(f"No batch found with id {lot_id}")

    available = lot.quantity - lot.damages
    if damage_quantity <= 0:
        raise ExceedsAvailable("Please enter a valid damage quantity")
    if damage_quantity > available:
        raise ExceedsAvailable(f"Cannot report more damages than available quantity ({available})")

    updated = item.model_copy(deep=True)
    target = updated.find_lot(lot_id)
    target.damages += damage_quantity
    updated.recompute_quantity()
    return updated
