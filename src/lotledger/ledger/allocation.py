"""FIFO consumption allocation.

Consumption always draws from exactly one lot. The automatic allocator picks
the non-expired lot with the earliest expiration date and requires that lot
alone to cover the request; it never splits a request across lots, so a
request can fail with InsufficientLotStock while the item's total would
cover it.
"""

from datetime import date, datetime
from typing import Any, Optional

from ..errors import InsufficientLotStock, InsufficientStock, NoValidStock, NotFound
from ..identity import StaffIdentity, require_staff
from ..utils import parse_quantity
from .models import ConsumptionRecord, Item, Lot


def candidate_lots(item: Item, today: date) -> list[Lot]:
    """Lots that can be consumed, earliest expiration first.

    A lot expiring today is not a candidate. Lots sharing an expiration date
    keep their restock order.
    """
    valid = [lot for lot in item.lots if lot.expiration_date > today]
    return sorted(valid, key=lambda lot: lot.expiration_date)


def _validate_request(item: Item, requested: Any) -> int:
    requested = parse_quantity(requested)
    if requested <= 0:
        raise InsufficientStock("Please enter a valid consumption amount")
    if requested > item.quantity:
        raise InsufficientStock(
            f"Consumption amount ({requested}) cannot exceed current quantity ({item.quantity})"
        )
    return requested


def _draw(item: Item, lot_id: str, requested: int, staff: StaffIdentity, now: datetime) -> Item:
    updated = item.model_copy(deep=True)
    lot = updated.find_lot(lot_id)
    if lot is None:
        raise NotFound("Selected batch not found")

    lot.quantity -= requested
    if lot.quantity <= 0:
        updated.lots = [entry for entry in updated.lots if entry.id != lot_id]
    updated.quantity -= requested
    updated.consumptions.append(
        ConsumptionRecord(
            consumed_at=now,
            quantity=requested,
            staff_name=staff.name,
            staff_email=staff.email,
            source_lot_id=lot.id,
            source_lot_expiration_date=lot.expiration_date,
        )
    )
    return updated


def consume(
    item: Item,
    requested: Any,
    staff: Optional[StaffIdentity],
    today: date,
    now: datetime,
) -> Item:
    """Consume from the oldest-expiring valid lot.

    Args:
        item: Current item state
        requested: Amount to consume
        staff: Staff member recording the consumption
        today: Current calendar date
        now: Timestamp stored on the consumption record

    Returns:
        A new Item with the lot reduced (or removed at zero), the cached total
        decreased, and one consumption record appended.

    Raises:
        IdentityRequired: No staff member signed in.
        ValidationError: ``requested`` is not a whole number.
        InsufficientStock: ``requested`` is not positive or exceeds the total.
        NoValidStock: The item has no non-expired lot.
        InsufficientLotStock: The oldest-expiring lot alone is too small.
    """
    staff = require_staff(staff)
    requested = _validate_request(item, requested)

    candidates = candidate_lots(item, today)
    if not candidates:
        raise NoValidStock()

    oldest = candidates[0]
    if oldest.available < requested:
        raise InsufficientLotStock(
            f"Only {oldest.available} available in the batch expiring on "
            f"{oldest.expiration_date.isoformat()}"
        )

    return _draw(item, oldest.id, requested, staff, now)


def consume_from_lot(
    item: Item,
    lot_id: str,
    requested: Any,
    staff: Optional[StaffIdentity],
    today: date,
    now: datetime,
) -> Item:
    """Consume from a lot chosen by the caller.

    Same checks as :func:`consume`, applied to the named lot instead of the
    oldest one. Raises NotFound when the lot does not exist and NoValidStock
    when it is expired or expires today.
    """
    staff = require_staff(staff)
    requested = _validate_request(item, requested)

    lot = item.find_lot(lot_id)
    if lot is None:
        raise NotFound("Selected batch not found")
    if lot.expiration_date <= today:
        raise NoValidStock("Cannot consume from expired batch. Please select a valid batch.")
    if lot.available < requested:
        raise InsufficientLotStock(
            f"Consumption amount cannot be greater than batch quantity ({lot.available})"
        )

    return _draw(item, lot.id, requested, staff, now)
