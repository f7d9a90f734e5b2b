"""Lot creation."""

from datetime import date, datetime
from typing import Any, Optional, Union

from ..errors import ValidationError
from ..identity import StaffIdentity, require_staff
from ..utils import parse_expiration_date, parse_quantity
from .models import Item, Lot


def restock(
    item: Item,
    quantity: Any,
    expiration_date: Union[date, str, None],
    staff: Optional[StaffIdentity],
    today: date,
    now: datetime,
    damages: Any = 0,
) -> Item:
    """Add a new dated lot to an item.

    Args:
        item: Current item state
        quantity: Amount received
        expiration_date: Expiration date of the batch, today or later
        staff: Staff member recording the restock
        today: Current calendar date
        now: Timestamp stored on the lot
        damages: Amount already damaged on arrival

    Returns:
        A new Item with the lot appended and the cached total increased by
        the lot's available amount.
    """
    staff = require_staff(staff)

    quantity = parse_quantity(quantity)
    if quantity <= 0:
        raise ValidationError("Please enter a valid quantity")

    damages = parse_quantity(damages or 0, "damages")
    if damages < 0:
        raise ValidationError("Please enter a valid number for damages")
    if damages > quantity:
        raise ValidationError("Damages cannot exceed restock quantity")

    expires = parse_expiration_date(expiration_date, today)

    lot = Lot(
        restocked_at=now,
        quantity=quantity,
        received=quantity,
        expiration_date=expires,
        damages=damages,
        staff_name=staff.name,
        staff_email=staff.email,
    )

    updated = item.model_copy(deep=True)
    updated.lots.append(lot)
    updated.quantity += lot.available
    return updated
