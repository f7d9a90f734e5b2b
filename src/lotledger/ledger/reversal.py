"""Undo of history entries and explicit lot deletion.

Both operations are reserved for privileged roles.
"""

from typing import Iterable, Optional, Union

from ..errors import NotFound, ValidationError
from ..identity import StaffIdentity, require_privileged
from .models import HistoryType, Item


def _history_type(value: Union[HistoryType, str]) -> HistoryType:
    try:
        return HistoryType(value)
    except ValueError:
        raise ValidationError(f"Unknown history type: {value!r}")


def reverse_history(
    item: Item,
    history_type: Union[HistoryType, str],
    index: int,
    staff: Optional[StaffIdentity],
    privileged_roles: Iterable[str],
) -> Item:
    """Undo a restock or consumption entry.

    A restock reversal removes the lot at ``index`` outright, discarding any
    damage recorded on it, and recomputes the total from what remains.

    A consumption reversal adds the consumed amount back to the total and
    drops the record. The stock is not returned to its source lot, which may
    have been drawn down, swept, or deleted since; it is tracked in
    ``unassigned_quantity`` until the next full recompute, which resets the
    total to the lot sum.

    Raises:
        IdentityRequired: No staff member signed in.
        PermissionDenied: Staff role is not privileged.
        ValidationError: Unknown history type.
        NotFound: ``index`` is out of range.
    """
    require_privileged(staff, privileged_roles)
    kind = _history_type(history_type)

    updated = item.model_copy(deep=True)
    if kind is HistoryType.RESTOCK:
        if not 0 <= index < len(updated.lots):
            raise NotFound(f"Restock entry {index} not found")
        del updated.lots[index]
        updated.recompute_quantity()
    else:
        if not 0 <= index < len(updated.consumptions):
            raise NotFound(f"Consumption entry {index} not found")
        record = updated.consumptions.pop(index)
        updated.quantity += record.quantity
        updated.unassigned_quantity += record.quantity
    return updated


def delete_lot(
    item: Item,
    lot_id: str,
    staff: Optional[StaffIdentity],
    privileged_roles: Iterable[str],
) -> Item:
    """Remove one lot (typically an expired batch) and its available stock.

    Raises:
        IdentityRequired: No staff member signed in.
        PermissionDenied: Staff role is not privileged.
        NotFound: The item has no lot with ``lot_id``.
    """
    require_privileged(staff, privileged_roles)

    lot = item.find_lot(lot_id)
    if lot is None:
        raise NotFound("Expired batch not found")

    updated = item.model_copy(deep=True)
    updated.lots = [entry for entry in updated.lots if entry.id != lot_id]
    updated.quantity -= lot.available
    return updated
