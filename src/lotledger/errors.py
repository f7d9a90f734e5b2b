"""Typed failures raised by ledger operations.

Every failure carries a stable ``code`` and a message that can be shown to
staff as-is. A failed operation leaves the item unchanged.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for all ledger failures."""

    code = "ledger_error"
    default_message = "Inventory operation failed"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(LedgerError):
    """Bad input shape: non-numeric quantity, malformed or past date."""

    code = "validation_error"
    default_message = "Invalid input"


class InsufficientStock(LedgerError):
    """Requested quantity is not positive or exceeds the item's total."""

    code = "insufficient_stock"
    default_message = "Consumption amount cannot exceed current quantity"


class InsufficientLotStock(LedgerError):
    """The selected lot alone cannot satisfy the request."""

    code = "insufficient_lot_stock"
    default_message = "Consumption amount cannot be greater than batch quantity"


class NoValidStock(LedgerError):
    """No non-expired lot is available to draw from."""

    code = "no_valid_stock"
    default_message = "No valid stock available for consumption"


class ExceedsAvailable(LedgerError):
    """Damage report larger than the lot's remaining headroom."""

    code = "exceeds_available"
    default_message = "Cannot report more damages than available quantity"


class NotFound(LedgerError):
    """Item, lot, or history entry does not exist."""

    code = "not_found"
    default_message = "Not found"


class IdentityRequired(LedgerError):
    """Mutation attempted without an authenticated staff member."""

    code = "identity_required"
    default_message = "You must be logged in to perform this action"


class PermissionDenied(LedgerError):
    """Operation reserved for a privileged role."""

    code = "permission_denied"
    default_message = "Only owners can perform this action"


class StoreError(LedgerError):
    """The document store could not complete the read or write."""

    code = "store_error"
    default_message = "Failed to update inventory in database"


class ConcurrentUpdate(StoreError):
    """The item changed between read and write; the operation is retried."""

    code = "concurrent_update"
    default_message = "Item was modified by another device, please retry"
