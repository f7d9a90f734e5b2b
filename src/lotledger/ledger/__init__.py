"""Pure ledger operations on in-memory items."""

from .allocation import candidate_lots, consume, consume_from_lot
from .damage import record_damage
from .models import ConsumptionRecord, HistoryType, Item, Lot, new_lot_id
from .reports import expiring_lots, low_stock, movement_report
from .restock import restock
from .reversal import delete_lot, reverse_history
from .sweep import sweep, sweep_item

__all__ = [
    # Models
    "ConsumptionRecord",
    "HistoryType",
    "Item",
    "Lot",
    "new_lot_id",
    # Operations
    "restock",
    "consume",
    "consume_from_lot",
    "candidate_lots",
    "record_damage",
    "reverse_history",
    "delete_lot",
    "sweep",
    "sweep_item",
    # Reports
    "expiring_lots",
    "low_stock",
    "movement_report",
]
