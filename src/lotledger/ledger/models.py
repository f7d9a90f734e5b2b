"""Ledger data model: lots, consumption records, and the item aggregate."""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


def new_lot_id() -> str:
    """Generate a stable unique identifier for a lot."""
    return uuid.uuid4().hex


class HistoryType(str, Enum):
    """Kinds of history entries that can be reversed."""

    RESTOCK = "restock"
    CONSUMPTION = "consumption"


class Lot(BaseModel):
    """One dated batch of stock from a single restock event."""

    id: str = Field(default_factory=new_lot_id)
    restocked_at: datetime
    quantity: int = Field(..., ge=0, description="Amount remaining from the restock")
    received: Optional[int] = Field(None, ge=0, description="Amount originally restocked")
    expiration_date: date
    damages: int = Field(0, ge=0, description="Cumulative damaged amount")
    staff_name: str
    staff_email: str

    @model_validator(mode="after")
    def _damages_within_quantity(self) -> "Lot":
        if self.damages > self.quantity:
            raise ValueError(f"lot damages ({self.damages}) exceed quantity ({self.quantity})")
        return self

    @property
    def available(self) -> int:
        """Sellable amount: quantity minus damages, never negative."""
        return max(0, self.quantity - self.damages)

    def is_expired(self, today: date) -> bool:
        """A lot is expired once its expiration date is strictly before today."""
        return self.expiration_date < today


class ConsumptionRecord(BaseModel):
    """Immutable audit entry for one consumption."""

    consumed_at: datetime
    quantity: int = Field(..., gt=0)
    staff_name: str
    staff_email: str
    source_lot_id: Optional[str] = None
    source_lot_expiration_date: Optional[date] = None


class Item(BaseModel):
    """A stocked item: its lots, consumption history, and cached total.

    ``quantity`` is a cached value. After every lot-recomputing operation it
    equals the available amount of all lots. Between recomputations it may
    also hold stock returned by consumption reversals, which no lot owns;
    ``unassigned_quantity`` counts that stock until the next recompute
    settles the total back onto the lots.
    """

    id: Optional[int] = None
    name: str
    category: str = "None"
    supplier: str = "Not specified"
    threshold: int = 0
    quantity: int = 0
    unassigned_quantity: int = 0
    lots: list[Lot] = Field(default_factory=list)
    consumptions: list[ConsumptionRecord] = Field(default_factory=list)
    version: int = 0

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.threshold

    def lots_total(self) -> int:
        """Sum of available quantity across all lots on the item."""
        return sum(lot.available for lot in self.lots)

    def recompute_quantity(self) -> int:
        """Reset the cached total from the lots and return it.

        Unassigned stock is dropped: only lots are authoritative.
        """
        self.quantity = self.lots_total()
        self.unassigned_quantity = 0
        return self.quantity

    def find_lot(self, lot_id: str) -> Optional[Lot]:
        for lot in self.lots:
            if lot.id == lot_id:
                return lot
        return None

    def lot_for_expiration(self, expiration_date: date) -> Optional[Lot]:
        """First lot with the given expiration date, in restock order."""
        for lot in self.lots:
            if lot.expiration_date == expiration_date:
                return lot
        return None
