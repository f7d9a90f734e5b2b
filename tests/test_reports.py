"""Tests for expiring and low stock reports."""

from datetime import datetime, timedelta
from typing import Optional

import pytest

from lotledger.errors import ValidationError
from lotledger.ledger import ConsumptionRecord, Lot, expiring_lots, low_stock, movement_report

from factories import FIXED_NOW, TODAY, make_item, make_lot


class TestExpiringLots:
    """Tests for expiring_lots."""

    def test_lists_lots_inside_window_soonest_first(self) -> None:
        milk = make_item(
            make_lot(3, TODAY + timedelta(days=6), lot_id="milk-late"),
            make_lot(2, TODAY + timedelta(days=30), lot_id="milk-far"),
            item_id=1,
        )
        eggs = make_item(make_lot(12, TODAY + timedelta(days=1), lot_id="eggs"), item_id=2)

        rows = expiring_lots([milk, eggs], TODAY, days=7)

        assert [row["lot_id"] for row in rows] == ["eggs", "milk-late"]
        assert rows[0] == {
            "item_id": 2,
            "item_name": "Whole Milk",
            "lot_id": "eggs",
            "lot_quantity": 12,
            "expiration_date": (TODAY + timedelta(days=1)).isoformat(),
            "days_until_expiry": 1,
        }

    def test_window_edge_is_inclusive(self) -> None:
        item = make_item(make_lot(1, TODAY + timedelta(days=3)))
        assert len(expiring_lots([item], TODAY, days=3)) == 1
        assert expiring_lots([item], TODAY, days=2) == []

    def test_skips_fully_damaged_lots(self) -> None:
        item = make_item(make_lot(4, TODAY + timedelta(days=1), damages=4))
        assert expiring_lots([item], TODAY) == []

    def test_reports_available_quantity(self) -> None:
        item = make_item(make_lot(4, TODAY + timedelta(days=1), damages=1))
        assert expiring_lots([item], TODAY)[0]["lot_quantity"] == 3


class TestLowStock:
    """Tests for low_stock."""

    def test_returns_items_at_or_below_threshold(self) -> None:
        at = make_item(make_lot(2, TODAY), item_id=1, threshold=2)
        below = make_item(item_id=2, threshold=1)
        above = make_item(make_lot(9, TODAY), item_id=3, threshold=2)
        assert [item.id for item in low_stock([at, below, above])] == [1, 2]


class TestMovementReport:
    """Tests for movement_report."""

    def _restocked(self, quantity: int, when: datetime, received: Optional[int] = None) -> Lot:
        lot = make_lot(quantity, TODAY + timedelta(days=30))
        return lot.model_copy(update={"restocked_at": when, "received": received})

    def _consumed(self, quantity: int, when: datetime) -> ConsumptionRecord:
        return ConsumptionRecord(
            consumed_at=when,
            quantity=quantity,
            staff_name="Jordan Lee",
            staff_email="jordan@example.com",
        )

    def test_summarises_additions_and_deductions(self) -> None:
        item = make_item(self._restocked(4, FIXED_NOW, received=10))
        item.consumptions.append(self._consumed(6, FIXED_NOW + timedelta(hours=2)))

        report = movement_report([item], TODAY, TODAY)

        assert report["summary"] == [
            {
                "item_id": 1,
                "item_name": "Whole Milk",
                "total_additions": 10,
                "total_deductions": 6,
                "net_change": 4,
            }
        ]
        assert [entry["type"] for entry in report["transactions"]] == ["deduction", "addition"]
        assert report["transactions"][1]["timestamp"] == FIXED_NOW.isoformat()

    def test_range_is_inclusive_and_filters_by_day(self) -> None:
        before = FIXED_NOW - timedelta(days=2)
        after = FIXED_NOW + timedelta(days=3)
        item = make_item(
            self._restocked(5, before),
            self._restocked(7, FIXED_NOW),
            self._restocked(9, after),
        )

        report = movement_report([item], TODAY, TODAY + timedelta(days=3))

        assert report["summary"][0]["total_additions"] == 16

    def test_lot_without_received_amount_uses_quantity(self) -> None:
        item = make_item(self._restocked(6, FIXED_NOW))
        report = movement_report([item], TODAY, TODAY)
        assert report["summary"][0]["total_additions"] == 6

    def test_items_without_activity_are_omitted(self) -> None:
        quiet = make_item(self._restocked(5, FIXED_NOW - timedelta(days=10)), item_id=2)
        assert movement_report([quiet], TODAY, TODAY) == {"transactions": [], "summary": []}

    def test_rejects_reversed_range(self) -> None:
        with pytest.raises(ValidationError):
            movement_report([], TODAY, TODAY - timedelta(days=1))
