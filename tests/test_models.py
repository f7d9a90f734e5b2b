"""Tests for the ledger data model."""

from datetime import date, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from lotledger.ledger import ConsumptionRecord, Item, Lot

from factories import FIXED_NOW, TODAY, make_item, make_lot


class TestLot:
    """Tests for Lot."""

    def test_lot_gets_unique_id(self) -> None:
        first = make_lot(5, TODAY + timedelta(days=3))
        second = make_lot(5, TODAY + timedelta(days=3))
        assert first.id != second.id
        assert len(first.id) == 32

    def test_available_excludes_damages(self) -> None:
        lot = make_lot(10, TODAY, damages=4)
        assert lot.available == 6

    def test_damages_cannot_exceed_quantity(self) -> None:
        with pytest.raises(PydanticValidationError):
            make_lot(3, TODAY, damages=4)

    def test_negative_quantity_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            make_lot(-1, TODAY)

    def test_expired_is_strictly_before_today(self) -> None:
        assert make_lot(1, TODAY - timedelta(days=1)).is_expired(TODAY) is True
        assert make_lot(1, TODAY).is_expired(TODAY) is False
        assert make_lot(1, TODAY + timedelta(days=1)).is_expired(TODAY) is False

    def test_json_round_trip_keeps_dates(self) -> None:
        lot = make_lot(7, date(2024, 3, 9), damages=2)
        data = lot.model_dump(mode="json")
        assert data["expiration_date"] == "2024-03-09"
        assert Lot.model_validate(data) == lot


class TestItem:
    """Tests for Item."""

    def test_defaults(self) -> None:
        item = Item(name="Flour")
        assert item.category == "None"
        assert item.supplier == "Not specified"
        assert item.quantity == 0
        assert item.lots == []
        assert item.consumptions == []

    def test_recompute_quantity_sums_available(self) -> None:
        item = make_item(
            make_lot(10, TODAY + timedelta(days=2), damages=3),
            make_lot(5, TODAY + timedelta(days=9)),
        )
        assert item.quantity == 12

    def test_recompute_quantity_clears_unassigned(self) -> None:
        item = make_item(make_lot(4, TODAY + timedelta(days=2)))
        item.quantity = 7
        item.unassigned_quantity = 3
        assert item.recompute_quantity() == 4
        assert item.unassigned_quantity == 0

    def test_low_stock_flag(self) -> None:
        assert make_item(make_lot(2, TODAY), threshold=2).is_low_stock is True
        assert make_item(make_lot(3, TODAY), threshold=2).is_low_stock is False

    def test_find_lot_by_id(self) -> None:
        lot = make_lot(4, TODAY, lot_id="abc")
        item = make_item(make_lot(1, TODAY), lot)
        assert item.find_lot("abc") is item.lots[1]
        assert item.find_lot("missing") is None

    def test_lot_for_expiration_returns_first_match(self) -> None:
        exp = TODAY + timedelta(days=4)
        first = make_lot(1, exp, lot_id="first")
        second = make_lot(2, exp, lot_id="second")
        item = make_item(first, second)
        assert item.lot_for_expiration(exp).id == "first"
        assert item.lot_for_expiration(TODAY) is None


class TestConsumptionRecord:
    """Tests for ConsumptionRecord."""

    def test_quantity_must_be_positive(self) -> None:
        with pytest.raises(PydanticValidationError):
            ConsumptionRecord(
                consumed_at=FIXED_NOW,
                quantity=0,
                staff_name="Jordan Lee",
                staff_email="jordan@example.com",
            )
