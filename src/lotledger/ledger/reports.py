"""Read-only views over swept items."""

from datetime import date, timedelta
from typing import Iterable, Optional

from ..errors import ValidationError
from .models import Item


def expiring_lots(items: Iterable[Item], today: date, days: int = 7) -> list[dict]:
    """Find lots expiring within N days.

    Args:
        items: Items to scan (normally the output of a sweep)
        today: Current calendar date
        days: Number of days to look ahead

    Returns:
        List of dicts with item_id, item_name, lot_id, lot_quantity,
        expiration_date (ISO string), and days_until_expiry, ordered by
        expiration_date asc
    """
    cutoff = today + timedelta(days=days)
    rows = [
        (item, lot)
        for item in items
        for lot in item.lots
        if lot.available > 0 and lot.expiration_date <= cutoff
    ]
    rows.sort(key=lambda row: row[1].expiration_date)
    return [
        {
            "item_id": item.id,
            "item_name": item.name,
            "lot_id": lot.id,
            "lot_quantity": lot.available,
            "expiration_date": lot.expiration_date.isoformat(),
            "days_until_expiry": (lot.expiration_date - today).days,
        }
        for item, lot in rows
    ]


def low_stock(items: Iterable[Item]) -> list[Item]:
    """Items at or below their reorder threshold."""
    return [item for item in items if item.is_low_stock]


def movement_report(items: Iterable[Item], start: date, end: date) -> dict:
    """Stock added and used per item between two dates, inclusive.

    Additions are the received amounts of lots restocked in the range;
    deductions are consumption records in the range. Only lots still on an
    item are counted, so a lot that was fully consumed or whose restock was
    reversed no longer contributes an addition.

    Returns:
        Dict with ``transactions`` (newest first) and ``summary`` (one row
        per item with activity: total_additions, total_deductions,
        net_change).

    Raises:
        ValidationError: ``start`` is after ``end``.
    """
    if start > end:
        raise ValidationError("Start date cannot be after end date")

    transactions: list[dict] = []
    for item in items:
        for lot in item.lots:
            if start <= lot.restocked_at.date() <= end:
                transactions.append(
                    {
                        "item_id": item.id,
                        "item_name": item.name,
                        "type": "addition",
                        "quantity": lot.received if lot.received is not None else lot.quantity,
                        "timestamp": lot.restocked_at,
                        "staff_name": lot.staff_name,
                    }
                )
        for record in item.consumptions:
            if start <= record.consumed_at.date() <= end:
                transactions.append(
                    {
                        "item_id": item.id,
                        "item_name": item.name,
                        "type": "deduction",
                        "quantity": record.quantity,
                        "timestamp": record.consumed_at,
                        "staff_name": record.staff_name,
                    }
                )
    transactions.sort(key=lambda entry: entry["timestamp"], reverse=True)

    summary: dict[Optional[int], dict] = {}
    for entry in transactions:
        row = summary.setdefault(
            entry["item_id"],
            {
                "item_id": entry["item_id"],
                "item_name": entry["item_name"],
                "total_additions": 0,
                "total_deductions": 0,
                "net_change": 0,
            },
        )
        if entry["type"] == "addition":
            row["total_additions"] += entry["quantity"]
            row["net_change"] += entry["quantity"]
        else:
            row["total_deductions"] += entry["quantity"]
            row["net_change"] -= entry["quantity"]

    return {
        "transactions": [{**entry, "timestamp": entry["timestamp"].isoformat()} for entry in transactions],
        "summary": list(summary.values()),
    }
