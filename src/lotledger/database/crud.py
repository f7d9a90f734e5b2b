"""Document store operations for stock items and shared settings."""

import logging
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrentUpdate, NotFound
from ..ledger.models import ConsumptionRecord, Item, Lot
from .models import AppSetting, StockItem

logger = logging.getLogger(__name__)


def to_item(record: StockItem) -> Item:
    """Convert a stored item document into the ledger model."""
    return Item(
        id=record.id,
        name=record.name,
        category=record.category,
        supplier=record.supplier,
        threshold=record.threshold,
        quantity=record.quantity,
        unassigned_quantity=record.unassigned_quantity,
        lots=[Lot.model_validate(entry) for entry in record.lots or []],
        consumptions=[ConsumptionRecord.model_validate(entry) for entry in record.consumptions or []],
        version=record.version,
    )


def _apply(record: StockItem, item: Item) -> None:
    # Lots and history are written together with the cached total
    record.name = item.name
    record.category = item.category
    record.supplier = item.supplier
    record.threshold = item.threshold
    record.quantity = item.quantity
    record.unassigned_quantity = item.unassigned_quantity
    record.lots = [lot.model_dump(mode="json") for lot in item.lots]
    record.consumptions = [entry.model_dump(mode="json") for entry in item.consumptions]


# ===== Stock Item Operations =====


async def create_item(
    session: AsyncSession,
    name: str,
    threshold: int = 0,
    supplier: Optional[str] = None,
    category: Optional[str] = None,
) -> StockItem:
    """Create a new stock item with no lots.

    Args:
        session: Database session
        name: Name of the item
        threshold: Reorder level
        supplier: Optional supplier name (defaults to "Not specified")
        category: Optional category (defaults to "None")

    Returns:
        The created stock item
    """
    record = StockItem(
        name=name,
        threshold=threshold,
        supplier=supplier or "Not specified",
        category=category or "None",
        quantity=0,
        unassigned_quantity=0,
        lots=[],
        consumptions=[],
    )
    session.add(record)
    await session.commit()
    await session.refresh(record)
    logger.info(f"Created item: {record.name} (id={record.id})")
    return record


async def get_item(session: AsyncSession, item_id: int) -> Optional[StockItem]:
    """Get a stock item by ID.

    Args:
        session: Database session
        item_id: ID of the item to retrieve

    Returns:
        The stock item if found, None otherwise
    """
    result = await session.execute(select(StockItem).where(StockItem.id == item_id))
    record: StockItem | None = result.scalar_one_or_none()
    return record


async def list_items(session: AsyncSession, category: Optional[str] = None) -> list[StockItem]:
    """List all stock items ordered by name.

    Args:
        session: Database session
        category: Optional category filter

    Returns:
        List of stock items
    """
    query = select(StockItem)
    if category:
        query = query.where(StockItem.category == category)
    result = await session.execute(query.order_by(StockItem.name.asc(), StockItem.id.asc()))
    return list(result.scalars().all())


async def save_item(session: AsyncSession, item: Item) -> StockItem:
    """Write an item back, conditional on its version being unchanged.

    The stored version must still equal ``item.version`` (the version the
    caller read). The UPDATE itself also carries the version, so a writer that
    commits between the check and this write is detected too.

    Args:
        session: Database session
        item: New item state, carrying the version it was computed from

    Returns:
        The updated stock item

    Raises:
        NotFound: The item no longer exists.
        ConcurrentUpdate: Another writer changed the item since it was read.
    """
    record = await session.get(StockItem, item.id, populate_existing=True)
    if record is None:
        raise NotFound(f"Item {item.id} not found")
    if record.version != item.version:
        logger.warning(
            f"Version conflict on item id={item.id} (read={item.version}, stored={record.version})"
        )
        raise ConcurrentUpdate()

    _apply(record, item)
    try:
        await session.commit()
    except StaleDataError:
        await session.rollback()
        logger.warning(f"Version conflict on commit for item id={item.id}")
        raise ConcurrentUpdate()

    await session.refresh(record)
    logger.info(f"Saved item: {record.name} (id={record.id}, quantity={record.quantity}, version={record.version})")
    return record


async def batch_save_items(session: AsyncSession, items: Iterable[Item]) -> tuple[list[Item], list[int]]:
    """Save several items, each in its own transaction.

    A failure on one item is logged and does not stop the others. Saved items
    are converted as soon as they are committed, since a later rollback
    expires every record held by the session.

    Args:
        session: Database session
        items: Items to write back, each carrying the version it was read at

    Returns:
        Tuple of (saved items at their new versions, ids of items that failed to save)
    """
    saved: list[Item] = []
    failed: list[int] = []
    for item in items:
        try:
            saved.append(to_item(await save_item(session, item)))
        except (ConcurrentUpdate, NotFound, SQLAlchemyError) as e:
            await session.rollback()
            logger.error(f"Failed to save item id={item.id} in batch: {e!r}")
            if item.id is not None:
                failed.append(item.id)
    return saved, failed


async def delete_item(session: AsyncSession, item_id: int) -> bool:
    """Delete a stock item along with its lots and history.

    Args:
        session: Database session
        item_id: ID of the item to delete

    Returns:
        True if the item was deleted, False if not found
    """
    record = await get_item(session, item_id)
    if record is None:
        return False
    await session.delete(record)
    await session.commit()
    logger.info(f"Deleted item id={item_id}")
    return True


# ===== Settings Operations =====


async def get_setting(session: AsyncSession, key: str) -> Optional[dict[str, Any]]:
    """Get a settings document by key.

    Returns:
        A copy of the stored value, or None if the document does not exist
    """
    record = await session.get(AppSetting, key, populate_existing=True)
    if record is None:
        return None
    return dict(record.value or {})


async def set_setting(session: AsyncSession, key: str, value: dict[str, Any]) -> dict[str, Any]:
    """Create or merge into a settings document.

    Existing fields not present in ``value`` are kept.

    Returns:
        The stored value after the merge
    """
    record = await session.get(AppSetting, key, populate_existing=True)
    if record is None:
        record = AppSetting(key=key, value=dict(value))
        session.add(record)
    else:
        record.value = {**(record.value or {}), **value}
    merged = dict(record.value)
    await session.commit()
    logger.info(f"Updated setting: {key}")
    return merged
