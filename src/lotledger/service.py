"""Ledger service: runs ledger operations against the document store.

Every mutation reads one item, computes its new state with a pure ledger
function, and writes it back conditional on the version it read. The
conditional write gives each mutation exclusive logical ownership of the item
for the duration of its read-compute-write; when another device wins the race
the whole cycle is retried. Transient store failures are retried the same
way. Business-rule failures propagate immediately and leave the item as it
was.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, AsyncIterator, Callable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .alerts import ConsumptionReminder, local_now
from .config import Settings, settings as default_settings
from .database import crud
from .errors import NotFound, StoreError, ValidationError
from .identity import IdentityProvider, StaffIdentity, StaticIdentityProvider, require_privileged, require_staff
from .ledger import (
    HistoryType,
    Item,
    consume,
    consume_from_lot,
    delete_lot,
    expiring_lots,
    low_stock,
    movement_report,
    record_damage,
    restock,
    reverse_history,
    sweep,
)
from .utils import parse_quantity

logger = logging.getLogger(__name__)

Mutation = Callable[[Item, date, datetime], Item]


def _log_retry(retry_state: RetryCallState) -> None:
    """Log retry attempts."""
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(f"Retrying store operation (attempt {retry_state.attempt_number}): {error!r}")


class LotLedger:
    """Batch-lot inventory ledger bound to a session factory and an identity provider."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        identity: Optional[IdentityProvider] = None,
        config: Optional[Settings] = None,
        clock: Callable[[], datetime] = local_now,
        reminder: Optional[ConsumptionReminder] = None,
    ) -> None:
        self._session_factory = session_factory
        self._identity = identity or StaticIdentityProvider()
        self._settings = config or default_settings
        self._clock = clock
        self._reminder = reminder or ConsumptionReminder(session_factory, config=self._settings, clock=clock)

    # ----- plumbing -----

    def _staff(self) -> Optional[StaffIdentity]:
        return self._identity.current_staff()

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._settings.store_retry_attempts),
            wait=wait_exponential(
                multiplier=self._settings.store_retry_base_delay,
                min=self._settings.store_retry_base_delay,
                max=self._settings.store_retry_max_delay,
            ),
            retry=retry_if_exception_type(StoreError),
            before_sleep=_log_retry,
            reraise=True,
        )

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Open a session, reporting driver and network failures as StoreError."""
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Store failure: {e!r}")
            raise StoreError() from e

    async def _load(self, item_id: int) -> Item:
        async for attempt in self._retrying():
            with attempt:
                async with self._session() as session:
                    record = await crud.get_item(session, item_id)
                    if record is None:
                        raise NotFound(f"Item {item_id} not found")
                    item = crud.to_item(record)
        return item

    async def _mutate(self, item_id: int, operation: str, mutation: Mutation) -> Item:
        """Read an item, apply ``mutation``, and write it back conditionally.

        The full read-compute-write is repeated on a version conflict or a
        transient store error, up to the configured number of attempts.
        """
        async for attempt in self._retrying():
            with attempt:
                async with self._session() as session:
                    record = await crud.get_item(session, item_id)
                    if record is None:
                        raise NotFound(f"Item {item_id} not found")
                    current = crud.to_item(record)
                    now = self._clock()
                    updated = mutation(current, now.date(), now)
                    saved = crud.to_item(await crud.save_item(session, updated))
        logger.info(f"{operation} on item id={item_id} (quantity {current.quantity} -> {saved.quantity})")
        return saved

    # ----- items -----

    async def create_item(
        self,
        name: str,
        threshold: Any = 0,
        supplier: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Item:
        """Create an item with no stock.

        Raises:
            IdentityRequired: No staff member signed in.
            ValidationError: Missing name or invalid threshold.
        """
        require_staff(self._staff())
        if not name or not name.strip():
            raise ValidationError("Please fill in name and threshold fields")
        threshold_value = parse_quantity(threshold, "threshold")
        if threshold_value < 0:
            raise ValidationError("Please enter a valid threshold value")

        async with self._session() as session:
            record = await crud.create_item(
                session,
                name=name.strip(),
                threshold=threshold_value,
                supplier=supplier,
                category=category,
            )
            return crud.to_item(record)

    async def get_item(self, item_id: int) -> Item:
        """Load a single item without sweeping it."""
        return await self._load(item_id)

    async def delete_item(self, item_id: int) -> None:
        """Delete an item and its history. Privileged."""
        require_privileged(self._staff(), self._settings.privileged_roles)
        async with self._session() as session:
            if not await crud.delete_item(session, item_id):
                raise NotFound(f"Item {item_id} not found")

    async def list_items(self, category: Optional[str] = None) -> list[Item]:
        """Load every item, sweeping expired lots first.

        Items whose lots changed are written back in one batch. A write that
        fails for one item is logged and the others are still saved; the
        returned list always reflects the swept state.
        """
        today = self._clock().date()
        async with self._session() as session:
            records = await crud.list_items(session, category=category)
            items, changed_ids = sweep([crud.to_item(record) for record in records], today)
            if not changed_ids:
                return items

            changed_set = set(changed_ids)
            changed = [item for item in items if item.id in changed_set]
            saved, failed = await crud.batch_save_items(session, changed)

        if failed:
            logger.error(f"Expiration sweep could not persist items {failed}")
        logger.info(f"Expiration sweep removed expired lots from {len(changed_ids)} item(s)")

        by_id = {item.id: item for item in saved}
        return [by_id.get(item.id, item) for item in items]

    # ----- ledger operations -----

    async def restock(
        self,
        item_id: int,
        quantity: Any,
        expiration_date: Union[date, str, None],
        damages: Any = 0,
    ) -> Item:
        """Add a dated lot to an item."""
        staff = self._staff()
        return await self._mutate(
            item_id,
            "Restock",
            lambda item, today, now: restock(item, quantity, expiration_date, staff, today, now, damages=damages),
        )

    async def consume(self, item_id: int, quantity: Any) -> Item:
        """Consume from the oldest-expiring valid lot of an item."""
        staff = self._staff()
        updated = await self._mutate(
            item_id,
            "Consumption",
            lambda item, today, now: consume(item, quantity, staff, today, now),
        )
        await self._acknowledge_reminder()
        return updated

    async def consume_from_lot(self, item_id: int, lot_id: str, quantity: Any) -> Item:
        """Consume from a specific lot chosen by staff."""
        staff = self._staff()
        updated = await self._mutate(
            item_id,
            "Lot consumption",
            lambda item, today, now: consume_from_lot(item, lot_id, quantity, staff, today, now),
        )
        await self._acknowledge_reminder()
        return updated

    async def report_damage(self, item_id: int, lot_id: str, quantity: Any) -> Item:
        """Record damaged stock against one lot."""
        require_staff(self._staff())
        return await self._mutate(
            item_id,
            "Damage report",
            lambda item, today, now: record_damage(item, lot_id, quantity),
        )

    async def reverse_history(
        self,
        item_id: int,
        history_type: Union[HistoryType, str],
        index: int,
    ) -> Item:
        """Undo a restock or consumption history entry. Privileged."""
        staff = self._staff()
        roles = self._settings.privileged_roles
        return await self._mutate(
            item_id,
            f"Reversal of {history_type} #{index}",
            lambda item, today, now: reverse_history(item, history_type, index, staff, roles),
        )

    async def delete_lot(self, item_id: int, lot_id: str) -> Item:
        """Delete one lot from an item. Privileged."""
        staff = self._staff()
        roles = self._settings.privileged_roles
        return await self._mutate(
            item_id,
            "Lot deletion",
            lambda item, today, now: delete_lot(item, lot_id, staff, roles),
        )

    # ----- reports -----

    async def expiring_soon(self, days: Optional[int] = None) -> list[dict]:
        """Lots expiring within ``days`` (configured window by default)."""
        window = days if days is not None else self._settings.expiring_window_days
        items = await self.list_items()
        return expiring_lots(items, self._clock().date(), window)

    async def low_stock(self) -> list[Item]:
        """Items at or below their reorder threshold."""
        return low_stock(await self.list_items())

    async def movement(self, start: Optional[date] = None, end: Optional[date] = None) -> dict:
        """Additions and deductions per item between two dates (today by default)."""
        today = self._clock().date()
        return movement_report(await self.list_items(), start or today, end or today)

    async def _acknowledge_reminder(self) -> None:
        # The consumption is already saved; a failed acknowledgement only means
        # the next reminder may come early.
        try:
            await self._reminder.acknowledge()
        except StoreError as e:
            logger.warning(f"Could not record consumption reminder acknowledgement: {e!r}")
