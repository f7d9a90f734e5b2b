"""Daily consumption reminder.

Process-wide throttle stored in the shared settings record: staff are
reminded to record the day's consumption at most once per period (24 hours
by default). Two devices checking at the same moment may both fire; that is
harmless.
"""

import asyncio
import inspect
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import Settings, settings as default_settings
from .database import crud
from .errors import StoreError

logger = logging.getLogger(__name__)

ALERT_SETTINGS_KEY = "consumption_alerts"

ReminderCallback = Callable[[], Union[Awaitable[Any], Any]]


def local_now() -> datetime:
    """Current time as an aware datetime in the local timezone."""
    return datetime.now().astimezone()


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class ConsumptionReminder:
    """Throttles the "record daily consumption" reminder."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: Optional[Settings] = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._session_factory = session_factory
        self._settings = config or default_settings
        self._clock = clock

    @property
    def period(self) -> timedelta:
        return timedelta(hours=self._settings.alert_period_hours)

    def is_due(self, last_alert: Optional[datetime], now: datetime) -> bool:
        """True if no reminder was ever sent or the last one is a full period old."""
        if last_alert is None:
            return True
        return _aware(now) - _aware(last_alert) >= self.period

    async def last_alert(self) -> Optional[datetime]:
        """Timestamp of the last reminder or acknowledgement, if any."""
        try:
            async with self._session_factory() as session:
                value = await crud.get_setting(session, ALERT_SETTINGS_KEY)
        except (SQLAlchemyError, OSError) as e:
            raise StoreError() from e

        raw = (value or {}).get("last_alert")
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            logger.warning(f"Ignoring malformed last_alert value: {raw!r}")
            return None

    async def acknowledge(self, now: Optional[datetime] = None) -> datetime:
        """Record ``now`` as the last reminder time."""
        now = now or self._clock()
        try:
            async with self._session_factory() as session:
                await crud.set_setting(session, ALERT_SETTINGS_KEY, {"last_alert": now.isoformat()})
        except (SQLAlchemyError, OSError) as e:
            raise StoreError() from e
        return now

    async def check(self, now: Optional[datetime] = None) -> bool:
        """Claim the reminder if it is due.

        Returns:
            True if a reminder should be shown now (``last_alert`` has been
            moved to ``now``), False otherwise
        """
        now = now or self._clock()
        if not self.is_due(await self.last_alert(), now):
            return False
        await self.acknowledge(now)
        logger.info("Daily consumption reminder due")
        return True

    async def run(self, on_reminder: ReminderCallback, interval: Optional[float] = None) -> None:
        """Check periodically and call ``on_reminder`` whenever a reminder is due.

        Runs until cancelled. Store failures are logged and the next check
        proceeds on schedule.
        """
        interval = interval if interval is not None else self._settings.alert_check_interval_seconds
        while True:
            try:
                if await self.check():
                    result = on_reminder()
                    if inspect.isawaitable(result):
                        await result
            except StoreError:
                logger.exception("Consumption reminder check failed")
            await asyncio.sleep(interval)
