"""Tests for the daily consumption reminder."""

import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lotledger.alerts import ALERT_SETTINGS_KEY, ConsumptionReminder
from lotledger.config import Settings
from lotledger.database.crud import set_setting
from lotledger.errors import StoreError

from factories import FIXED_NOW


@pytest.fixture
def reminder(session_factory: async_sessionmaker[AsyncSession], test_settings: Settings) -> ConsumptionReminder:
    return ConsumptionReminder(session_factory, config=test_settings, clock=lambda: FIXED_NOW)


def _broken_factory() -> AsyncSession:
    raise OperationalError("SELECT 1", {}, Exception("database is down"))


class TestIsDue:
    """Tests for the period check."""

    def test_never_sent(self, reminder: ConsumptionReminder) -> None:
        assert reminder.is_due(None, FIXED_NOW) is True

    def test_exactly_one_period_later(self, reminder: ConsumptionReminder) -> None:
        assert reminder.is_due(FIXED_NOW, FIXED_NOW + timedelta(hours=24)) is True

    def test_within_period(self, reminder: ConsumptionReminder) -> None:
        assert reminder.is_due(FIXED_NOW, FIXED_NOW + timedelta(hours=23, minutes=59)) is False

    def test_naive_timestamps_are_treated_as_utc(self, reminder: ConsumptionReminder) -> None:
        naive = datetime(2024, 1, 1, 12, 0)
        assert reminder.is_due(naive, FIXED_NOW + timedelta(hours=1)) is False


class TestCheck:
    """Tests for check and acknowledge."""

    @pytest.mark.asyncio
    async def test_first_check_fires(self, reminder: ConsumptionReminder) -> None:
        assert await reminder.check() is True
        assert await reminder.last_alert() == FIXED_NOW

    @pytest.mark.asyncio
    async def test_fires_at_most_once_per_day(self, reminder: ConsumptionReminder) -> None:
        assert await reminder.check() is True
        assert await reminder.check() is False
        assert await reminder.check(FIXED_NOW + timedelta(hours=23)) is False
        assert await reminder.check(FIXED_NOW + timedelta(hours=24)) is True

    @pytest.mark.asyncio
    async def test_acknowledge_defers_next_reminder(self, reminder: ConsumptionReminder) -> None:
        await reminder.acknowledge(FIXED_NOW + timedelta(hours=10))
        assert await reminder.check(FIXED_NOW + timedelta(hours=30)) is False
        assert await reminder.check(FIXED_NOW + timedelta(hours=34)) is True

    @pytest.mark.asyncio
    async def test_other_timezone_offsets_compare_correctly(self, reminder: ConsumptionReminder) -> None:
        plus_five = timezone(timedelta(hours=5))
        await reminder.acknowledge(datetime(2024, 1, 1, 17, 0, tzinfo=plus_five))
        assert await reminder.check(FIXED_NOW + timedelta(hours=23)) is False

    @pytest.mark.asyncio
    async def test_malformed_timestamp_is_ignored(
        self, reminder: ConsumptionReminder, db_session: AsyncSession
    ) -> None:
        await set_setting(db_session, ALERT_SETTINGS_KEY, {"last_alert": "yesterday-ish"})
        assert await reminder.last_alert() is None
        assert await reminder.check() is True

    @pytest.mark.asyncio
    async def test_store_failure_raises_store_error(self, test_settings: Settings) -> None:
        broken = ConsumptionReminder(_broken_factory, config=test_settings, clock=lambda: FIXED_NOW)
        with pytest.raises(StoreError):
            await broken.check()
        with pytest.raises(StoreError):
            await broken.acknowledge()


class TestRun:
    """Tests for the periodic loop."""

    @pytest.mark.asyncio
    async def test_calls_back_once_when_due(self, reminder: ConsumptionReminder) -> None:
        calls: list[int] = []
        fired = asyncio.Event()

        def on_reminder() -> None:
            calls.append(1)
            fired.set()

        task = asyncio.create_task(reminder.run(on_reminder, interval=0))
        await asyncio.wait_for(fired.wait(), timeout=5)
        # Give the loop a few more turns; the clock is frozen so nothing else is due
        for _ in range(5):
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_async_callback_and_store_failure(self, reminder: ConsumptionReminder) -> None:
        fired = asyncio.Event()

        async def on_reminder() -> None:
            fired.set()

        outcomes = itertools.chain([StoreError(), True], itertools.repeat(False))
        with patch.object(reminder, "check", side_effect=outcomes) as mock_check:
            task = asyncio.create_task(reminder.run(on_reminder, interval=0))
            await asyncio.wait_for(fired.wait(), timeout=5)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert mock_check.await_count >= 2
