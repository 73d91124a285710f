"""
Tests for programme reminders
"""
from datetime import datetime, timedelta, timezone

import pytest

from epg_engine.services.reminder_service import DEFAULT_LEAD_MINUTES, ReminderHandle, ReminderScheduler
from epg_engine.utils.timezone import DateFormatError, format_utc_instant


NOW = datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def reminders(notifier, paused_scheduler):
    return ReminderScheduler(notifier=notifier, scheduler=paused_scheduler, clock=lambda: NOW)


class TestSchedule:
    """Tests for ReminderScheduler.schedule"""

    def test_due_reminder_fires_immediately(self, reminders, notifier):
        """A fire time at or before now notifies at once and returns no handle"""
        start = format_utc_instant(NOW + timedelta(minutes=1))

        handle = reminders.schedule(start, "News", lead_minutes=2)

        assert handle is None
        assert notifier.sent == [("News", "Starting soon")]

    def test_fire_time_equal_to_now_is_due(self, reminders, notifier):
        handle = reminders.schedule(NOW + timedelta(minutes=2), "Film", lead_minutes=2)

        assert handle is None
        assert notifier.sent == [("Film", "Starting soon")]

    def test_future_reminder_is_pending(self, reminders, notifier, paused_scheduler):
        start = NOW + timedelta(hours=1)

        handle = reminders.schedule(format_utc_instant(start), "Match", lead_minutes=5)

        assert isinstance(handle, ReminderHandle)
        assert handle.fire_at == start - timedelta(minutes=5)
        assert reminders.is_pending(handle)
        assert paused_scheduler.get_job(handle.job_id) is not None
        assert notifier.sent == []

    def test_default_lead(self, reminders):
        start = NOW + timedelta(hours=1)

        handle = reminders.schedule(start, "Match")

        assert handle.fire_at == start - timedelta(minutes=DEFAULT_LEAD_MINUTES)

    def test_firing_notifies_starting_now(self, reminders, notifier, paused_scheduler):
        handle = reminders.schedule(NOW + timedelta(hours=1), "Match")

        job = paused_scheduler.get_job(handle.job_id)
        job.func(*job.args)

        assert notifier.sent == [("Match", "Starting now")]

    def test_invalid_start(self, reminders):
        with pytest.raises(DateFormatError):
            reminders.schedule("whenever", "Bad")


class TestCancel:
    """Tests for ReminderScheduler.cancel"""

    def test_cancel_disarms(self, reminders):
        handle = reminders.schedule(NOW + timedelta(hours=1), "Match")

        reminders.cancel(handle)

        assert not reminders.is_pending(handle)

    def test_cancel_twice_is_harmless(self, reminders):
        handle = reminders.schedule(NOW + timedelta(hours=1), "Match")

        reminders.cancel(handle)
        reminders.cancel(handle)
        reminders.cancel(handle.job_id)

        assert not reminders.is_pending(handle)

    def test_cancel_unknown_and_none(self, reminders):
        reminders.cancel("reminder_unknown")
        reminders.cancel(None)

    def test_cancel_one_of_many(self, reminders):
        first = reminders.schedule(NOW + timedelta(hours=1), "First")
        second = reminders.schedule(NOW + timedelta(hours=2), "Second")

        reminders.cancel(first)

        assert not reminders.is_pending(first)
        assert reminders.is_pending(second)
