import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol
from uuid import uuid4

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger

from epg_engine.utils.timezone import DateFormatError, format_utc_instant, to_utc_datetime


logger = logging.getLogger(__name__)

DEFAULT_LEAD_MINUTES = 2


class Notifier(Protocol):
    """Notification primitive; permission is assumed granted"""

    def notify(self, title: str, body: str) -> None:
        ...


class LoggingNotifier:
    """Notifier that writes reminders to the application log"""

    def notify(self, title: str, body: str) -> None:
        logger.info("Reminder: %s - %s", title, body)


@dataclass(frozen=True, slots=True)
class ReminderHandle:
    """Opaque cancellation handle for a pending reminder"""
    job_id: str
    title: str
    fire_at: datetime


class ReminderScheduler:
    """One-shot programme reminders backed by APScheduler date jobs"""

    def __init__(
        self,
        notifier: Notifier | None = None,
        scheduler: BaseScheduler | None = None,
        clock: Callable[[], datetime] | None = None,
        default_lead_minutes: int = DEFAULT_LEAD_MINUTES,
    ):
        self.notifier = notifier or LoggingNotifier()
        self.scheduler: BaseScheduler | None = scheduler
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.default_lead_minutes = default_lead_minutes

    def _ensure_scheduler(self) -> BaseScheduler:
        """Create the default asyncio scheduler on first use (needs a running loop to start)"""
        if self.scheduler is None:
            self.scheduler = AsyncIOScheduler(timezone='UTC')
        return self.scheduler

    def start(self) -> None:
        """Start the underlying scheduler"""
        scheduler = self._ensure_scheduler()
        if scheduler.running:
            logger.warning("Reminder scheduler already running")
            return
        scheduler.start()
        logger.info("Reminder scheduler started")

    def shutdown(self) -> None:
        """Shutdown the underlying scheduler, dropping pending reminders"""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Reminder scheduler stopped")

    def schedule(
        self,
        event_start: str | datetime,
        title: str,
        lead_minutes: int | None = None,
    ) -> ReminderHandle | None:
        """
        Schedule a reminder lead_minutes before event_start

        Args:
            event_start: Programme start (canonical instant or datetime)
            title: Notification title
            lead_minutes: Minutes before start (defaults to default_lead_minutes)

        Returns:
            Handle for cancel(), or None when the fire time has already
            passed and the notification was sent immediately

        Raises:
            DateFormatError: If event_start is not a valid instant
        """
        start = to_utc_datetime(event_start)
        if start is None:
            raise DateFormatError(f"Invalid reminder start: {event_start!r}")

        lead = self.default_lead_minutes if lead_minutes is None else lead_minutes
        fire_at = start - timedelta(minutes=lead)
        now = self._clock()

        if fire_at <= now:
            logger.debug("Reminder for %r is due (%s), notifying now", title, format_utc_instant(fire_at))
            self.notifier.notify(title, "Starting soon")
            return None

        job_id = f"reminder_{uuid4().hex}"
        self._ensure_scheduler().add_job(
            self._fire,
            trigger=DateTrigger(run_date=fire_at, timezone='UTC'),
            args=[job_id, title],
            id=job_id,
            misfire_grace_time=None,
        )
        logger.info(
            "Reminder %s scheduled for %r at %s (in %.0fs)",
            job_id,
            title,
            format_utc_instant(fire_at),
            (fire_at - now).total_seconds(),
        )
        return ReminderHandle(job_id=job_id, title=title, fire_at=fire_at)

    def cancel(self, handle: ReminderHandle | str | None) -> None:
        """Disarm a pending reminder; unknown, fired or cancelled handles are ignored"""
        if handle is None:
            return

        job_id = handle.job_id if isinstance(handle, ReminderHandle) else handle
        try:
            self._ensure_scheduler().remove_job(job_id)
            logger.info("Reminder %s cancelled", job_id)
        except JobLookupError:
            logger.debug("Reminder %s already fired or cancelled", job_id)

    def is_pending(self, handle: ReminderHandle | str) -> bool:
        """Check whether a reminder is still waiting to fire"""
        job_id = handle.job_id if isinstance(handle, ReminderHandle) else handle
        return self._ensure_scheduler().get_job(job_id) is not None

    def _fire(self, job_id: str, title: str) -> None:
        logger.debug("Reminder %s firing", job_id)
        self.notifier.notify(title, "Starting now")
