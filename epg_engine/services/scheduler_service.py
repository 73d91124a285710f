import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from epg_engine.config import settings
from epg_engine.epg_types import EPGChannel, NowNext
from epg_engine.services.epg_query_service import get_guide_now_next


logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "now_next_refresh"

GuideProvider = Callable[[], Awaitable[Sequence[EPGChannel]]]


class GuideRefreshScheduler:
    """Keeps a now/next snapshot of the whole guide, recomputed on a cron tick"""

    def __init__(self, guide_provider: GuideProvider, cron: str | None = None):
        self.scheduler: AsyncIOScheduler | None = None
        self._guide_provider = guide_provider
        self._cron = cron or settings.now_next_refresh_cron
        self.snapshot: dict[str, NowNext] = {}
        self.refreshed_at: datetime | None = None

    async def refresh(self, now: datetime | None = None) -> dict[str, NowNext]:
        """Recompute now/next for every guide channel at now (default: current time)"""
        now = now or datetime.now(timezone.utc)
        guide = await self._guide_provider()
        self.snapshot = get_guide_now_next(guide, now=now)
        self.refreshed_at = now
        return self.snapshot

    async def _refresh_job(self) -> None:
        try:
            snapshot = await self.refresh()
        except Exception as e:
            logger.error(f"Now/next refresh failed: {e}", exc_info=True)
            return
        on_air = sum(1 for pair in snapshot.values() if pair.current is not None)
        logger.debug("Now/next refreshed: %s channels, %s on air", len(snapshot), on_air)

    def start(self) -> None:
        """
        Schedule the refresh job and start the scheduler (needs a running event loop)

        Raises:
            ValueError: If the cron expression is invalid
        """
        if self.scheduler is not None and self.scheduler.running:
            logger.warning("Now/next refresh already scheduled")
            return

        try:
            trigger = CronTrigger.from_crontab(self._cron, timezone="UTC")
        except ValueError as exc:
            logger.error("Cannot schedule now/next refresh with '%s': %s", self._cron, exc)
            raise

        scheduler = AsyncIOScheduler(timezone="UTC")
        scheduler.add_job(
            self._refresh_job,
            trigger=trigger,
            id=REFRESH_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self.scheduler = scheduler

        next_run = self.get_next_run_time()
        logger.info("Now/next refresh scheduled (%s), next run %s", self._cron, next_run.isoformat() if next_run else "unknown")

    def shutdown(self) -> None:
        """Stop the refresh job; the last snapshot stays readable"""
        if self.scheduler is None:
            return
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Now/next refresh stopped")
        self.scheduler = None

    def get_next_run_time(self) -> datetime | None:
        """Next planned refresh, None while stopped"""
        if self.scheduler is None:
            return None
        job = self.scheduler.get_job(REFRESH_JOB_ID)
        return job.next_run_time if job else None
