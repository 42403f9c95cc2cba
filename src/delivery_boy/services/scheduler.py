"""
Weekly job scheduling.

Jobs are kept in a small table that is polled on a short fixed interval, so a
job fires within one poll interval of its slot.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Awaitable, Callable, List, Optional

from delivery_boy.core.errors import ScheduleInvocationFailure
from delivery_boy.core.window import utcnow
from delivery_boy.services.ingest import AppContext, trigger_digest

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[object]]


def next_run_time(now: datetime, weekday: int, at: time, tz: tzinfo) -> datetime:
    """Next `weekday` at `at` in `tz`, strictly after `now`. Returned in UTC."""
    local = now.astimezone(tz)
    days_ahead = (weekday - local.weekday()) % 7
    run_date = local.date() + timedelta(days=days_ahead)
    run = datetime.combine(run_date, at, tzinfo=tz)
    if run <= local:
        run = datetime.combine(run_date + timedelta(days=7), at, tzinfo=tz)
    return run.astimezone(timezone.utc)


@dataclass
class WeeklyJob:
    name: str
    weekday: int
    at: time
    tz: tzinfo
    job: Job
    next_run: Optional[datetime] = None
    last_run: Optional[datetime] = None

    def schedule_from(self, now: datetime) -> None:
        self.next_run = next_run_time(now, self.weekday, self.at, self.tz)

    def is_due(self, now: datetime) -> bool:
        return self.next_run is not None and now >= self.next_run


@dataclass
class Scheduler:
    clock: Callable[[], datetime] = utcnow
    poll_interval: float = 1.0
    jobs: List[WeeklyJob] = field(default_factory=list)

    def every_week(self, name: str, weekday: int, at: time, tz: tzinfo, job: Job) -> WeeklyJob:
        entry = WeeklyJob(name=name, weekday=weekday, at=at, tz=tz, job=job)
        entry.schedule_from(self.clock())
        self.jobs.append(entry)
        logger.info(f"Scheduled job '{name}', next run at {entry.next_run.isoformat()}")
        return entry

    async def run_pending(self, now: Optional[datetime] = None) -> int:
        """Fire each due job once, then move it to its next weekly slot. Returns the number fired."""
        now = now or self.clock()
        fired = 0
        for entry in self.jobs:
            if not entry.is_due(now):
                continue
            # Reschedule before running so a slow job cannot fire twice.
            entry.last_run = now
            entry.schedule_from(now)
            fired += 1
            try:
                await self._invoke(entry)
            except ScheduleInvocationFailure as e:
                logger.error(str(e))
        return fired

    async def _invoke(self, entry: WeeklyJob) -> None:
        logger.info(f"Running scheduled job '{entry.name}'")
        try:
            await entry.job()
        except Exception as e:
            raise ScheduleInvocationFailure(entry.name, e) from e
        logger.info(f"Scheduled job '{entry.name}' ran successfully")

    async def run_forever(self) -> None:
        """Poll the job table until cancelled."""
        logger.info(f"Scheduler started, polling every {self.poll_interval}s")
        while True:
            await self.run_pending()
            await asyncio.sleep(self.poll_interval)


def digest_job(ctx: AppContext, credential: str) -> Job:
    """
    The weekly digest job: an in-process call to trigger_digest that presents
    the configured credential, exactly like an external caller would.
    """
    async def run() -> str:
        return await trigger_digest(ctx, credential)

    return run
