"""
In-process periodic scheduler.

Runs the generation poller and notification sweep inside the API process
when no Celery beat is deployed. Jobs run one after another, so two ticks
of the same job never overlap.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, List, Optional

from app.clock import Clock, utcnow
from app.config import settings

logger = logging.getLogger(__name__)

TickFunc = Callable[[], Awaitable[Any]]


@dataclass
class PeriodicJob:
    name: str
    interval: timedelta
    func: TickFunc
    next_run: datetime
    runs: int = 0

    def due(self, now: datetime) -> bool:
        return now >= self.next_run

    def advance(self, now: datetime) -> None:
        """Keep a fixed cadence, skipping ticks missed while busy."""
        self.next_run += self.interval
        while self.next_run <= now:
            self.next_run += self.interval


class Scheduler:
    """Fixed-interval job runner driven by an injectable clock."""

    def __init__(self, clock: Clock = utcnow, poll_seconds: float = 1.0):
        self.clock = clock
        self.poll_seconds = poll_seconds
        self.jobs: List[PeriodicJob] = []

    def add(
        self,
        name: str,
        interval: timedelta,
        func: TickFunc,
        first_run_delay: Optional[timedelta] = None,
    ) -> PeriodicJob:
        if interval <= timedelta(0):
            raise ValueError(f"Interval for {name} must be positive")
        delay = interval if first_run_delay is None else first_run_delay
        job = PeriodicJob(name=name, interval=interval, func=func, next_run=self.clock() + delay)
        self.jobs.append(job)
        logger.info(f"Scheduled {name} every {interval}, first run at {job.next_run.isoformat()}")
        return job

    async def run_pending(self) -> List[str]:
        """Run every due job once. Returns the names that ran."""
        ran = []
        for job in self.jobs:
            now = self.clock()
            if not job.due(now):
                continue
            try:
                await job.func()
            except Exception as e:
                logger.error(f"Scheduled job {job.name} failed: {e}", exc_info=True)
            job.runs += 1
            job.advance(now)
            ran.append(job.name)
        return ran

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        logger.info(f"Scheduler started with {len(self.jobs)} jobs")
        while not stop_event.is_set():
            await self.run_pending()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Scheduler stopped")


def build_pipeline_scheduler(clock: Clock = utcnow) -> Scheduler:
    """Scheduler with the generation poller and notification sweep."""
    from app.workers.generation_poller import run_generation_tick
    from app.workers.notification_sweep import run_notification_sweep

    scheduler = Scheduler(clock=clock)
    scheduler.add(
        "generation-poller",
        timedelta(minutes=settings.job_interval_minutes),
        run_generation_tick,
        first_run_delay=timedelta(seconds=settings.job_first_run_delay_seconds),
    )
    scheduler.add(
        "notification-sweep",
        timedelta(minutes=settings.notification_sweep_minutes),
        run_notification_sweep,
    )
    return scheduler
