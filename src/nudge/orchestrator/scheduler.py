"""Interval scheduler for the periodic nudge run and notification sweeps."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

from nudge.core.config import SchedulerConfig
from nudge.core.types import utcnow
from nudge.notifications.queue import NotificationQueue
from nudge.orchestrator.runner import NudgeRunner

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[Any]]


@dataclass
class Job:
    name: str
    interval: timedelta
    func: JobFunc
    last_run: datetime | None = None
    last_error: str | None = None


class JobScheduler:
    """Runs named jobs once their interval has elapsed since the last success.

    A failing job is logged and retried on the next tick; it never stops
    the other jobs.
    """

    def __init__(self, tick_seconds: float = 30.0) -> None:
        self._tick_seconds = tick_seconds
        self._jobs: dict[str, Job] = {}

    def register(self, name: str, interval_seconds: float, func: JobFunc) -> Job:
        if name in self._jobs:
            raise ValueError(f"Job {name!r} is already registered")
        job = Job(name=name, interval=timedelta(seconds=interval_seconds), func=func)
        self._jobs[name] = job
        return job

    @property
    def jobs(self) -> dict[str, Job]:
        return dict(self._jobs)

    def should_run(self, name: str, now: datetime | None = None) -> bool:
        job = self._jobs[name]
        if job.last_run is None:
            return True
        return (now or utcnow()) - job.last_run >= job.interval

    async def run_job(self, name: str, now: datetime | None = None) -> bool:
        job = self._jobs[name]
        logger.info("Starting job: %s", name)
        try:
            await job.func()
        except Exception as exc:
            job.last_error = str(exc) or type(exc).__name__
            logger.exception("Job failed: %s", name)
            return False
        job.last_run = now or utcnow()
        job.last_error = None
        logger.info("Job completed: %s", name)
        return True

    async def run_due(self, now: datetime | None = None) -> list[str]:
        """Run every due job in registration order; return the names that ran."""
        now = now or utcnow()
        ran: list[str] = []
        for name in self._jobs:
            if self.should_run(name, now):
                await self.run_job(name, now)
                ran.append(name)
        return ran

    async def run_forever(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            await self.run_due()
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._tick_seconds)
            except asyncio.TimeoutError:
                pass


def build_scheduler(
    runner: NudgeRunner,
    queue: NotificationQueue,
    config: SchedulerConfig | None = None,
) -> JobScheduler:
    config = config or SchedulerConfig()
    scheduler = JobScheduler(tick_seconds=config.tick_seconds)
    scheduler.register("smart-nudges", config.nudge_interval_seconds, runner.run_for_all_entities)
    scheduler.register("process-scheduled", config.sweep_interval_seconds, queue.process_scheduled)
    scheduler.register("cleanup-expired", config.cleanup_interval_seconds, queue.cleanup_expired)
    return scheduler
