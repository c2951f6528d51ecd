"""
One-shot timer backends for boundary-aligned scheduling.

A Timer runs an async callback once after a delay and hands back a handle
that can cancel it. The NAV scheduler depends only on this protocol so
tests can drive it with a manual timer instead of real sleeps.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Protocol
from uuid import uuid4

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from navtracker.config import settings
from navtracker.scheduler.scheduler import start_scheduler

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Timer(Protocol):
    def call_later(self, delay_seconds: float, callback: TimerCallback) -> TimerHandle:
        ...


class _LoopHandle:
    def __init__(self, loop: asyncio.AbstractEventLoop, delay_seconds: float, callback: TimerCallback):
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self._handle = loop.call_later(delay_seconds, self._fire, loop)

    def _fire(self, loop: asyncio.AbstractEventLoop) -> None:
        # Keep a reference so the task is not garbage collected mid-run
        self._task = loop.create_task(self._callback())

    def cancel(self) -> None:
        self._handle.cancel()


class LoopTimer:
    """Timer on the running asyncio event loop."""

    def call_later(self, delay_seconds: float, callback: TimerCallback) -> TimerHandle:
        loop = asyncio.get_running_loop()
        return _LoopHandle(loop, max(delay_seconds, 0.0), callback)


class _JobHandle:
    def __init__(self, scheduler: AsyncIOScheduler, job_id: str):
        self._scheduler = scheduler
        self._job_id = job_id

    def cancel(self) -> None:
        try:
            self._scheduler.remove_job(self._job_id)
        except JobLookupError:
            # One-shot jobs are removed once they have run
            logger.debug(f"Timer job {self._job_id} already finished")


class APSchedulerTimer:
    """Timer backed by one-shot DateTrigger jobs on the shared AsyncIOScheduler."""

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None, misfire_grace_seconds: int = 60):
        self._scheduler = scheduler
        self._misfire_grace_seconds = misfire_grace_seconds

    def call_later(self, delay_seconds: float, callback: TimerCallback) -> TimerHandle:
        scheduler = self._scheduler or start_scheduler()
        run_date = datetime.now(tz=timezone.utc) + timedelta(seconds=max(delay_seconds, 0.0))
        job_id = f"nav-boundary-{uuid4().hex}"
        scheduler.add_job(
            callback,
            trigger=DateTrigger(run_date=run_date),
            id=job_id,
            misfire_grace_time=self._misfire_grace_seconds,
        )
        return _JobHandle(scheduler, job_id)


def default_timer() -> Timer:
    """Timer backend selected by SCHEDULER_BACKEND."""
    if settings.SCHEDULER_BACKEND == "asyncio":
        return LoopTimer()
    return APSchedulerTimer()
