"""
SCHEDULER BOOTSTRAP

Initializes and manages the process-wide APScheduler instance.
Scheduler is orchestration-only and contains no business logic.
"""

import logging

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from navtracker.config import settings

_logger = logging.getLogger(__name__)

_SCHEDULER: AsyncIOScheduler | None = None


def start_scheduler() -> AsyncIOScheduler:
    """
    Start the asyncio scheduler (idempotent). Must be called from a running event loop.
    """
    global _SCHEDULER

    if _SCHEDULER is not None:
        return _SCHEDULER

    scheduler = AsyncIOScheduler(timezone=pytz.timezone(settings.TIMEZONE))
    scheduler.start()
    _SCHEDULER = scheduler

    _logger.info("✅ Scheduler started")
    return scheduler


def shutdown_scheduler() -> None:
    """
    Shutdown the scheduler safely.
    """
    global _SCHEDULER

    if _SCHEDULER:
        _SCHEDULER.shutdown(wait=False)
        _SCHEDULER = None
        _logger.info("🛑 Scheduler shut down")
