"""
Realtime runtime: logging, the shared APScheduler, and the NAV scheduler.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from navtracker.config import settings
from navtracker.core.logging import setup_logging
from navtracker.realtime.nav_events import NavEventEmitter, get_nav_event_emitter
from navtracker.scheduler.nav_scheduler import RealTimeNavScheduler, get_nav_scheduler
from navtracker.scheduler.scheduler import shutdown_scheduler

logger = logging.getLogger(__name__)


class NavRuntime:
    """Process entry point a host application starts once and stops on exit."""

    def __init__(
        self,
        nav_scheduler: Optional[RealTimeNavScheduler] = None,
        emitter: Optional[NavEventEmitter] = None,
    ):
        self._nav_scheduler = nav_scheduler
        self._emitter = emitter
        self._started = False

    @property
    def nav_scheduler(self) -> RealTimeNavScheduler:
        if self._nav_scheduler is None:
            self._nav_scheduler = get_nav_scheduler()
        return self._nav_scheduler

    @property
    def emitter(self) -> NavEventEmitter:
        if self._emitter is None:
            self._emitter = get_nav_event_emitter()
        return self._emitter

    async def start(self) -> None:
        if self._started:
            logger.warning("⚠️ NAV runtime already started")
            return

        setup_logging(settings.LOG_LEVEL)
        self.nav_scheduler.start()
        self._started = True
        logger.info(
            f"✅ NAV runtime started (backend={settings.SCHEDULER_BACKEND}, "
            f"every {settings.NAV_BOUNDARY_MINUTES} min, tz={settings.TIMEZONE})"
        )

    async def stop(self) -> None:
        if not self._started:
            return

        self.nav_scheduler.stop()
        shutdown_scheduler()
        self._started = False
        logger.info("🛑 NAV runtime stopped")

    def get_status(self) -> Dict[str, object]:
        return {
            "started": self._started,
            "scheduler": self.nav_scheduler.get_status(),
            "events": self.emitter.get_status(),
        }
