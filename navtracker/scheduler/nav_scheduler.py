"""
REAL-TIME NAV SCHEDULER

Recomputes watchlist NAV at fixed wall-clock boundaries (every 5 minutes
by default, at second 0) and broadcasts the result.

STATE MACHINE:
    STOPPED --start()--> RUNNING --stop()--> STOPPED

RULES:
- One deferred callback at a time, rescheduled after every drain (a
  timer armed by a restart during the drain is replaced, never doubled)
- Pending updates are keyed by watchlist: the latest submission wins, so
  each watchlist gets at most one aligned emission per boundary
- stop() cancels the timer but keeps pending updates queued
- Misuse (queue / trigger while stopped, double start) is a logged no-op
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from navtracker.config import settings
from navtracker.domain.models import NAVSnapshot, NavSource, TickerPosition, Timeframe
from navtracker.domain.services.return_calculator import collect_ticker_returns
from navtracker.domain.services.ticker_normalizer import normalize_ticker
from navtracker.realtime.nav_events import NavEventEmitter, get_nav_event_emitter
from navtracker.scheduler.timers import Timer, TimerHandle, default_timer
from navtracker.utils.time import Clock, SystemClock

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"


@dataclass(frozen=True)
class PendingUpdate:
    items: Tuple[TickerPosition, ...]
    timeframe: Timeframe


def _coerce_items(items: Iterable) -> Tuple[TickerPosition, ...]:
    return tuple(
        item if isinstance(item, TickerPosition) else normalize_ticker(item)
        for item in (items or [])
    )


class RealTimeNavScheduler:
    """
    Boundary-aligned NAV recomputation service.

    Args:
        emitter: Channel results are broadcast on
        clock: Source of "now" (tests pass a manual clock)
        timer: One-shot timer backend (tests pass a manual timer)
        interval_minutes: Boundary spacing; boundaries fall where minute % interval == 0
        near_boundary_seconds: Window reported by is_near_boundary()
        zone: Local zone for DAY / YTD window starts
    """

    def __init__(
        self,
        emitter: Optional[NavEventEmitter] = None,
        clock: Optional[Clock] = None,
        timer: Optional[Timer] = None,
        interval_minutes: Optional[int] = None,
        near_boundary_seconds: Optional[int] = None,
        zone: Optional[tzinfo] = None,
    ):
        interval = settings.NAV_BOUNDARY_MINUTES if interval_minutes is None else interval_minutes
        if interval <= 0 or 60 % interval != 0:
            raise ValueError("interval_minutes must be a positive divisor of 60")

        self._emitter = emitter or get_nav_event_emitter()
        self._clock = clock or SystemClock()
        self._timer = timer or default_timer()
        self._interval_minutes = interval
        self._near_boundary_seconds = (
            settings.NAV_NEAR_BOUNDARY_SECONDS if near_boundary_seconds is None else near_boundary_seconds
        )
        self._zone = zone

        self._state = SchedulerState.STOPPED
        self._timer_handle: Optional[TimerHandle] = None
        self._pending: Dict[str, PendingUpdate] = {}
        self._last_aligned_time: Optional[datetime] = None

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SchedulerState.RUNNING

    def start(self) -> None:
        if self.is_running:
            logger.warning("[REAL-TIME NAV] Already running")
            return

        self._state = SchedulerState.RUNNING
        logger.info("[REAL-TIME NAV] Starting real-time NAV scheduler")
        self._schedule_next()

    def stop(self) -> None:
        self._state = SchedulerState.STOPPED
        if self._timer_handle is not None:
            self._timer_handle.cancel()
            self._timer_handle = None
        logger.info("[REAL-TIME NAV] Stopped real-time NAV scheduler")

    # ------------------------------------------------------------
    # Boundary arithmetic
    # ------------------------------------------------------------

    def next_boundary_time(self, now: Optional[datetime] = None) -> datetime:
        now = now or self._clock.now()
        minutes_to_next = self._interval_minutes - (now.minute % self._interval_minutes)
        return now.replace(second=0, microsecond=0) + timedelta(minutes=minutes_to_next)

    def seconds_until_next_boundary(self, now: Optional[datetime] = None) -> float:
        now = now or self._clock.now()
        return (self.next_boundary_time(now) - now).total_seconds()

    def is_near_boundary(self, now: Optional[datetime] = None) -> bool:
        now = now or self._clock.now()
        since_boundary = (now.minute % self._interval_minutes) * 60 + now.second
        window = self._near_boundary_seconds
        return since_boundary <= window or since_boundary >= self._interval_minutes * 60 - window

    def _schedule_next(self) -> None:
        if not self.is_running:
            return

        # A restart during a drain may already have armed a timer
        if self._timer_handle is not None:
            self._timer_handle.cancel()
            self._timer_handle = None

        delay = self.seconds_until_next_boundary()
        logger.debug(f"[REAL-TIME NAV] Waiting {delay:.3f}s until next boundary")
        self._timer_handle = self._timer.call_later(delay, self._on_boundary)

    async def _on_boundary(self) -> None:
        if not self.is_running:
            return

        self._timer_handle = None
        self._last_aligned_time = self._clock.now()
        logger.info(f"[REAL-TIME NAV] Performing aligned calculation at {self._last_aligned_time.isoformat()}")

        try:
            await self.drain()
        finally:
            self._schedule_next()

    # ------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------

    def queue(
        self,
        watchlist_slug: str,
        items: Iterable,
        timeframe: Timeframe | str | None = None,
    ) -> bool:
        """Queue a NAV computation for the next boundary. Returns False when stopped."""
        if not self.is_running:
            logger.warning("[REAL-TIME NAV] System not running, cannot queue calculation")
            return False

        timeframe = Timeframe.parse(timeframe or settings.NAV_DEFAULT_TIMEFRAME)
        self._pending[watchlist_slug] = PendingUpdate(items=_coerce_items(items), timeframe=timeframe)
        logger.debug(f"[REAL-TIME NAV] Queued aligned calculation for {watchlist_slug}")
        return True

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> int:
        """Compute and emit every pending update. Returns the number processed."""
        pending, self._pending = self._pending, {}
        if not pending:
            return 0

        await asyncio.gather(
            *(
                self.calculate_and_emit_nav(slug, update.items, update.timeframe, NavSource.ALIGNED)
                for slug, update in pending.items()
            )
        )
        return len(pending)

    async def trigger_immediate_calculation(
        self,
        watchlist_slug: str,
        items: Iterable,
        timeframe: Timeframe | str | None = None,
    ) -> Optional[NAVSnapshot]:
        """Compute and emit now, bypassing boundary alignment."""
        if not self.is_running:
            logger.warning("[REAL-TIME NAV] System not running, cannot trigger immediate calculation")
            return None

        logger.debug(f"[REAL-TIME NAV] Triggering immediate calculation for {watchlist_slug}")
        return await self.calculate_and_emit_nav(watchlist_slug, items, timeframe, NavSource.REALTIME)

    async def calculate_and_emit_nav(
        self,
        watchlist_slug: str,
        items: Iterable,
        timeframe: Timeframe | str | None = None,
        source: NavSource = NavSource.REALTIME,
    ) -> Optional[NAVSnapshot]:
        """
        Average the watchlist's ticker returns and broadcast one snapshot.

        Failures are logged and yield None; they never propagate to the
        scheduling chain.
        """
        items = _coerce_items(items)
        if not items:
            logger.warning(f"[REAL-TIME NAV] No items provided for {watchlist_slug}")
            return None

        try:
            timeframe = Timeframe.parse(timeframe or settings.NAV_DEFAULT_TIMEFRAME)
            now = self._clock.now()
            returns = collect_ticker_returns(items, timeframe, now=now, zone=self._zone)
            average = (
                sum((r.return_percent for r in returns), Decimal("0")) / len(returns)
                if returns
                else None
            )
            snapshot = NAVSnapshot(
                timestamp=now,
                return_percent=average,
                valid_tickers=len(returns),
                total_tickers=len(items),
                source=NavSource(source),
            )
            await self._emitter.emit(watchlist_slug, [snapshot], snapshot.source)
        except Exception:
            logger.exception(f"[REAL-TIME NAV] Error calculating NAV for {watchlist_slug}")
            return None

        logger.debug(
            f"[REAL-TIME NAV] Emitted NAV for {watchlist_slug}: {snapshot.return_percent} "
            f"({snapshot.valid_tickers}/{snapshot.total_tickers}, {snapshot.source.value})"
        )
        return snapshot

    # ------------------------------------------------------------
    # Status
    # ------------------------------------------------------------

    def get_status(self) -> Dict[str, object]:
        now = self._clock.now()
        return {
            "state": self._state.value,
            "is_running": self.is_running,
            "last_aligned_time": self._last_aligned_time,
            "next_boundary_time": self.next_boundary_time(now),
            "seconds_until_next_boundary": self.seconds_until_next_boundary(now),
            "is_near_boundary": self.is_near_boundary(now),
            "pending_updates": len(self._pending),
            "current_time": now,
        }


_NAV_SCHEDULER: RealTimeNavScheduler | None = None


def get_nav_scheduler() -> RealTimeNavScheduler:
    """Process-wide scheduler instance, created on first use."""
    global _NAV_SCHEDULER

    if _NAV_SCHEDULER is None:
        _NAV_SCHEDULER = RealTimeNavScheduler()
    return _NAV_SCHEDULER


def reset_nav_scheduler() -> None:
    """Stop and discard the process-wide scheduler."""
    global _NAV_SCHEDULER

    if _NAV_SCHEDULER is not None:
        _NAV_SCHEDULER.stop()
        _NAV_SCHEDULER = None
