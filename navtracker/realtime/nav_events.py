"""
NAV update broadcast.

Named-event channel keyed by watchlist slug. Delivery is fire-and-forget:
no acknowledgment, no retry, and updates for a slug nobody listens to are
dropped.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from navtracker.config import settings
from navtracker.domain.models import NavSource
from navtracker.domain.schemas.nav import NavUpdateEvent
from navtracker.domain.services.nav_export import snapshot_to_schema
from navtracker.utils.time import Clock, SystemClock

logger = logging.getLogger(__name__)

NavHandler = Callable[["NavUpdate"], Any]


@dataclass(frozen=True)
class NavUpdate:
    watchlist_slug: str
    nav_data: list
    source: NavSource
    timestamp: datetime

    @property
    def is_real_time(self) -> bool:
        return self.source == NavSource.REALTIME

    def to_event(self) -> NavUpdateEvent:
        return NavUpdateEvent(
            watchlist_slug=self.watchlist_slug,
            source=self.source.value,
            timestamp=self.timestamp,
            is_real_time=self.is_real_time,
            nav_data=[snapshot_to_schema(s) for s in self.nav_data],
        )


@dataclass(frozen=True)
class LastUpdate:
    watchlist_slug: str
    timestamp: datetime
    source: NavSource


class NavEventEmitter:
    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or SystemClock()
        self._subscribers: Dict[str, List[NavHandler]] = {}
        self._last_updates: Dict[str, LastUpdate] = {}

    def subscribe(self, watchlist_slug: str, handler: NavHandler) -> Callable[[], None]:
        """Attach a handler; the returned callable detaches it again."""
        self._subscribers.setdefault(watchlist_slug, []).append(handler)
        logger.debug(f"[NAV EVENT] Subscribed to NAV updates for {watchlist_slug}")

        def unsubscribe() -> None:
            handlers = self._subscribers.get(watchlist_slug)
            if handlers and handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    del self._subscribers[watchlist_slug]
            logger.debug(f"[NAV EVENT] Unsubscribed from NAV updates for {watchlist_slug}")

        return unsubscribe

    def count(self, watchlist_slug: str) -> int:
        return len(self._subscribers.get(watchlist_slug, []))

    async def emit(self, watchlist_slug: str, nav_data: list, source: NavSource) -> int:
        """
        Broadcast a NAV update to every handler of `watchlist_slug`.

        Handler failures are logged and do not reach the caller or the
        other handlers. Returns the number of handlers invoked.
        """
        update = NavUpdate(
            watchlist_slug=watchlist_slug,
            nav_data=list(nav_data),
            source=NavSource(source),
            timestamp=self._clock.now(),
        )
        self._last_updates[watchlist_slug] = LastUpdate(
            watchlist_slug=watchlist_slug,
            timestamp=update.timestamp,
            source=update.source,
        )

        handlers = list(self._subscribers.get(watchlist_slug, []))
        if not handlers:
            logger.debug(f"[NAV EVENT] No listeners for {watchlist_slug}, update dropped")
            return 0

        logger.debug(f"[NAV EVENT] Notifying {len(handlers)} listeners for {watchlist_slug} ({update.source.value})")
        for handler in handlers:
            try:
                if inspect.iscoroutinefunction(handler):
                    await handler(update)
                else:
                    result = handler(update)
                    if inspect.isawaitable(result):
                        await result
            except Exception:
                logger.exception(f"[NAV EVENT] Error in listener for {watchlist_slug}")
        return len(handlers)

    def get_last_update(self, watchlist_slug: str) -> Optional[LastUpdate]:
        return self._last_updates.get(watchlist_slug)

    def time_since_last_update(self, watchlist_slug: str) -> Optional[float]:
        """Seconds since the last emission for the slug, None if never emitted."""
        last = self.get_last_update(watchlist_slug)
        if last is None:
            return None
        return (self._clock.now() - last.timestamp).total_seconds()

    def is_data_stale(self, watchlist_slug: str, max_age_seconds: Optional[int] = None) -> bool:
        max_age = settings.NAV_STALE_AFTER_SECONDS if max_age_seconds is None else max_age_seconds
        elapsed = self.time_since_last_update(watchlist_slug)
        return elapsed is None or elapsed > max_age

    def clear(self) -> None:
        self._subscribers.clear()
        self._last_updates.clear()
        logger.debug("[NAV EVENT] Cleared all listeners")

    def get_status(self) -> Dict[str, object]:
        return {
            "total_listeners": sum(len(h) for h in self._subscribers.values()),
            "active_watchlists": list(self._subscribers),
            "last_updates": {
                slug: {"timestamp": u.timestamp.isoformat(), "source": u.source.value}
                for slug, u in self._last_updates.items()
            },
        }


_EMITTER: Optional[NavEventEmitter] = None


def get_nav_event_emitter() -> NavEventEmitter:
    """Process-wide NAV channel shared by the scheduler and its subscribers."""
    global _EMITTER
    if _EMITTER is None:
        _EMITTER = NavEventEmitter()
    return _EMITTER
