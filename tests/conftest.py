from datetime import datetime, timedelta, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

import pytest

from navtracker.domain.services.ticker_normalizer import normalize_ticker
from navtracker.realtime.nav_events import NavEventEmitter

NEW_YORK = ZoneInfo("America/New_York")


class ManualClock:
    """Clock whose time only moves when a test says so"""

    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


class ManualHandle:
    def __init__(self, delay_seconds: float, callback):
        self.delay_seconds = delay_seconds
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimer:
    """Timer that records requests; tests fire them explicitly"""

    def __init__(self):
        self.handles: List[ManualHandle] = []

    def call_later(self, delay_seconds: float, callback) -> ManualHandle:
        handle = ManualHandle(delay_seconds, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> List[ManualHandle]:
        return [h for h in self.handles if not h.cancelled]

    async def fire_next(self) -> ManualHandle:
        handle = self.active[-1]
        handle.cancelled = True
        await handle.callback()
        return handle


@pytest.fixture
def zone():
    return NEW_YORK


@pytest.fixture
def clock():
    return ManualClock(datetime(2024, 3, 10, 14, 2, 30, tzinfo=timezone.utc))


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture
def emitter(clock):
    return NavEventEmitter(clock=clock)


def make_ticker(
    symbol: str,
    prices: List[str],
    start: datetime = datetime(2024, 1, 2, 16, 0, tzinfo=timezone.utc),
    buy_price: Optional[str] = None,
    buy_date: Optional[datetime] = None,
    step: timedelta = timedelta(days=1),
    **extra,
):
    """Daily history starting at `start`; buys at the first price by default."""
    history = [
        {"timestamp": start + step * i, "price": price}
        for i, price in enumerate(prices)
    ]
    raw = {
        "symbol": symbol,
        "buy_price": buy_price if buy_price is not None else prices[0],
        "buy_date": buy_date or start,
        "historical_data": history,
        "added_at": start,
    }
    raw.update(extra)
    return normalize_ticker(raw)


@pytest.fixture
def ticker_factory():
    return make_ticker
