"""
TIMEFRAME RESOLVER
Turn a timeframe into the start/end price pair a return is measured over.

RULES (LOCKED):
✅ DAY starts at the previous local midnight, not now - 24h
✅ WEEK / MONTH / YEAR are fixed offsets (7 / 30 / 365 days)
✅ YTD starts at the later of Jan 1 and the buy date
✅ Windows never start before the buy date
✅ MAX starts at the buy date and prefers the stored buy price
✅ End point is always the latest observation
"""

import logging
from datetime import datetime, timedelta, tzinfo
from decimal import Decimal
from typing import Optional, Sequence

from navtracker.domain.models import PricePoint, ReturnSlice, Timeframe
from navtracker.utils.time import local_midnight, local_zone, now_utc, to_utc

logger = logging.getLogger(__name__)

_FIXED_OFFSETS = {
    Timeframe.WEEK: timedelta(days=7),
    Timeframe.MONTH: timedelta(days=30),
    Timeframe.YEAR: timedelta(days=365),
}


def find_closest_index(history: Sequence[PricePoint], target: datetime) -> Optional[int]:
    """
    Binary search for the point nearest to `target`.

    `history` must be sorted ascending. Ties keep the first midpoint that
    reached the smallest distance; an exact match returns immediately.
    Returns None for an empty sequence.
    """
    if not history:
        return None

    left, right = 0, len(history) - 1
    best_idx = 0
    best_diff = abs(history[0].timestamp - target)

    while left <= right:
        mid = (left + right) // 2
        mid_time = history[mid].timestamp
        diff = abs(mid_time - target)
        if diff < best_diff:
            best_diff = diff
            best_idx = mid
        if mid_time < target:
            left = mid + 1
        elif mid_time > target:
            right = mid - 1
        else:
            return mid

    return best_idx


def closest_price(history: Sequence[PricePoint], target: datetime) -> Decimal:
    idx = find_closest_index(history, target)
    if idx is None:
        return Decimal("0")
    return history[idx].price or Decimal("0")


def timeframe_start(
    timeframe: Timeframe,
    now: Optional[datetime] = None,
    zone: Optional[tzinfo] = None,
) -> Optional[datetime]:
    """
    Nominal start of a timeframe window, before buy-date clamping.

    Returns None for MAX and CUSTOM, whose start comes from elsewhere.
    """
    now = to_utc(now or now_utc())
    zone = zone or local_zone()

    if timeframe == Timeframe.DAY:
        previous_day = (now.astimezone(zone) - timedelta(days=1)).date()
        return local_midnight(previous_day, zone)
    if timeframe in _FIXED_OFFSETS:
        return now - _FIXED_OFFSETS[timeframe]
    if timeframe == Timeframe.YEAR_TO_DATE:
        local_now = now.astimezone(zone)
        return local_midnight(local_now.date().replace(month=1, day=1), zone)
    return None


def resolve_slice(
    history: Sequence[PricePoint],
    timeframe: Timeframe,
    buy_date: Optional[datetime],
    buy_price: Optional[Decimal] = None,
    now: Optional[datetime] = None,
    custom_start: Optional[datetime] = None,
    custom_end: Optional[datetime] = None,
    zone: Optional[tzinfo] = None,
    symbol: str = "?",
) -> ReturnSlice:
    """
    Resolve the start and end points for one ticker.

    Args:
        history: Price points (any order; sorted here)
        timeframe: Window policy
        buy_date: Position buy date; defaults to the earliest point
        buy_price: Cost basis, only consulted for MAX
        now: Reference instant (injectable for tests)
        custom_start / custom_end: Explicit bounds for CUSTOM
        zone: Local zone for DAY / YTD calendar boundaries
        symbol: Used in log lines only

    Returns:
        ReturnSlice whose start timestamp is the effective window start and
        whose start price comes from the nearest observation. Both points
        are None when there is no history.
    """
    if not history:
        return ReturnSlice(start_point=None, end_point=None)

    timeframe = Timeframe.parse(timeframe)
    now = to_utc(now or now_utc())
    ordered = sorted(history, key=lambda p: p.timestamp)
    buy_dt = to_utc(buy_date) if buy_date is not None else ordered[0].timestamp

    if timeframe == Timeframe.MAX:
        start_date = buy_dt
        if buy_price is not None and buy_price > 0:
            start_price = Decimal(str(buy_price))
            logger.debug(f"📅 MAX: using stored buy price {start_price} for {symbol}")
        else:
            start_price = closest_price(ordered, start_date)
            logger.debug(f"📅 MAX: using historical price {start_price} closest to {start_date.isoformat()} for {symbol}")

    elif timeframe == Timeframe.YEAR_TO_DATE:
        jan1 = timeframe_start(Timeframe.YEAR_TO_DATE, now, zone)
        effective_start = max(jan1, buy_dt)
        first_point = ordered[0]
        if first_point.timestamp <= effective_start:
            start_date = effective_start
            start_price = closest_price(ordered, start_date)
        else:
            # History does not reach back to the effective start
            start_date = first_point.timestamp
            start_price = first_point.price
        logger.debug(f"📅 YTD: start {start_date.isoformat()} → price {start_price} for {symbol}")

    elif timeframe == Timeframe.CUSTOM:
        start_date = to_utc(custom_start) if custom_start is not None else buy_dt
        start_price = closest_price(ordered, start_date)

    else:
        window_start = timeframe_start(timeframe, now, zone)
        start_date = max(window_start, buy_dt)
        start_price = closest_price(ordered, start_date)
        logger.debug(
            f"📅 {timeframe.value}: window start {window_start.isoformat()}, "
            f"effective {start_date.isoformat()} → price {start_price} for {symbol}"
        )

    if timeframe == Timeframe.CUSTOM and custom_end is not None:
        end_idx = find_closest_index(ordered, to_utc(custom_end))
        end_point = ordered[end_idx]
    else:
        end_point = ordered[-1]

    start_point = PricePoint(timestamp=start_date, price=start_price)
    return ReturnSlice(start_point=start_point, end_point=end_point)
