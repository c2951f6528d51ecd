"""
HISTORICAL DATA MERGER
Combine price histories into one deduplicated, ascending sequence.

Points are keyed by calendar day (UTC). Incoming points replace existing
points of the same day, so merge(merge(a, b), b) == merge(a, b).
"""

from datetime import date, datetime
from typing import Dict, Iterable, List

from navtracker.domain.models import PricePoint
from navtracker.utils.time import to_utc


def day_key(point: PricePoint) -> date:
    return to_utc(point.timestamp).date()


def merge_historical_data(
    existing: Iterable[PricePoint],
    incoming: Iterable[PricePoint],
) -> List[PricePoint]:
    """
    Merge two price sequences, at most one point per calendar day.

    Args:
        existing: Points already stored for the ticker
        incoming: Freshly fetched points; these win on a same-day collision

    Returns:
        Merged points sorted ascending by full timestamp
    """
    by_day: Dict[date, PricePoint] = {}
    for point in existing:
        by_day[day_key(point)] = point
    for point in incoming:
        by_day[day_key(point)] = point

    return sorted(by_day.values(), key=lambda p: p.timestamp)


def filter_since_buy_date(history: Iterable[PricePoint], buy_date: datetime) -> List[PricePoint]:
    """Drop points recorded before the position was bought."""
    cutoff = to_utc(buy_date)
    return [p for p in history if p.timestamp >= cutoff]
